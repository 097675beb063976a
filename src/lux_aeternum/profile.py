"""Ambient environment profiles shared with the Divina-L3 ecosystem."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class AmbientLighting:
    color: str | None = None
    brightness: int | None = None  # 0-100
    effect: str | None = None
    effect_speed: int | None = None  # 0-100
    transition: int | None = None  # milliseconds


@dataclass(frozen=True)
class AmbientSound:
    track_id: str | None = None
    volume: int | None = None
    loop: bool | None = None
    fade: int | None = None


@dataclass(frozen=True)
class EmotionalState:
    primary: str
    intensity: int
    secondary: str | None = None
    timestamp: datetime | None = None


@dataclass(frozen=True)
class Ritual:
    id: str
    name: str
    duration: int = 0  # milliseconds, 0 = indefinite
    active: bool = False
    description: str | None = None
    started_at: datetime | None = None
    ends_at: datetime | None = None


@dataclass(frozen=True)
class EnvironmentProfile:
    """Lighting, sound and mood for one user's surroundings."""

    id: str
    user_id: str
    name: str
    lighting: AmbientLighting
    mood: EmotionalState
    active: bool = True
    sound: AmbientSound | None = None
    active_ritual: Ritual | None = None
    device_overrides: dict[str, dict[str, Any]] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def with_lighting(self, **changes: Any) -> EnvironmentProfile:
        """Return a copy with the given lighting fields overridden."""
        return replace(self, lighting=replace(self.lighting, **changes))


DEFAULT_LIGHTING = AmbientLighting(
    color="#FFFFFF",
    brightness=70,
    effect="solid",
    effect_speed=50,
    transition=500,
)
DEFAULT_MOOD = EmotionalState(primary="neutral", intensity=50)


def default_profile() -> EnvironmentProfile:
    return EnvironmentProfile(
        id="default",
        user_id="system",
        name="Default Profile",
        lighting=DEFAULT_LIGHTING,
        mood=DEFAULT_MOOD,
    )


def _parse_time(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        # Epoch milliseconds.
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _first(value: Any, default: Any) -> Any:
    return value if value is not None else default


def from_divina_profile(payload: dict[str, Any]) -> EnvironmentProfile:
    """Convert a Divina-L3 profile document into an :class:`EnvironmentProfile`.

    Lighting and mood come from ``payload["ambience"]``; anything missing
    falls back to :func:`default_profile`. ``ambience.mood`` may be a plain
    string naming the primary emotion or a mapping with ``primary`` and
    ``intensity``.
    """
    ambience = payload.get("ambience") or {}
    lighting = ambience.get("lighting") or {}
    mood = ambience.get("mood") or {}
    if isinstance(mood, str):
        mood = {"primary": mood}

    now = datetime.now(timezone.utc)
    updated_at = _parse_time(payload.get("updatedAt")) or now
    created_at = _parse_time(payload.get("createdAt")) or now

    return EnvironmentProfile(
        id=str(payload.get("id", "")),
        user_id=str(payload.get("userId", "")),
        name=payload.get("name") or "Unnamed Profile",
        active=payload.get("active") is not False,
        lighting=AmbientLighting(
            color=lighting.get("color") or DEFAULT_LIGHTING.color,
            brightness=_first(lighting.get("brightness"), DEFAULT_LIGHTING.brightness),
            effect=lighting.get("effect") or DEFAULT_LIGHTING.effect,
            effect_speed=_first(lighting.get("effectSpeed"), DEFAULT_LIGHTING.effect_speed),
            transition=_first(lighting.get("transition"), DEFAULT_LIGHTING.transition),
        ),
        mood=EmotionalState(
            primary=mood.get("primary") or DEFAULT_MOOD.primary,
            intensity=_first(mood.get("intensity"), DEFAULT_MOOD.intensity),
            secondary=mood.get("secondary"),
            timestamp=updated_at,
        ),
        device_overrides=dict(payload.get("deviceOverrides") or {}),
        created_at=created_at,
        updated_at=updated_at,
    )
