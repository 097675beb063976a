"""Data models shared by adapters, the light manager and the effect engine."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable


class CommandType(str, Enum):
    """Generic light command types understood by every adapter."""

    TURN_ON = "turnOn"
    TURN_OFF = "turnOff"
    SET_COLOR = "setColor"
    SET_BRIGHTNESS = "setBrightness"
    CUSTOM = "custom"


class GameEventType(str, Enum):
    """Event names published by the GameDin network."""

    PLAYER_JOIN = "player:join"
    PLAYER_LEAVE = "player:leave"
    PLAYER_LEVEL_UP = "player:levelUp"
    PLAYER_ACHIEVEMENT = "player:achievement"
    MATCH_START = "match:start"
    MATCH_END = "match:end"
    MATCH_VICTORY = "match:victory"
    MATCH_DEFEAT = "match:defeat"
    GAME_EVENT = "game:event"
    CHAT_MESSAGE = "chat:message"
    CUSTOM_EVENT = "custom:event"


@dataclass
class Device:
    """A light owned by exactly one adapter.

    ``brightness`` is a 0-100 percentage and ``color`` a ``#RRGGBB`` string;
    either is ``None`` when the vendor does not report it.
    """

    id: str
    name: str
    type: str = "light"
    brand: str = ""
    model: str = ""
    address: str = ""
    is_on: bool = False
    brightness: int | None = None
    color: str | None = None
    is_reachable: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "brand": self.brand,
            "model": self.model,
            "address": self.address,
            "isOn": self.is_on,
            "brightness": self.brightness,
            "color": self.color,
            "isReachable": self.is_reachable,
        }


@dataclass(frozen=True)
class LightCommand:
    """Immutable command addressed to one device.

    Effects keep a template with an empty ``device_id`` and stamp the target
    in with :meth:`for_device` at dispatch time.
    """

    type: CommandType
    device_id: str = ""
    params: dict[str, Any] = field(default_factory=dict)
    timestamp: float | None = None
    metadata: dict[str, Any] | None = None

    def for_device(self, device_id: str) -> LightCommand:
        return replace(self, device_id=device_id, params=dict(self.params))

    @classmethod
    def turn_on(cls, device_id: str = "") -> LightCommand:
        return cls(CommandType.TURN_ON, device_id)

    @classmethod
    def turn_off(cls, device_id: str = "") -> LightCommand:
        return cls(CommandType.TURN_OFF, device_id)

    @classmethod
    def set_color(cls, color: str, device_id: str = "") -> LightCommand:
        return cls(CommandType.SET_COLOR, device_id, {"color": color})

    @classmethod
    def set_brightness(cls, brightness: int, device_id: str = "") -> LightCommand:
        return cls(CommandType.SET_BRIGHTNESS, device_id, {"brightness": brightness})

    @classmethod
    def from_dict(cls, data: dict) -> LightCommand:
        return cls(
            type=CommandType(data["type"]),
            device_id=data.get("deviceId", data.get("device_id", "")),
            params=dict(data.get("params") or {}),
            timestamp=data.get("timestamp"),
            metadata=data.get("metadata"),
        )


@dataclass
class LightEvent:
    """Opaque event forwarded to adapters through ``handle_event``."""

    type: str
    payload: Any = None
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] | None = None


@dataclass
class GameEvent:
    """An external game/application event that may trigger effects."""

    type: str
    player_id: str | None = None
    player_name: str | None = None
    match_id: str | None = None
    game_id: str | None = None
    timestamp: float = field(default_factory=time.time)
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> GameEvent:
        return cls(
            type=event_key(data["type"]),
            player_id=data.get("playerId", data.get("player_id")),
            player_name=data.get("playerName", data.get("player_name")),
            match_id=data.get("matchId", data.get("match_id")),
            game_id=data.get("gameId", data.get("game_id")),
            timestamp=data.get("timestamp") or time.time(),
            data=dict(data.get("data") or {}),
        )


@dataclass
class Effect:
    """Declarative rule mapping an event type to a lighting command.

    Higher ``priority`` wins. A ``duration`` of 0 makes the effect permanent;
    otherwise, with ``restore_previous_state`` set, the device is reverted to
    its pre-effect color and brightness after ``duration`` milliseconds.
    """

    event_type: str
    command: LightCommand
    condition: Callable[[GameEvent], bool] | None = None
    priority: int = 0
    duration: int = 0
    restore_previous_state: bool = False

    def matches(self, event: GameEvent) -> bool:
        return self.condition is None or bool(self.condition(event))


@dataclass(frozen=True)
class SavedState:
    """Pre-effect snapshot of the fields an effect can restore."""

    color: str | None = None
    brightness: int | None = None


def event_key(value: str | Enum) -> str:
    """Return the plain string name of an event or command type."""
    return value.value if isinstance(value, Enum) else str(value)
