from __future__ import annotations

from datetime import datetime, timezone

from lux_aeternum.profile import default_profile, from_divina_profile


def test_default_profile() -> None:
    profile = default_profile()

    assert profile.id == "default"
    assert profile.lighting.color == "#FFFFFF"
    assert profile.lighting.brightness == 70
    assert profile.lighting.effect == "solid"
    assert profile.lighting.effect_speed == 50
    assert profile.lighting.transition == 500
    assert (profile.mood.primary, profile.mood.intensity) == ("neutral", 50)


def test_from_divina_profile() -> None:
    profile = from_divina_profile(
        {
            "id": "p-1",
            "userId": "u-7",
            "name": "Evening",
            "ambience": {
                "lighting": {"color": "#FF8800", "brightness": 0, "effect": "candle"},
                "mood": {"primary": "calm", "intensity": 30},
            },
            "createdAt": "2024-03-01T18:00:00+00:00",
            "updatedAt": "2024-03-02T18:00:00Z",
        }
    )

    assert (profile.id, profile.user_id, profile.name) == ("p-1", "u-7", "Evening")
    assert profile.active is True
    assert profile.lighting.color == "#FF8800"
    # Zero is a real brightness, not a missing one.
    assert profile.lighting.brightness == 0
    assert profile.lighting.effect == "candle"
    assert profile.lighting.transition == 500
    assert (profile.mood.primary, profile.mood.intensity) == ("calm", 30)
    assert profile.updated_at == datetime(2024, 3, 2, 18, 0, tzinfo=timezone.utc)
    assert profile.mood.timestamp == profile.updated_at
    assert profile.created_at.day == 1


def test_from_divina_profile_fills_defaults() -> None:
    profile = from_divina_profile({"id": "p-2", "userId": "u", "active": False, "ambience": {"mood": "focused"}})

    assert profile.name == "Unnamed Profile"
    assert profile.active is False
    assert profile.lighting.color == "#FFFFFF"
    assert profile.lighting.brightness == 70
    assert profile.mood.primary == "focused"
    assert profile.mood.intensity == 50


def test_with_lighting_returns_copy() -> None:
    base = default_profile()

    flashed = base.with_lighting(color="#FFFF00", effect="pulse")

    assert flashed.lighting.color == "#FFFF00"
    assert flashed.lighting.effect == "pulse"
    assert flashed.lighting.brightness == 70
    assert base.lighting.color == "#FFFFFF"
    assert flashed.id == base.id
