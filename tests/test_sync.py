from __future__ import annotations

import asyncio

import httpx
import pytest

from conftest import ManualClock, sent
from lux_aeternum.divina import DivinaL3Adapter
from lux_aeternum.effects import EffectDispatcher, TimerQueue
from lux_aeternum.models import GameEvent
from lux_aeternum.profile import EnvironmentProfile, default_profile
from lux_aeternum.sync import ProfileSyncService

PROFILE = {
    "id": "p-1",
    "userId": "u-1",
    "name": "Evening",
    "ambience": {"lighting": {"color": "#FF8800", "brightness": 40}, "mood": {"primary": "calm", "intensity": 20}},
}


class ProfileApi:
    def __init__(self, profile: dict | None = PROFILE) -> None:
        self.profile = profile
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.profile is None:
            return httpx.Response(404)
        return httpx.Response(200, json=self.profile)


@pytest.fixture
def api() -> ProfileApi:
    return ProfileApi()


@pytest.fixture
def service(manager, api) -> ProfileSyncService:
    divina = DivinaL3Adapter(
        manager,
        auth_token="t",
        enable_realtime_sync=False,
        transport=httpx.MockTransport(api),
    )
    dispatcher = EffectDispatcher(
        manager,
        timers=TimerQueue(clock=ManualClock()),
        enable_default_effects=False,
    )
    return ProfileSyncService(divina, dispatcher, manager, interval=0.05)


@pytest.mark.asyncio
async def test_sync_all_applies_profile(service, adapter) -> None:
    applied = []
    service.on("profile:applied", applied.append)

    assert await service.sync_all() is True

    lamp = adapter.devices["lamp-1"]
    assert (lamp.color, lamp.brightness) == ("#FF8800", 40)
    assert service.synced_profile is service.active_profile
    assert service.active_profile is not None and service.active_profile.name == "Evening"
    assert [p.name for p in applied] == ["Evening"]


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(service, api) -> None:
    service.is_syncing = True

    assert await service.sync_all() is False
    assert api.calls == 0


@pytest.mark.asyncio
async def test_missing_profile_applies_nothing(service, api, adapter) -> None:
    api.profile = None

    assert await service.sync_all() is True

    assert service.active_profile is None
    assert adapter.commands == []
    assert not service.is_syncing


@pytest.mark.asyncio
async def test_periodic_sync(service, api) -> None:
    service.start_sync(0.01)
    try:
        for _ in range(100):
            if api.calls >= 2:
                break
            await asyncio.sleep(0.01)
    finally:
        await service.stop_sync()
    assert api.calls >= 2


@pytest.mark.asyncio
async def test_match_start_applies_game_profile(service, adapter) -> None:
    forwarded = []
    service.on("game:match:start", forwarded.append)

    await service.dispatcher.handle_event(GameEvent("match:start", match_id="m-1"))

    lamp = adapter.devices["lamp-1"]
    assert (lamp.color, lamp.brightness) == ("#1E90FF", 80)
    profile = service.active_profile
    assert profile is not None and profile.name == "Game: in_game"
    assert profile.lighting.effect == "breathing"
    assert (profile.mood.primary, profile.mood.intensity) == ("focused", 80)
    assert [e.match_id for e in forwarded] == ["m-1"]


@pytest.mark.asyncio
async def test_match_end_restores_synced_profile(service, adapter, api) -> None:
    await service.sync_all()
    await service.dispatcher.handle_event(GameEvent("match:start"))
    await service.dispatcher.handle_event(GameEvent("match:end"))

    assert adapter.devices["lamp-1"].color == "#FF8800"
    assert service.active_profile is service.synced_profile
    assert api.calls == 1


@pytest.mark.asyncio
async def test_match_end_without_synced_profile_fetches(service, adapter, api) -> None:
    await service.dispatcher.handle_event(GameEvent("match:end"))

    assert api.calls == 1
    assert adapter.devices["lamp-1"].color == "#FF8800"


@pytest.mark.asyncio
async def test_temporary_effect_reverts(service, adapter) -> None:
    base = default_profile()
    await service.apply_profile(base)

    await service.apply_temporary_effect(color="#FFFF00", effect="pulse", duration=20)
    assert adapter.devices["lamp-1"].color == "#FFFF00"
    assert service.active_profile is not None and service.active_profile.lighting.effect == "pulse"

    await asyncio.sleep(0.1)
    assert adapter.devices["lamp-1"].color == "#FFFFFF"
    assert service.active_profile is base
    await service.dispose()


@pytest.mark.asyncio
async def test_new_temporary_effect_keeps_original_revert_target(service, adapter) -> None:
    base = default_profile()
    await service.apply_profile(base)

    await service.apply_temporary_effect(color="#FFFF00", duration=500)
    await service.apply_temporary_effect(color="#FF0000", duration=20)
    await asyncio.sleep(0.1)

    assert adapter.devices["lamp-1"].color == "#FFFFFF"
    assert service.active_profile is base


@pytest.mark.asyncio
async def test_temporary_effect_without_profile_is_skipped(service, adapter) -> None:
    await service.dispatcher.handle_event(GameEvent("match:victory"))
    assert adapter.commands == []


@pytest.mark.asyncio
async def test_divina_profile_push_is_forwarded(service, adapter) -> None:
    updates: list[EnvironmentProfile] = []
    applied: list[EnvironmentProfile] = []
    service.on("profile:updated", updates.append)
    service.on("profile:applied", applied.append)

    await service.divina.handle_message({"type": "profile", "data": PROFILE})

    assert [p.id for p in updates] == ["p-1"]
    assert applied == updates
    assert service.synced_profile is service.active_profile
    assert service.synced_profile is not None and service.synced_profile.name == "Evening"
    # Each light receives the pushed lighting once.
    assert sent(adapter) == [
        ("setColor", {"color": "#FF8800"}),
        ("setBrightness", {"brightness": 40}),
    ]
    assert adapter.devices["lamp-1"].brightness == 40


@pytest.mark.asyncio
async def test_dispose_detaches_listeners(service) -> None:
    service.on("profile:applied", lambda profile: None)

    await service.dispose()

    assert service.dispatcher.listener_count("match:start") == 0
    assert service.divina.listener_count("profile:updated") == 0
    assert service.listener_count() == 0
