from __future__ import annotations

import json

import httpx
import pytest

from conftest import sent
from lux_aeternum.divina import DivinaL3Adapter, realtime_url, reconnect_delay
from lux_aeternum.exceptions import AdapterError, NotInitialized
from lux_aeternum.models import LightCommand, LightEvent

PROFILE = {
    "id": "p-1",
    "userId": "u-1",
    "name": "Focus",
    "ambience": {"lighting": {"color": "#3366FF", "brightness": 60, "effect": "breathing"}, "mood": "focused"},
    "updatedAt": "2024-05-01T10:00:00Z",
}


def _divina(manager, handler=None, **kwargs) -> DivinaL3Adapter:
    handler = handler or (lambda request: httpx.Response(404))
    return DivinaL3Adapter(
        manager,
        auth_token="token-1",
        enable_realtime_sync=False,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_reconnect_delay_backoff() -> None:
    assert [reconnect_delay(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]


def test_realtime_url() -> None:
    assert realtime_url("https://api.divina-l3.com/v1") == "wss://api.divina-l3.com/v1/realtime"
    assert realtime_url("http://localhost:8080/") == "ws://localhost:8080/realtime"


@pytest.mark.asyncio
async def test_fetch_current_profile(manager) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=PROFILE)

    divina = _divina(manager, handler)

    assert await divina.fetch_current_profile() == PROFILE
    assert seen[0].url.path == "/v1/profiles/current"
    assert seen[0].headers["Authorization"] == "Bearer token-1"
    await divina.dispose()


@pytest.mark.asyncio
async def test_fetch_current_profile_missing(manager) -> None:
    divina = _divina(manager)
    assert await divina.fetch_current_profile() is None


@pytest.mark.asyncio
async def test_fetch_current_profile_server_error(manager) -> None:
    divina = _divina(manager, lambda request: httpx.Response(503))
    with pytest.raises(AdapterError):
        await divina.fetch_current_profile()


def test_token_from_environment(manager, monkeypatch) -> None:
    monkeypatch.setenv("DIVINA_L3_AUTH_TOKEN", "env-token")
    divina = DivinaL3Adapter(manager, enable_realtime_sync=False)
    assert divina.auth_token == "env-token"


@pytest.mark.asyncio
async def test_profile_message_applies_lighting(manager, adapter) -> None:
    divina = _divina(manager)
    updates = []
    divina.on("profile:updated", updates.append)

    await divina.handle_message(json.dumps({"type": "profile", "action": "update", "data": PROFILE}))

    # The fake adapter rejects the custom effect; color and brightness still land.
    assert sent(adapter) == [
        ("setColor", {"color": "#3366FF"}),
        ("setBrightness", {"brightness": 60}),
        ("custom", {"effect": "breathing"}),
    ]
    assert adapter.devices["lamp-1"].color == "#3366FF"
    assert divina.profiles["p-1"] == PROFILE
    assert updates == [PROFILE]


@pytest.mark.asyncio
async def test_room_device_and_ritual_messages(manager) -> None:
    divina = _divina(manager)
    events = []
    for name in ("room:updated", "device:updated", "ritual:updated"):
        divina.on(name, lambda data, name=name: events.append((name, data["id"])))

    await divina.handle_message({"type": "room", "data": {"id": "r-1", "name": "Den"}})
    await divina.handle_message({"type": "device", "data": {"id": "d-1"}})
    await divina.handle_message({"type": "ritual", "data": {"id": "x-1"}})
    await divina.handle_message({"type": "weather", "data": {"id": "w"}})
    await divina.handle_message("not json")

    assert events == [("room:updated", "r-1"), ("device:updated", "d-1"), ("ritual:updated", "x-1")]
    assert divina.rooms["r-1"]["name"] == "Den"


@pytest.mark.asyncio
async def test_execute_command_requires_initialize(manager, adapter) -> None:
    divina = _divina(manager)

    with pytest.raises(NotInitialized):
        await divina.execute_command(LightCommand.turn_on("lamp-1"))

    await divina.initialize()
    await divina.execute_command(LightCommand.turn_on("lamp-1"))

    assert adapter.devices["lamp-1"].is_on
    assert await divina.get_devices() == []
    assert not divina.connected
    await divina.dispose()
    assert not divina.initialized


@pytest.mark.asyncio
async def test_handle_event_is_reemitted(manager) -> None:
    divina = _divina(manager)
    received = []
    divina.on("event", received.append)

    event = LightEvent("scene:changed", payload={"scene": "night"})
    await divina.handle_event(event)

    assert received == [event]
