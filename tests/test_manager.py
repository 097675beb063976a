from __future__ import annotations

import pytest

from conftest import FakeAdapter, sent
from lux_aeternum.exceptions import (
    CommandExecutionFailed,
    DeviceNotFound,
    InvalidParameter,
    LuxError,
)
from lux_aeternum.manager import LightManager
from lux_aeternum.models import Device, LightCommand, LightEvent


def _device(device_id: str) -> Device:
    return Device(id=device_id, name=device_id.title())


def test_adapter_keys_and_duplicates() -> None:
    manager = LightManager()
    first = FakeAdapter(instance_id="one")

    assert manager.add_adapter(first) == "fake:one"
    assert manager.add_adapter(FakeAdapter(instance_id="one")) == "fake:one"
    assert manager.adapters["fake:one"] is first
    assert len(manager.adapters) == 1
    assert manager.remove_adapter("fake:one") is first
    assert manager.adapters == {}


def test_generated_instance_id() -> None:
    manager = LightManager()
    key = manager.add_adapter(FakeAdapter(instance_id=""))
    assert key.startswith("fake:") and len(key) > len("fake:")


@pytest.mark.asyncio
async def test_initialize_reports_failures_without_raising() -> None:
    manager = LightManager()
    manager.add_adapter(FakeAdapter(instance_id="good"))
    manager.add_adapter(FakeAdapter(instance_id="bad", fail_init=True))

    result = await manager.initialize()

    assert list(result.succeeded) == ["fake:good"]
    assert [adapter_id for adapter_id, _ in result.failed] == ["fake:bad"]
    assert not result.ok
    assert manager.initialized
    with pytest.raises(LuxError):
        result.raise_if_failed()


@pytest.mark.asyncio
async def test_command_routes_past_failing_adapter() -> None:
    a = FakeAdapter([_device("x")], instance_id="a", fail_lookup=True)
    b = FakeAdapter([_device("x")], instance_id="b")
    manager = LightManager()
    manager.add_adapter(a)
    manager.add_adapter(b)

    await manager.execute_command(LightCommand.set_color("#ff8800", "x"))

    assert a.commands == []
    assert sent(b) == [("setColor", {"color": "#ff8800"})]
    assert b.devices["x"].color == "#FF8800"


@pytest.mark.asyncio
async def test_command_falls_back_when_owner_fails() -> None:
    a = FakeAdapter([_device("x")], instance_id="a", fail_commands=True)
    b = FakeAdapter([_device("x")], instance_id="b")
    manager = LightManager()
    manager.add_adapter(a)
    manager.add_adapter(b)

    await manager.turn_on("x")

    assert b.devices["x"].is_on


@pytest.mark.asyncio
async def test_all_owners_failing_raises_execution_failed() -> None:
    manager = LightManager()
    manager.add_adapter(FakeAdapter([_device("x")], instance_id="a", fail_commands=True))

    with pytest.raises(CommandExecutionFailed, match="no adapter could handle the command"):
        await manager.turn_off("x")


@pytest.mark.asyncio
async def test_unknown_device_raises_not_found(manager) -> None:
    with pytest.raises(DeviceNotFound):
        await manager.turn_on("missing")


@pytest.mark.asyncio
async def test_invalid_parameters_propagate(manager) -> None:
    with pytest.raises(InvalidParameter):
        await manager.set_color("lamp-1", "not-a-color")


@pytest.mark.asyncio
async def test_brightness_is_clamped(manager, adapter) -> None:
    await manager.set_brightness("lamp-1", 150)
    assert adapter.devices["lamp-1"].brightness == 100


@pytest.mark.asyncio
async def test_collect_devices_drops_colliding_ids() -> None:
    manager = LightManager()
    manager.add_adapter(FakeAdapter([_device("x"), _device("y")], instance_id="a"))
    manager.add_adapter(FakeAdapter([_device("y"), _device("z")], instance_id="b"))
    manager.add_adapter(FakeAdapter(instance_id="c", fail_devices=True))

    result = await manager.collect_devices()

    assert [d.id for d in result.succeeded["fake:a"]] == ["x", "y"]
    assert [d.id for d in result.succeeded["fake:b"]] == ["z"]
    assert [adapter_id for adapter_id, _ in result.failed] == ["fake:c"]
    assert [d.id for d in await manager.get_devices()] == ["x", "y", "z"]


@pytest.mark.asyncio
async def test_get_device_first_hit_wins() -> None:
    manager = LightManager()
    manager.add_adapter(FakeAdapter(instance_id="a", fail_lookup=True))
    manager.add_adapter(FakeAdapter([Device(id="x", name="From B")], instance_id="b"))

    device = await manager.get_device("x")

    assert device is not None and device.name == "From B"
    assert await manager.get_device("nope") is None


@pytest.mark.asyncio
async def test_handle_event_reaches_every_adapter() -> None:
    received = []

    class Listening(FakeAdapter):
        async def handle_event(self, event: LightEvent) -> None:
            received.append((self.config.instance_id, event.type))

    manager = LightManager()
    manager.add_adapter(Listening(instance_id="a"))
    manager.add_adapter(Listening(instance_id="b"))

    await manager.handle_event(LightEvent("scene:changed"))

    assert received == [("a", "scene:changed"), ("b", "scene:changed")]


@pytest.mark.asyncio
async def test_context_manager_closes_adapters(adapter) -> None:
    async with LightManager() as manager:
        manager.add_adapter(adapter)
    assert adapter.closed
