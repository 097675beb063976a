from __future__ import annotations

import asyncio
from typing import Collection, Iterable

import pytest

from lux_aeternum.adapters.base import (
    AdapterConfig,
    BaseLightAdapter,
    require_brightness,
    require_color,
)
from lux_aeternum.exceptions import (
    CommandExecutionFailed,
    DeviceFetchFailed,
    InitializationFailed,
    UnsupportedCommand,
)
from lux_aeternum.manager import LightManager
from lux_aeternum.models import CommandType, Device, LightCommand


class FakeAdapter(BaseLightAdapter):
    """In-memory adapter that records every command it receives."""

    def __init__(
        self,
        devices: Iterable[Device] = (),
        *,
        instance_id: str = "fake",
        adapter_type: str = "fake",
        fail_init: bool = False,
        fail_devices: bool = False,
        fail_lookup: bool = False,
        fail_commands: bool = False,
        fail_on: Collection[CommandType] = (),
        delay: float = 0.0,
    ) -> None:
        super().__init__(AdapterConfig(type=adapter_type, instance_id=instance_id))
        self.devices = {d.id: d for d in devices}
        self.fail_init = fail_init
        self.fail_devices = fail_devices
        self.fail_lookup = fail_lookup
        self.fail_commands = fail_commands
        self.fail_on = set(fail_on)
        self.delay = delay
        self.commands: list[LightCommand] = []
        self.closed = False

    async def initialize(self) -> None:
        if self.fail_init:
            raise InitializationFailed("boom")
        self.initialized = True

    async def get_devices(self) -> list[Device]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_devices:
            raise DeviceFetchFailed("cannot list devices")
        return list(self.devices.values())

    async def get_device(self, device_id: str) -> Device | None:
        if self.fail_lookup:
            raise DeviceFetchFailed("lookup failed")
        return self.devices.get(device_id)

    async def execute_command(self, command: LightCommand) -> None:
        self.validate_device_id(command.device_id)
        self.commands.append(command)
        if self.fail_commands or command.type in self.fail_on:
            raise CommandExecutionFailed("vendor rejected command")
        if command.type == CommandType.TURN_ON:
            self._update_device(command.device_id, is_on=True)
        elif command.type == CommandType.TURN_OFF:
            self._update_device(command.device_id, is_on=False)
        elif command.type == CommandType.SET_COLOR:
            self._update_device(command.device_id, color=require_color(command))
        elif command.type == CommandType.SET_BRIGHTNESS:
            self._update_device(command.device_id, brightness=require_brightness(command))
        else:
            raise UnsupportedCommand(f"Unsupported command type: {command.type.value}")

    async def close(self) -> None:
        self.closed = True


class ManualClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000


def sent(adapter: FakeAdapter) -> list[tuple[str, dict]]:
    """Commands as ``(type, params)`` pairs for compact assertions."""
    return [(c.type.value, c.params) for c in adapter.commands]


@pytest.fixture
def lamp() -> Device:
    return Device(id="lamp-1", name="Desk Lamp", brand="fake", color="#FFFFFF", brightness=80)


@pytest.fixture
def adapter(lamp: Device) -> FakeAdapter:
    return FakeAdapter([lamp])


@pytest.fixture
def manager(adapter: FakeAdapter) -> LightManager:
    manager = LightManager()
    manager.add_adapter(adapter)
    return manager


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()
