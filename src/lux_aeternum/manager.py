"""Aggregate several vendor adapters behind one light-control surface."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, TypeVar

from lux_aeternum.adapters import BaseLightAdapter, GoveeAdapter, PhilipsHueAdapter
from lux_aeternum.exceptions import (
    CommandExecutionFailed,
    DeviceNotFound,
    InvalidParameter,
    LuxError,
    UnsupportedCommand,
)
from lux_aeternum.logging import get_logger
from lux_aeternum.models import Device, LightCommand, LightEvent

T = TypeVar("T")

_LOGGER = get_logger("lux.manager")


@dataclass
class FanOutResult(Generic[T]):
    """Outcome of a best-effort operation run against every adapter.

    Attributes:
        succeeded: Adapter ID to that adapter's result
        failed: ``(adapter_id, error)`` pairs for adapters that raised
    """

    succeeded: dict[str, T] = field(default_factory=dict)
    failed: list[tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_if_failed(self) -> None:
        """Raise the first recorded error, for callers that want strictness."""
        if self.failed:
            adapter_id, error = self.failed[0]
            raise LuxError(f"Adapter {adapter_id} failed: {error}") from error


class LightManager:
    """Routes commands and queries to the adapter that owns each device.

    Example:
        ```python
        manager = LightManager()
        manager.add_govee_adapter(api_key)
        await manager.initialize()
        for device in await manager.get_devices():
            await manager.set_color(device.id, "#FF8800")
        ```
    """

    def __init__(self) -> None:
        self._adapters: dict[str, BaseLightAdapter] = {}
        self.initialized = False

    @property
    def adapters(self) -> Mapping[str, BaseLightAdapter]:
        return dict(self._adapters)

    def add_adapter(self, adapter: BaseLightAdapter) -> str:
        """Register an adapter under ``"{type}:{instance_id}"`` and return that key."""
        instance_id = adapter.config.instance_id or uuid.uuid4().hex[:8]
        adapter_id = f"{adapter.type}:{instance_id}"
        if adapter_id in self._adapters:
            _LOGGER.warning("Adapter with ID %s already exists", adapter_id)
            return adapter_id

        self._adapters[adapter_id] = adapter
        # New adapters get initialized on the next initialize() call.
        self.initialized = False
        _LOGGER.info("Added adapter: %s", adapter_id)
        return adapter_id

    def remove_adapter(self, adapter_id: str) -> BaseLightAdapter | None:
        return self._adapters.pop(adapter_id, None)

    def add_govee_adapter(self, api_key: str, **options: Any) -> GoveeAdapter:
        adapter = GoveeAdapter(api_key, **options)
        self.add_adapter(adapter)
        return adapter

    def add_hue_adapter(self, bridge_ip: str, **options: Any) -> PhilipsHueAdapter:
        adapter = PhilipsHueAdapter(bridge_ip, **options)
        self.add_adapter(adapter)
        return adapter

    async def initialize(self) -> FanOutResult[None]:
        """Initialize every adapter that is not initialized yet.

        Failures are logged and reported in the result, never raised.
        """
        result: FanOutResult[None] = FanOutResult()
        pending = {
            adapter_id: adapter
            for adapter_id, adapter in self._adapters.items()
            if not adapter.initialized
        }
        outcomes = await asyncio.gather(
            *(adapter.initialize() for adapter in pending.values()),
            return_exceptions=True,
        )
        for adapter_id, outcome in zip(pending, outcomes):
            if isinstance(outcome, Exception):
                _LOGGER.error("Failed to initialize adapter %s: %s", adapter_id, outcome)
                result.failed.append((adapter_id, outcome))
            else:
                result.succeeded[adapter_id] = None

        self.initialized = True
        _LOGGER.info(
            "LightManager initialized",
            extra={"adapters": len(self._adapters), "failed": len(result.failed)},
        )
        return result

    async def collect_devices(self) -> FanOutResult[list[Device]]:
        """Fetch devices from every adapter, keeping per-adapter outcomes.

        A device ID already claimed by an earlier adapter (registration
        order) is dropped from later adapters' lists with a warning.
        """
        result: FanOutResult[list[Device]] = FanOutResult()
        seen: dict[str, str] = {}
        for adapter_id, adapter in self._adapters.items():
            try:
                devices = await adapter.get_devices()
            except Exception as exc:
                _LOGGER.error("Failed to get devices from adapter %s: %s", adapter_id, exc)
                result.failed.append((adapter_id, exc))
                continue

            kept = []
            for device in devices:
                owner = seen.setdefault(device.id, adapter_id)
                if owner != adapter_id:
                    _LOGGER.warning(
                        "Device ID %s reported by %s is already owned by %s; ignoring",
                        device.id,
                        adapter_id,
                        owner,
                    )
                    continue
                kept.append(device)
            result.succeeded[adapter_id] = kept
        return result

    async def get_devices(self) -> list[Device]:
        result = await self.collect_devices()
        return [device for devices in result.succeeded.values() for device in devices]

    async def get_device(self, device_id: str) -> Device | None:
        for adapter_id, adapter in self._adapters.items():
            try:
                device = await adapter.get_device(device_id)
            except Exception as exc:
                _LOGGER.debug("Device %s lookup failed on %s: %s", device_id, adapter_id, exc)
                continue
            if device is not None:
                return device
        return None

    async def execute_command(self, command: LightCommand) -> None:
        """Send ``command`` through the first adapter that owns the device.

        Adapters are asked in registration order; an adapter that errors
        while looking the device up or executing is logged and skipped.

        Raises:
            DeviceNotFound: No adapter recognizes ``command.device_id``
            CommandExecutionFailed: Every owning adapter failed
            InvalidParameter: The command parameters are malformed
            UnsupportedCommand: The owning adapter cannot express the command
        """
        if not self.initialized:
            await self.initialize()

        last_error: Exception | None = None
        owners = 0
        for adapter_id, adapter in self._adapters.items():
            try:
                device = await adapter.get_device(command.device_id)
            except Exception as exc:
                _LOGGER.debug("Device lookup failed on %s: %s", adapter_id, exc)
                continue
            if device is None:
                continue

            owners += 1
            try:
                await adapter.execute_command(command)
                return
            except (InvalidParameter, UnsupportedCommand):
                raise
            except Exception as exc:
                _LOGGER.debug("Command failed on adapter %s: %s", adapter_id, exc)
                last_error = exc

        if owners == 0:
            raise DeviceNotFound(
                f"Device not found: {command.device_id}",
                {"device_id": command.device_id},
            )
        raise CommandExecutionFailed(
            f"Failed to execute command on device {command.device_id}: "
            "no adapter could handle the command",
            {"device_id": command.device_id},
        ) from last_error

    async def handle_event(self, event: LightEvent) -> None:
        if not self.initialized:
            await self.initialize()

        _LOGGER.debug("Handling event: %s", event.type)
        for adapter_id, adapter in self._adapters.items():
            try:
                await adapter.handle_event(event)
            except Exception as exc:
                _LOGGER.error("Error handling event in adapter %s: %s", adapter_id, exc)

    async def turn_on(self, device_id: str) -> None:
        await self.execute_command(LightCommand.turn_on(device_id))

    async def turn_off(self, device_id: str) -> None:
        await self.execute_command(LightCommand.turn_off(device_id))

    async def set_color(self, device_id: str, color: str) -> None:
        await self.execute_command(LightCommand.set_color(color, device_id))

    async def set_brightness(self, device_id: str, brightness: int) -> None:
        await self.execute_command(LightCommand.set_brightness(brightness, device_id))

    async def close(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()

    async def __aenter__(self) -> LightManager:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
