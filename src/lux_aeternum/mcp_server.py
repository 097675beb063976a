"""FastMCP server exposing light control and game effects as tools."""

from __future__ import annotations

from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from lux_aeternum.config import build_dispatcher, build_manager, load_config
from lux_aeternum.effects import EffectDispatcher
from lux_aeternum.exceptions import LuxError
from lux_aeternum.manager import LightManager
from lux_aeternum.models import Device, GameEvent

mcp = FastMCP(
    "lux-aeternum",
    instructions="Control Govee and Philips Hue lights and trigger game lighting effects",
)

# Kept for the server's lifetime so restoration timers can fire.
_dispatcher: EffectDispatcher | None = None


@asynccontextmanager
async def _open_manager():
    manager = build_manager(load_config())
    try:
        await manager.initialize()
        yield manager
    finally:
        await manager.close()


async def _targets(manager: LightManager, device_ids: list[str] | None) -> list[Device]:
    devices = await manager.get_devices()
    if not device_ids:
        return devices
    return [d for d in devices if d.id in device_ids or d.name in device_ids]


async def _for_each(device_ids: list[str] | None, action) -> list[str]:
    results = []
    async with _open_manager() as manager:
        for device in await _targets(manager, device_ids):
            try:
                await action(manager, device.id)
                results.append(f"{device.name}: ok")
            except LuxError as e:
                results.append(f"{device.name}: error — {e}")
    return results


async def _get_dispatcher() -> EffectDispatcher:
    global _dispatcher
    if _dispatcher is None:
        config = load_config()
        dispatcher = build_dispatcher(config, build_manager(config))
        await dispatcher.initialize()
        _dispatcher = dispatcher
    return _dispatcher


@mcp.tool()
async def list_devices() -> str:
    """List every light known to the configured adapters with its current state."""
    results = []
    async with _open_manager() as manager:
        for device in await manager.get_devices():
            brightness = "?" if device.brightness is None else f"{device.brightness}%"
            results.append(
                f"{device.id} {device.name} ({device.brand}): "
                f"{'on' if device.is_on else 'off'}, brightness={brightness}, "
                f"color={device.color or '?'}"
            )
    return "\n".join(results) or "No devices found."


@mcp.tool()
async def turn_on(device_ids: list[str] | None = None) -> str:
    """Turn on all (or specified) lights.

    Args:
        device_ids: Optional list of device IDs or names.
    """
    return "\n".join(await _for_each(device_ids, lambda m, i: m.turn_on(i))) or "No devices found."


@mcp.tool()
async def turn_off(device_ids: list[str] | None = None) -> str:
    """Turn off all (or specified) lights.

    Args:
        device_ids: Optional list of device IDs or names.
    """
    return "\n".join(await _for_each(device_ids, lambda m, i: m.turn_off(i))) or "No devices found."


@mcp.tool()
async def set_color(color: str, device_ids: list[str] | None = None) -> str:
    """Set the color of all (or specified) lights.

    Args:
        color: Hex color such as "#FF8800".
        device_ids: Optional list of device IDs or names.
    """
    results = await _for_each(device_ids, lambda m, i: m.set_color(i, color))
    return "\n".join(results) or "No devices found."


@mcp.tool()
async def set_brightness(brightness: int, device_ids: list[str] | None = None) -> str:
    """Set brightness of all (or specified) lights.

    Args:
        brightness: Brightness level 0-100.
        device_ids: Optional list of device IDs or names.
    """
    results = await _for_each(device_ids, lambda m, i: m.set_brightness(i, brightness))
    return "\n".join(results) or "No devices found."


@mcp.tool()
async def trigger_event(event_type: str, player_name: str | None = None) -> str:
    """Dispatch a game event through the effect engine.

    Timed effects revert on their own while the server keeps running.
    Built-in events: player:join, player:levelUp, match:victory, match:defeat.

    Args:
        event_type: Event name, e.g. "match:victory".
        player_name: Optional player the event refers to.
    """
    dispatcher = await _get_dispatcher()
    if not dispatcher.registry.effects_for(event_type):
        known = ", ".join(sorted(dispatcher.registry.event_types))
        return f"No effects registered for {event_type!r}. Known events: {known}"
    await dispatcher.handle_event(GameEvent(event_type, player_name=player_name))
    return f"Event {event_type!r} dispatched."


def main():
    """Entry point for the MCP server."""
    mcp.run()
