"""Click CLI for lux-aeternum light control."""

from __future__ import annotations

import asyncio
import sys
from contextlib import asynccontextmanager

import click

from lux_aeternum.config import AppConfig, build_dispatcher, build_manager, load_config
from lux_aeternum.divina import DivinaL3Adapter
from lux_aeternum.exceptions import LuxError
from lux_aeternum.logging import configure_logging
from lux_aeternum.manager import LightManager
from lux_aeternum.models import Device, GameEvent
from lux_aeternum.sync import ProfileSyncService


def _run(coro):
    """Run an async coroutine synchronously, turning lux errors into exit 1."""
    try:
        return asyncio.run(coro)
    except LuxError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)


@asynccontextmanager
async def _open_manager(config: AppConfig):
    manager = build_manager(config)
    try:
        await manager.initialize()
        yield manager
    finally:
        await manager.close()


async def _targets(manager: LightManager, ids: tuple[str, ...] | None) -> list[Device]:
    devices = await manager.get_devices()
    if not ids:
        return devices
    return [d for d in devices if d.id in ids or d.name in ids]


def _format_device(device: Device) -> str:
    state = "on" if device.is_on else "off"
    brightness = "?" if device.brightness is None else f"{device.brightness}%"
    return (
        f"{device.id} {device.name} ({device.brand} {device.model}): "
        f"{state}, brightness={brightness}, color={device.color or '?'}"
    )


@click.group()
@click.option("--device", "-d", multiple=True, help="Target specific device(s) by ID or name.")
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="Config file path.")
@click.option("--log-level", default=None, help="Override the configured log level.")
@click.pass_context
def cli(ctx, device, config_file, log_level):
    """Control Govee and Philips Hue lights and game-driven effects."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_file)
    except LuxError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)
    configure_logging(log_level or config.logging.level, config.logging.format)
    ctx.obj["config"] = config
    ctx.obj["devices"] = device if device else None


@cli.command()
@click.pass_context
def devices(ctx):
    """List devices from every configured adapter."""

    async def _devices():
        async with _open_manager(ctx.obj["config"]) as manager:
            result = await manager.collect_devices()
            for device_list in result.succeeded.values():
                for device in device_list:
                    click.echo(_format_device(device))
            for adapter_id, error in result.failed:
                click.echo(f"{adapter_id}: error — {error}", err=True)

    _run(_devices())


def _for_each(ctx, label: str, action):
    async def _apply():
        async with _open_manager(ctx.obj["config"]) as manager:
            failed = False
            for device in await _targets(manager, ctx.obj["devices"]):
                try:
                    await action(manager, device.id)
                    click.echo(f"{device.name}: {label}")
                except LuxError as e:
                    failed = True
                    click.echo(f"{device.name}: error — {e}", err=True)
            return failed

    if _run(_apply()):
        sys.exit(1)


@cli.command()
@click.pass_context
def on(ctx):
    """Turn lights on."""
    _for_each(ctx, "on", lambda m, device_id: m.turn_on(device_id))


@cli.command()
@click.pass_context
def off(ctx):
    """Turn lights off."""
    _for_each(ctx, "off", lambda m, device_id: m.turn_off(device_id))


@cli.command()
@click.argument("value")
@click.pass_context
def color(ctx, value):
    """Set color as #RRGGBB."""
    _for_each(ctx, f"color={value}", lambda m, device_id: m.set_color(device_id, value))


@cli.command()
@click.argument("value", type=int)
@click.pass_context
def brightness(ctx, value):
    """Set brightness (0-100)."""
    _for_each(ctx, f"brightness={value}%", lambda m, device_id: m.set_brightness(device_id, value))


@cli.command()
@click.argument("event_type")
@click.option("--player", default=None, help="Player name attached to the event.")
@click.option("--wait", is_flag=True, help="Stay until timed effects have been restored.")
@click.pass_context
def emit(ctx, event_type, player, wait):
    """Dispatch a game event (e.g. match:victory) through the effect engine."""

    async def _emit():
        async with _open_manager(ctx.obj["config"]) as manager:
            dispatcher = build_dispatcher(ctx.obj["config"], manager)
            await dispatcher.initialize()
            try:
                await dispatcher.handle_event(GameEvent(event_type, player_name=player))
                click.echo(f"Dispatched {event_type}.")
                while wait and len(dispatcher.timers):
                    await asyncio.sleep(0.1)
            finally:
                await dispatcher.dispose()

    _run(_emit())


@cli.command()
@click.option("--once", is_flag=True, help="Run a single sync pass and exit.")
@click.pass_context
def sync(ctx, once):
    """Sync lights with the Divina-L3 profile."""
    config: AppConfig = ctx.obj["config"]

    async def _sync():
        async with _open_manager(config) as manager:
            dispatcher = build_dispatcher(config, manager)
            divina = DivinaL3Adapter(
                manager,
                auth_token=config.divina.auth_token or None,
                base_url=config.divina.base_url,
                enable_realtime_sync=config.divina.realtime and not once,
                reconnect_attempts=config.divina.reconnect_attempts,
            )
            service = ProfileSyncService(divina, dispatcher, manager, interval=config.sync.interval)
            try:
                if once:
                    await service.sync_all()
                    profile = service.active_profile
                    click.echo(f"Applied profile: {profile.name}" if profile else "No profile to apply.")
                    return
                await service.initialize()
                click.echo(f"Syncing every {service.interval}s, press Ctrl+C to stop.")
                await asyncio.Event().wait()
            finally:
                await service.dispose()
                await dispatcher.dispose()
                await divina.dispose()

    try:
        _run(_sync())
    except KeyboardInterrupt:
        pass
