"""Lux Aeternum: unified smart-lighting control with game-driven effects."""

from lux_aeternum.adapters import GoveeAdapter, PhilipsHueAdapter, create_adapter
from lux_aeternum.config import load_config, build_manager
from lux_aeternum.effects import EffectDispatcher, EffectRegistry
from lux_aeternum.manager import LightManager
from lux_aeternum.models import Device, Effect, GameEvent, GameEventType, LightCommand

__all__ = [
    "Device",
    "Effect",
    "GameEvent",
    "GameEventType",
    "LightCommand",
    "LightManager",
    "GoveeAdapter",
    "PhilipsHueAdapter",
    "create_adapter",
    "EffectDispatcher",
    "EffectRegistry",
    "load_config",
    "build_manager",
]
