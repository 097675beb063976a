"""Event-driven lighting effects with timed restoration."""

from lux_aeternum.effects.dispatcher import DEFAULT_EFFECTS, EffectDispatcher
from lux_aeternum.effects.registry import EffectHandle, EffectRegistry
from lux_aeternum.effects.timers import TimerQueue, TimerToken

__all__ = [
    "DEFAULT_EFFECTS",
    "EffectDispatcher",
    "EffectHandle",
    "EffectRegistry",
    "TimerQueue",
    "TimerToken",
]
