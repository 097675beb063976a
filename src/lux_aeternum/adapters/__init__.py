"""Vendor adapters implementing the uniform device contract."""

from __future__ import annotations

from typing import Any

from lux_aeternum.adapters.base import AdapterConfig, BaseLightAdapter
from lux_aeternum.adapters.govee import GoveeAdapter
from lux_aeternum.adapters.hue import PhilipsHueAdapter

ADAPTER_TYPES: dict[str, type[BaseLightAdapter]] = {
    "govee": GoveeAdapter,
    "philips-hue": PhilipsHueAdapter,
}


def create_adapter(adapter_type: str, *args: Any, **options: Any) -> BaseLightAdapter:
    """Instantiate an adapter by its type name.

    Raises:
        ValueError: If ``adapter_type`` is not a known vendor
    """
    try:
        cls = ADAPTER_TYPES[adapter_type]
    except KeyError:
        known = ", ".join(sorted(ADAPTER_TYPES))
        raise ValueError(f"Unknown adapter type: {adapter_type!r}. Available: {known}") from None
    return cls(*args, **options)


__all__ = [
    "AdapterConfig",
    "BaseLightAdapter",
    "GoveeAdapter",
    "PhilipsHueAdapter",
    "create_adapter",
]
