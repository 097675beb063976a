"""Exception hierarchy shared by adapters, the light manager and effects."""

from __future__ import annotations

from typing import Any


class LuxError(Exception):
    """Base class for all lux-aeternum errors."""


class AdapterError(LuxError):
    """Error raised by a device adapter.

    Attributes:
        code: Stable machine-readable error code (e.g. ``DEVICE_NOT_FOUND``)
        details: Optional structured context for logging
    """

    code = "ADAPTER_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class InitializationFailed(AdapterError):
    code = "INITIALIZATION_FAILED"


class DeviceFetchFailed(AdapterError):
    code = "DEVICE_FETCH_FAILED"


class DeviceNotFound(AdapterError):
    code = "DEVICE_NOT_FOUND"


class NotInitialized(AdapterError):
    code = "NOT_INITIALIZED"


class NotAuthenticated(AdapterError):
    code = "NOT_AUTHENTICATED"


class LinkButtonNotPressed(AdapterError):
    code = "LINK_BUTTON_NOT_PRESSED"


class InvalidParameter(AdapterError):
    code = "INVALID_PARAMETER"


class UnsupportedCommand(AdapterError):
    code = "UNSUPPORTED_COMMAND"


class CommandSendFailed(AdapterError):
    code = "COMMAND_SEND_FAILED"


class CommandExecutionFailed(AdapterError):
    code = "COMMAND_EXECUTION_FAILED"


class ConfigError(LuxError):
    """The configuration file is malformed."""
