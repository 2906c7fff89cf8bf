"""Errors raised while configuring and running a sweep.

Only ``ConfigurationError`` aborts a run. The others are caught per device
or per operation and end up as text in the report.
"""


class ScanError(Exception):
    """Base class for all sweep errors."""


class ConfigurationError(ScanError, ValueError):
    """A scan parameter is out of range."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class DeviceConnectionError(ScanError):
    """The link to a device could not be established."""


class ReadError(ScanError):
    """A read operation failed (timeout, I/O fault, exception response)."""


class DecodeError(ScanError):
    """A payload is too short for the requested decode type."""
