"""
Error types for pagepulse.

Only ConfigurationError is allowed to reach the host application; every
other error is raised and absorbed inside the component that owns it.
"""

from __future__ import annotations


class PagePulseError(Exception):
    """Base exception for all pagepulse errors."""

    def __init__(self, message: str, *, detail: dict[str, object] | None = None):
        self.message = message
        self.detail = detail or {}
        super().__init__(message)


class ConfigurationError(PagePulseError):
    """
    Raised when monitor configuration is malformed.

    Examples:
    - Budget entry with a non-positive threshold
    - Buffer capacity below 1
    - Unknown severity ordering (medium ratio above high ratio)
    """


class InstrumentationUnavailable(PagePulseError):
    """Raised by a host when a performance API is missing or unsupported."""

    def __init__(self, api: str, reason: str = "not supported"):
        self.api = api
        super().__init__(f"{api}: {reason}", detail={"api": api})


class DeliveryError(PagePulseError):
    """Raised inside a transport when a batch could not be delivered."""

    def __init__(self, message: str, *, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message, detail={"status_code": status_code})
