"""Exceptions shared by the core and the adapters."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error raised by crosstalk."""


class ConfigurationError(BridgeError):
    """Invalid configuration. Always raised before any connection is attempted."""


class BridgeConnectionError(BridgeError):
    """A client could not be brought into a usable state at startup."""


class SendError(BridgeError):
    """A single outbound send failed. Callers log it and move on."""
