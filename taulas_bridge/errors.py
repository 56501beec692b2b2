"""Error taxonomy for the serial bridge."""

from __future__ import annotations


class BridgeError(Exception):
    """Base error for taulas-bridge."""


class ConfigError(BridgeError):
    """Raised when a startup setting is missing or out of range."""


class DiscoveryFailure(BridgeError):
    """Raised when no candidate path answered the identity query."""


class TransportError(BridgeError):
    """Base transport error."""


class TransportOpenFailure(TransportError):
    """Raised when a serial path cannot be opened or configured."""


class TransportWriteFailure(TransportError):
    """Raised when a command frame could not be written in full."""


class TransportReadFailure(TransportError):
    """Raised when the serial device errors out during a read."""


class ProtocolParseFailure(BridgeError):
    """Raised when a reply frame does not carry the expected JSON."""

    def __init__(self, message: str, payload: str = "") -> None:
        super().__init__(message)
        self.payload = payload


class RemoteCallbackFailure(BridgeError):
    """Raised when an alert could not be forwarded to the callback URL."""
