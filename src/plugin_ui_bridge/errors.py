"""Exception types raised across the bridge."""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base class for all bridge errors."""

    pass


class RequestError(BridgeError):
    """A declared request handler failure.

    Raise this from a request handler to send a structured failure to the UI.
    The response carries both the message and the caller-defined payload:

        raise RequestError("Failed to Generate Token", {"message": str(e)})

    becomes ``{"message": "Failed to Generate Token", "error": {...}}``.
    """

    def __init__(self, message: str, request_error: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.request_error = request_error


class RequestFailedError(BridgeError):
    """A correlated request was answered with ``success=false``.

    ``data`` is the failure payload exactly as the controller sent it.
    """

    def __init__(self, data: Any) -> None:
        self.data = data
        super().__init__(self.message)

    @property
    def message(self) -> str:
        if isinstance(self.data, dict) and self.data.get("message"):
            return str(self.data["message"])
        return "Request failed"

    @property
    def error(self) -> Any:
        """The declared error payload, if the handler raised a RequestError."""
        if isinstance(self.data, dict):
            return self.data.get("error")
        return None

    @property
    def path(self) -> str | None:
        if isinstance(self.data, dict):
            return self.data.get("path")
        return None


class ProtocolError(BridgeError):
    """An inbound message could not be parsed or has an unknown action."""

    def __init__(self, message: str, raw: Any = None) -> None:
        super().__init__(message)
        self.raw = raw


class BridgeClosedError(BridgeError):
    """The bridge was closed while a request was still pending."""

    pass


class TransportClosedError(BridgeError, ConnectionError):
    """A message was sent on a transport that is no longer connected."""

    pass
