"""Transport abstraction.

The bridge only needs a message-passing primitive from the host: send one
JSON-compatible object, get told about inbound objects, and learn when the
other side has gone away. Framing, encoding and connection management belong
to the concrete transport.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from ..errors import TransportClosedError

logger = logging.getLogger(__name__)

# Called with the decoded message and the sender origin (None when unknown)
MessageHandler = Callable[[dict[str, Any], "str | None"], None]
DisconnectHandler = Callable[[], None]

ANY_ORIGIN = "*"


@runtime_checkable
class Transport(Protocol):
    """Protocol for all bridge transports.

    All transports must implement:
    - is_connected: Whether the other side is still reachable
    - send: Deliver one message, optionally only to a given origin
    - on_message / on_disconnect: Register inbound and loss handlers,
      each returning an unsubscribe function
    - close: Release the underlying channel
    """

    @property
    def is_connected(self) -> bool: ...

    async def send(self, message: dict[str, Any], target_origin: str = ANY_ORIGIN) -> None: ...

    def on_message(self, handler: MessageHandler) -> Callable[[], None]: ...

    def on_disconnect(self, handler: DisconnectHandler) -> Callable[[], None]: ...

    async def close(self) -> None: ...


class BaseTransport(ABC):
    """Base class for transports with handler bookkeeping.

    Provides:
    - Handler registration with unsubscribe functions
    - Fan-out of inbound messages, isolating failing handlers
    - One-time disconnect notification
    """

    def __init__(self) -> None:
        self._message_handlers: list[MessageHandler] = []
        self._disconnect_handlers: list[DisconnectHandler] = []
        self._connected = False
        self._disconnected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def on_message(self, handler: MessageHandler) -> Callable[[], None]:
        self._message_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._message_handlers:
                self._message_handlers.remove(handler)

        return unsubscribe

    def on_disconnect(self, handler: DisconnectHandler) -> Callable[[], None]:
        self._disconnect_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._disconnect_handlers:
                self._disconnect_handlers.remove(handler)

        return unsubscribe

    async def send(self, message: dict[str, Any], target_origin: str = ANY_ORIGIN) -> None:
        """Send a message.

        Raises:
            TransportClosedError: If the transport is not connected
        """
        if not self._connected:
            raise TransportClosedError(f"{self.__class__.__name__} is not connected")
        await self._do_send(message, target_origin)

    async def close(self) -> None:
        """Close the channel and notify disconnect handlers once."""
        if self._disconnected:
            return
        try:
            await self._do_close()
        finally:
            self._notify_disconnect()

    def _deliver(self, message: Any, origin: str | None = None) -> None:
        """Hand an inbound message to every registered handler."""
        if not isinstance(message, dict):
            logger.warning(f"Dropping non-object message: {message!r:.80}")
            return
        for handler in list(self._message_handlers):
            try:
                handler(message, origin)
            except Exception:
                logger.exception("Error in transport message handler")

    def _notify_disconnect(self) -> None:
        if self._disconnected:
            return
        self._disconnected = True
        self._connected = False
        logger.info(f"{self.__class__.__name__} disconnected")
        for handler in list(self._disconnect_handlers):
            try:
                handler()
            except Exception:
                logger.exception("Error in transport disconnect handler")

    @abstractmethod
    async def _do_send(self, message: dict[str, Any], target_origin: str) -> None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    async def _do_close(self) -> None:
        """Implementation-specific close logic."""
        ...
