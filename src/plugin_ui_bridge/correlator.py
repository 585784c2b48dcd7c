"""Request/response correlation for the UI side of the bridge.

Each outgoing request gets a fresh ``requestId`` and a pending future. A
one-shot listener keyed by that id is put on the event bus *before* the
request is sent, so a response delivered immediately can never be missed.
Responses are matched by id only; arrival order is irrelevant.

There is no timeout. A request the controller never answers stays pending
until the correlator is closed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .bus import EventTarget, Listener
from .errors import BridgeClosedError, RequestFailedError
from .ids import IdGenerator
from .protocol import CorrelatedMessage, ResponseMessage

logger = logging.getLogger(__name__)

SendFn = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass
class PendingRequest:
    """A request waiting for its response."""

    request_id: str
    action: str
    future: asyncio.Future[Any]
    listener: Listener


class Correlator:
    """Pairs outstanding requests with their responses.

    Usage:
        correlator = Correlator(bus, send)
        data = await correlator.issue(RequestMessage(path="/hello", body={}))

    Raises ``RequestFailedError`` (carrying the response ``data``) when the
    controller answers with ``success=false``.
    """

    def __init__(
        self,
        bus: EventTarget,
        send: SendFn,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._bus = bus
        self._send = send
        self._new_id = id_factory or IdGenerator()
        self._pending: dict[str, PendingRequest] = {}
        self._closed = False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    def _generate_id(self) -> str:
        request_id = self._new_id()
        while request_id in self._pending:
            logger.warning(f"Request id collision on {request_id}, regenerating")
            request_id = self._new_id()
        return request_id

    async def issue(self, message: CorrelatedMessage) -> Any:
        """Send a correlated message and wait for its response.

        Returns:
            The response ``data`` when ``success`` is true

        Raises:
            RequestFailedError: The controller reported a failure
            BridgeClosedError: The correlator was closed first
        """
        if self._closed:
            raise BridgeClosedError("Correlator is closed")

        request_id = self._generate_id()
        message = message.model_copy(update={"request_id": request_id})

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def on_response(response: Any) -> None:
            self._settle(request_id, response)

        # Register before sending so a same-tick response is not lost
        self._bus.add_listener(request_id, on_response)
        self._pending[request_id] = PendingRequest(
            request_id=request_id,
            action=message.action,
            future=future,
            listener=on_response,
        )

        try:
            await self._send(message.to_wire())
        except Exception:
            self._discard(request_id)
            raise

        logger.debug(f"Issued {message.action} (requestId={request_id})")
        # A cancelled caller leaves the entry in place until the response arrives
        return await future

    def _settle(self, request_id: str, response: Any) -> None:
        pending = self._discard(request_id)
        if pending is None:
            return

        if pending.future.done():
            logger.debug(f"Response for {request_id} arrived after the caller gave up")
            return

        if not isinstance(response, ResponseMessage):
            pending.future.set_exception(
                RequestFailedError({"message": f"Malformed response for {request_id}"})
            )
            return

        if response.success:
            pending.future.set_result(response.data)
        else:
            pending.future.set_exception(RequestFailedError(response.data))

    def _discard(self, request_id: str) -> PendingRequest | None:
        pending = self._pending.pop(request_id, None)
        if pending is not None:
            self._bus.remove_listener(request_id, pending.listener)
        return pending

    def close(self) -> int:
        """Fail every pending request with ``BridgeClosedError``.

        Returns:
            Number of requests that were still waiting
        """
        self._closed = True
        count = 0
        for request_id in list(self._pending):
            pending = self._discard(request_id)
            if pending is not None and not pending.future.done():
                pending.future.set_exception(
                    BridgeClosedError(f"Bridge closed before {pending.action} was answered")
                )
                count += 1
        return count
