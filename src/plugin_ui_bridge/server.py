"""Plugin UI server side of the bridge.

The server process owns the application request handlers. The UI calls them
by path; every call gets exactly one response. The server can also push
events to the UI at any time.

Usage:
    server = PluginUiServer(transport)
    server.on_request("/hello", lambda body: {"hello": "world"})
    server.attach()
    await server.ready()  # tell the host the server accepts requests

Subclassing works too:
    class MyServer(PluginUiServer):
        def setup(self) -> None:
            self.on_request("/token", self.generate_token)
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .config import ServerEnvironment
from .errors import ProtocolError, RequestError, TransportClosedError
from .protocol import ReadyMessage, RequestMessage, ResponseMessage, StreamMessage, parse_message
from .transport import Transport

logger = logging.getLogger(__name__)

# A handler gets the request body and returns (or resolves to) the response data
RequestHandler = Callable[[Any], "Any | Awaitable[Any]"]

NOT_FOUND = "Not Found"


class RequestHandlerRegistry:
    """Routing table from request path to handler.

    One handler per path; registering a path again replaces the handler.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, RequestHandler] = {}

    def register(self, path: str, handler: RequestHandler) -> None:
        if not callable(handler):
            raise TypeError(f"Handler for {path!r} must be callable")
        if path in self._handlers:
            logger.debug(f"Replacing handler for {path}")
        self._handlers[path] = handler

    def unregister(self, path: str) -> bool:
        return self._handlers.pop(path, None) is not None

    def get(self, path: str) -> RequestHandler | None:
        return self._handlers.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self._handlers

    @property
    def paths(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, request: RequestMessage) -> ResponseMessage:
        """Run the handler for ``request`` and build its response. Never raises."""
        request_id = request.request_id or ""
        handler = self._handlers.get(request.path)
        if handler is None:
            logger.error(f"No registered handler: {request.path}")
            return ResponseMessage.failure(request_id, {"message": NOT_FOUND, "path": request.path})

        logger.info(f"Incoming request: {request.path}")
        body = request.body if request.body is not None else {}
        try:
            result = handler(body)
            if inspect.isawaitable(result):
                result = await result
        except RequestError as e:
            return ResponseMessage.failure(
                request_id, {"message": e.message, "error": e.request_error}
            )
        except Exception as e:
            logger.exception(f"Error handling request {request.path}: {e}")
            return ResponseMessage.failure(request_id, {"message": str(e)})

        return ResponseMessage.ok(request_id, result)


class PluginUiServer:
    """Server-side bridge endpoint.

    Inbound requests run as independent tasks, so a slow handler never
    delays other requests or push events.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        registry: RequestHandlerRegistry | None = None,
        environment: ServerEnvironment | None = None,
    ) -> None:
        self._transport = transport
        self.registry = registry or RequestHandlerRegistry()
        self.environment = environment or ServerEnvironment.from_env()
        self._in_flight: set[asyncio.Task[None]] = set()
        self._detach: Callable[[], None] | None = None
        self.setup()

    def setup(self) -> None:
        """Hook for subclasses to register their request handlers."""
        pass

    # =========================================================================
    # Environment metadata
    # =========================================================================

    @property
    def storage_path(self) -> str | None:
        return self.environment.storage_path

    @property
    def config_path(self) -> str | None:
        return self.environment.config_path

    @property
    def ui_version(self) -> str | None:
        return self.environment.ui_version

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def attach(self) -> None:
        """Start receiving requests from the transport."""
        if self._detach is None:
            self._detach = self._transport.on_message(self.handle_message)

    async def close(self) -> None:
        """Detach and cancel handlers still running."""
        if self._detach is not None:
            self._detach()
            self._detach = None
        for task in list(self._in_flight):
            task.cancel()
        for task in list(self._in_flight):
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def __aenter__(self) -> PluginUiServer:
        self.attach()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def drain(self) -> None:
        """Wait until every in-flight request has been answered."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    # =========================================================================
    # Public API
    # =========================================================================

    def on_request(self, path: str, handler: RequestHandler) -> None:
        """Register the handler for ``path``, replacing any previous one."""
        self.registry.register(path, handler)

    async def ready(self) -> None:
        """Tell the host this server is ready to receive requests."""
        await self._transport.send(ReadyMessage().to_wire())

    async def push_event(self, event: str, data: Any = None) -> None:
        """Push an event to every UI listener registered for ``event``."""
        await self._transport.send(StreamMessage(event=event, data=data).to_wire())

    # =========================================================================
    # Inbound dispatch
    # =========================================================================

    def handle_message(self, raw: Any, origin: str | None = None) -> None:
        try:
            message = parse_message(raw)
        except ProtocolError as e:
            logger.info(f"Ignoring message: {e}")
            return

        match message:
            case RequestMessage():
                if not message.request_id:
                    logger.warning(f"Dropping request for {message.path} without requestId")
                    return
                task = asyncio.ensure_future(self._process_request(message))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)

            case _:
                logger.info(f"Ignoring {message.action} message sent to the server")

    async def _process_request(self, request: RequestMessage) -> None:
        response = await self.registry.dispatch(request)
        try:
            wire = response.to_wire()
        except Exception as e:
            logger.exception(f"Cannot serialize response for {request.path}: {e}")
            wire = ResponseMessage.failure(response.request_id, {"message": str(e)}).to_wire()
        try:
            await self._transport.send(wire)
        except TransportClosedError:
            logger.warning(f"Transport closed before responding to {request.path}")
