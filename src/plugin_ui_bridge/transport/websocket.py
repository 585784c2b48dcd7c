"""WebSocket transports for UIs running in a browser context.

Each text frame carries one JSON message. Two renditions share the framing:

- ``WebSocketTransport`` wraps a ``websockets`` connection (client side, or
  a connection accepted by ``websockets.serve``)
- ``StarletteWebSocketTransport`` wraps a Starlette ``WebSocket`` inside an
  ASGI route on the host
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import websockets
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState
from websockets.exceptions import ConnectionClosed

from .base import BaseTransport

logger = logging.getLogger(__name__)


def _decode(data: str | bytes) -> Any:
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return json.loads(data)


class WebSocketTransport(BaseTransport):
    """Transport over a ``websockets`` connection."""

    def __init__(self, websocket: Any, origin: str | None = None) -> None:
        super().__init__()
        self._websocket = websocket
        self.origin = origin
        self._receive_task: asyncio.Task[None] | None = None

    @classmethod
    async def connect(cls, url: str, **kwargs: Any) -> WebSocketTransport:
        """Open a client connection and start receiving."""
        websocket = await websockets.connect(url, **kwargs)
        transport = cls(websocket, origin=url)
        transport.start()
        return transport

    def start(self) -> None:
        if self._receive_task is not None:
            return
        self._connected = True
        self._receive_task = asyncio.create_task(self._receive_loop())

    async def wait_closed(self) -> None:
        if self._receive_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._receive_task

    async def _receive_loop(self) -> None:
        try:
            async for data in self._websocket:
                try:
                    message = _decode(data)
                except (json.JSONDecodeError, UnicodeDecodeError) as e:
                    logger.warning(f"Invalid WebSocket message: {e}")
                    continue
                self._deliver(message, self.origin)
        except ConnectionClosed:
            pass
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"WebSocket receive loop error: {e}")
        finally:
            self._notify_disconnect()

    async def _do_send(self, message: dict[str, Any], target_origin: str) -> None:
        await self._websocket.send(json.dumps(message))

    async def _do_close(self) -> None:
        self._connected = False
        task, self._receive_task = self._receive_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._websocket.close()


class StarletteWebSocketTransport(BaseTransport):
    """Transport over a Starlette ``WebSocket`` accepted by the host app.

    Usage (inside a websocket route):
        transport = StarletteWebSocketTransport(websocket)
        await transport.accept()
        server = PluginUiServer(transport)
        server.attach()
        await transport.run()  # returns when the browser disconnects
    """

    def __init__(self, websocket: WebSocket) -> None:
        super().__init__()
        self._websocket = websocket
        self._send_lock = asyncio.Lock()
        self.origin = websocket.headers.get("origin")

    @property
    def is_connected(self) -> bool:
        return self._connected and self._websocket.client_state == WebSocketState.CONNECTED

    async def accept(self) -> None:
        await self._websocket.accept()
        self._connected = True

    async def run(self) -> None:
        """Receive frames until the client disconnects."""
        try:
            while self._connected:
                text = await self._websocket.receive_text()
                try:
                    message = _decode(text)
                except json.JSONDecodeError as e:
                    logger.warning(f"Invalid WebSocket message: {e}")
                    continue
                self._deliver(message, self.origin)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.exception(f"WebSocket receive error: {e}")
        finally:
            self._notify_disconnect()

    async def _do_send(self, message: dict[str, Any], target_origin: str) -> None:
        async with self._send_lock:
            await self._websocket.send_text(json.dumps(message))

    async def _do_close(self) -> None:
        self._connected = False
        if self._websocket.client_state == WebSocketState.CONNECTED:
            await self._websocket.close()
