"""Unit tests for WebSocket transports.

Tests both renditions with stand-in connections:
- websockets connection wrapper (frames in, frames out, close)
- Starlette WebSocket wrapper (accept, receive until disconnect, origin)
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from plugin_ui_bridge.transport.websocket import StarletteWebSocketTransport, WebSocketTransport

# =============================================================================
# Helpers
# =============================================================================


class FakeConnection:
    """Async-iterable stand-in for a ``websockets`` connection."""

    def __init__(self, frames: list[str | bytes], hold_open: bool = False) -> None:
        self._frames = list(frames)
        self._hold_open = hold_open
        self._closed = asyncio.Event()
        self.sent: list[str] = []
        self.close = AsyncMock(side_effect=self._close)

    async def _close(self) -> None:
        self._closed.set()

    async def send(self, data: str) -> None:
        self.sent.append(data)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._frames:
            return self._frames.pop(0)
        if self._hold_open:
            await self._closed.wait()
        raise StopAsyncIteration


def make_starlette_socket(frames: list[str], origin: str | None = "http://localhost:8581") -> MagicMock:
    websocket = MagicMock()
    websocket.headers = {"origin": origin} if origin else {}
    websocket.client_state = WebSocketState.CONNECTED
    websocket.accept = AsyncMock()
    websocket.send_text = AsyncMock()
    websocket.close = AsyncMock()
    websocket.receive_text = AsyncMock(side_effect=[*frames, WebSocketDisconnect(code=1001)])
    return websocket


# =============================================================================
# WebSocketTransport
# =============================================================================


class TestWebSocketTransport:
    @pytest.mark.asyncio
    async def test_receives_text_and_binary_frames(self):
        connection = FakeConnection(['{"action": "ready"}', b'{"action": "stream", "event": "e"}'])
        transport = WebSocketTransport(connection, origin="ws://host")
        received = []
        transport.on_message(lambda message, origin: received.append((message["action"], origin)))

        transport.start()
        await asyncio.wait_for(transport.wait_closed(), timeout=1)

        assert received == [("ready", "ws://host"), ("stream", "ws://host")]

    @pytest.mark.asyncio
    async def test_invalid_frame_skipped(self):
        connection = FakeConnection(["{broken", '{"ok": 1}'])
        transport = WebSocketTransport(connection)
        received = []
        transport.on_message(lambda message, origin: received.append(message))

        transport.start()
        await asyncio.wait_for(transport.wait_closed(), timeout=1)

        assert received == [{"ok": 1}]

    @pytest.mark.asyncio
    async def test_end_of_stream_disconnects(self):
        transport = WebSocketTransport(FakeConnection([]))
        lost = MagicMock()
        transport.on_disconnect(lost)

        transport.start()
        await asyncio.wait_for(transport.wait_closed(), timeout=1)

        lost.assert_called_once_with()
        assert not transport.is_connected

    @pytest.mark.asyncio
    async def test_send_serializes_json(self):
        connection = FakeConnection([], hold_open=True)
        transport = WebSocketTransport(connection)
        transport.start()

        await transport.send({"action": "ready"})

        assert [json.loads(frame) for frame in connection.sent] == [{"action": "ready"}]
        await transport.close()

    @pytest.mark.asyncio
    async def test_close_closes_connection(self):
        connection = FakeConnection([], hold_open=True)
        transport = WebSocketTransport(connection)
        lost = MagicMock()
        transport.on_disconnect(lost)
        transport.start()

        await transport.close()

        connection.close.assert_awaited_once()
        lost.assert_called_once_with()


# =============================================================================
# StarletteWebSocketTransport
# =============================================================================


class TestStarletteWebSocketTransport:
    @pytest.mark.asyncio
    async def test_accept_marks_connected(self):
        websocket = make_starlette_socket([])
        transport = StarletteWebSocketTransport(websocket)
        assert not transport.is_connected

        await transport.accept()

        websocket.accept.assert_awaited_once()
        assert transport.is_connected
        assert transport.origin == "http://localhost:8581"

    @pytest.mark.asyncio
    async def test_run_delivers_until_disconnect(self):
        websocket = make_starlette_socket(['{"action": "request", "path": "/a"}', "nope"])
        transport = StarletteWebSocketTransport(websocket)
        received = []
        lost = MagicMock()
        transport.on_message(lambda message, origin: received.append((message["path"], origin)))
        transport.on_disconnect(lost)

        await transport.accept()
        await transport.run()

        assert received == [("/a", "http://localhost:8581")]
        lost.assert_called_once_with()
        assert not transport.is_connected

    @pytest.mark.asyncio
    async def test_send_text(self):
        websocket = make_starlette_socket([])
        transport = StarletteWebSocketTransport(websocket)
        await transport.accept()

        await transport.send({"action": "stream", "event": "e", "data": 1})

        websocket.send_text.assert_awaited_once()
        assert json.loads(websocket.send_text.await_args.args[0])["event"] == "e"

    @pytest.mark.asyncio
    async def test_not_connected_when_client_gone(self):
        websocket = make_starlette_socket([])
        transport = StarletteWebSocketTransport(websocket)
        await transport.accept()

        websocket.client_state = WebSocketState.DISCONNECTED

        assert not transport.is_connected

    @pytest.mark.asyncio
    async def test_close_skips_already_closed_socket(self):
        websocket = make_starlette_socket([])
        transport = StarletteWebSocketTransport(websocket)
        await transport.accept()
        websocket.client_state = WebSocketState.DISCONNECTED

        await transport.close()

        websocket.close.assert_not_awaited()
