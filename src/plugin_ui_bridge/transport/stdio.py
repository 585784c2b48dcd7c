"""stdio transport for the plugin UI server process.

The host launches the server as a child process and talks to it over its
stdin/stdout using newline-delimited JSON. End of stdin means the host is
gone, which is reported as a disconnect.

Wire format (UTF-8, one object per line, LF):
    stdin:  {"action":"request","path":"/hello","body":{},"requestId":"1kx9"}
    stdout: {"action":"response","requestId":"1kx9","success":true,"data":{"hello":"world"}}

Logging never goes to stdout: the protocol owns it.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sys
from typing import Any, BinaryIO

from ..config import DEFAULT_MAX_MESSAGE_SIZE
from .base import BaseTransport

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NEWLINE = "\n"


def encode_line(message: dict[str, Any]) -> bytes:
    """Encode one message as a compact JSON line."""
    return (json.dumps(message, separators=(",", ":"), ensure_ascii=False) + NEWLINE).encode(
        ENCODING
    )


class StdioTransport(BaseTransport):
    """Child-side transport over stdin/stdout.

    Usage:
        transport = StdioTransport()
        transport.start()  # begins reading stdin
        await transport.send({"action": "ready"})
    """

    def __init__(
        self,
        stdin: BinaryIO | None = None,
        stdout: BinaryIO | None = None,
        max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE,
    ) -> None:
        super().__init__()
        self._stdin = stdin if stdin is not None else sys.stdin.buffer
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._max_message_size = max_message_size
        self._reader_task: asyncio.Task[None] | None = None
        self.origin = "stdio"

    def start(self) -> None:
        """Mark connected and start the background stdin reader."""
        if self._reader_task is not None:
            return
        self._connected = True
        self._reader_task = asyncio.create_task(self._read_loop())

    async def wait_closed(self) -> None:
        """Wait until stdin reaches EOF or the transport is closed."""
        if self._reader_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task

    def _readline_bounded(self) -> bytes:
        """Read one line of at most ``max_message_size`` bytes plus newline.

        Longer lines are consumed in bounded chunks and skipped.
        """
        limit = self._max_message_size
        while True:
            line = self._stdin.readline(limit + 1)
            if len(line) <= limit or line.endswith(b"\n"):
                return line
            dropped = len(line)
            while line and not line.endswith(b"\n"):
                line = self._stdin.readline(limit)
                dropped += len(line)
            logger.error(f"Dropping oversized message ({dropped} bytes)")

    async def _read_line(self) -> bytes:
        # Blocking readline runs in the default executor
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._readline_bounded)

    async def _read_loop(self) -> None:
        try:
            while self._connected:
                line = await self._read_line()
                if not line:
                    logger.info("stdin closed")
                    break
                self._handle_line(line)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"stdin read error: {e}")
        finally:
            self._notify_disconnect()

    def _handle_line(self, line: bytes) -> None:
        text = line.decode(ENCODING, errors="replace").strip()
        if text.startswith("\ufeff"):
            text = text[1:]
        if not text:
            return
        try:
            message = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON on stdin: {e}")
            return
        self._deliver(message, self.origin)

    async def _do_send(self, message: dict[str, Any], target_origin: str) -> None:
        self._stdout.write(encode_line(message))
        self._stdout.flush()

    async def _do_close(self) -> None:
        self._connected = False
        task, self._reader_task = self._reader_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
