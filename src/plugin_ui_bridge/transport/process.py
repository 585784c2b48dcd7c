"""Host-side transport driving a plugin UI server subprocess.

Launches the server with piped stdin/stdout and speaks the same
newline-delimited JSON as ``StdioTransport``. The child's stderr is relayed
to the log. The transport disconnects when the child's stdout closes.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from collections.abc import Mapping, Sequence
from typing import Any

from ..config import DEFAULT_MAX_MESSAGE_SIZE
from ..errors import TransportClosedError
from .base import BaseTransport
from .stdio import ENCODING, encode_line

logger = logging.getLogger(__name__)


class SubprocessTransport(BaseTransport):
    """Transport to a child process over its stdin/stdout.

    Usage:
        transport = SubprocessTransport(["plugin-ui-bridge", "serve", "myplugin.ui:setup"])
        await transport.start()
        transport.on_message(handle)
        await transport.send({"action": "request", ...})
        await transport.close()
    """

    def __init__(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE,
        terminate_timeout: float = 5.0,
    ) -> None:
        super().__init__()
        self.command = list(command)
        self._env = env
        self._cwd = cwd
        self._max_message_size = max_message_size
        self._terminate_timeout = terminate_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def origin(self) -> str:
        return f"pid:{self.pid}"

    async def start(self) -> None:
        """Launch the child process and start reading its output."""
        if self._process is not None:
            return

        env = None
        if self._env:
            env = {**os.environ, **self._env}

        self._process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self._cwd,
            env=env,
            limit=self._max_message_size,
        )
        self._connected = True
        self._reader_task = asyncio.create_task(self._read_loop())
        self._stderr_task = asyncio.create_task(self._read_stderr())
        logger.info(f"Launched subprocess: {' '.join(self.command)} (pid={self._process.pid})")

    async def _read_loop(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        try:
            while True:
                try:
                    line = await stdout.readline()
                except ValueError:
                    # Line exceeded the stream limit
                    logger.error("Dropping oversized message from subprocess")
                    continue
                if not line:
                    break
                text = line.decode(ENCODING, errors="replace").strip()
                if not text:
                    continue
                # Skip non-JSON lines (e.g. prints that leaked to stdout)
                if not text.startswith("{"):
                    logger.debug(f"Skipping non-JSON line: {text[:50]}")
                    continue
                try:
                    message = json.loads(text)
                except json.JSONDecodeError as e:
                    logger.warning(f"Invalid JSON from subprocess: {e}")
                    continue
                self._deliver(message, self.origin)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Subprocess read error: {e}")
        finally:
            self._notify_disconnect()

    async def _read_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        try:
            while True:
                line = await self._process.stderr.readline()
                if not line:
                    break
                logger.info(f"[{self.pid}] {line.decode(ENCODING, errors='replace').rstrip()}")
        except asyncio.CancelledError:
            pass

    async def _do_send(self, message: dict[str, Any], target_origin: str) -> None:
        if not self._process or not self._process.stdin:
            raise TransportClosedError("Process not running")
        self._process.stdin.write(encode_line(message))
        await self._process.stdin.drain()

    async def _do_close(self) -> None:
        self._connected = False
        for task in (self._reader_task, self._stderr_task):
            if task is not None and task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reader_task = self._stderr_task = None

        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return
        if process.stdin:
            process.stdin.close()
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=self._terminate_timeout)
        except TimeoutError:
            process.kill()
            await process.wait()
        logger.info(f"Subprocess terminated (pid={process.pid})")
