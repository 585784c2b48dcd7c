"""Liveness monitor.

The server process exists only to serve its host. Once the transport to the
host is gone nothing can reach it again, so it must not linger: the monitor
asks the process to terminate itself. There is no reconnection.

Loss is detected two ways: the transport's disconnect notification, and a
periodic ``is_connected`` poll for transports that fail silently.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from collections.abc import Callable
from enum import Enum

from .config import DEFAULT_LIVENESS_INTERVAL
from .transport import Transport

logger = logging.getLogger(__name__)


class LivenessState(str, Enum):
    CONNECTED = "connected"
    TERMINATED = "terminated"


def terminate_self() -> None:
    """Send SIGTERM to the current process."""
    os.kill(os.getpid(), signal.SIGTERM)


class LivenessMonitor:
    """Watch a transport and terminate once it is lost.

    Usage:
        monitor = LivenessMonitor(transport)
        monitor.start()
        ...
        await monitor.stop()

    ``terminate`` is called at most once, however many loss signals arrive.
    """

    def __init__(
        self,
        transport: Transport,
        terminate: Callable[[], None] = terminate_self,
        interval: float = DEFAULT_LIVENESS_INTERVAL,
    ) -> None:
        self._transport = transport
        self._terminate = terminate
        self._interval = interval
        self._state = LivenessState.CONNECTED
        self._task: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def state(self) -> LivenessState:
        return self._state

    @property
    def terminated(self) -> bool:
        return self._state == LivenessState.TERMINATED

    def start(self) -> None:
        """Subscribe to disconnects and start polling."""
        if self._task is not None or self.terminated:
            return
        self._unsubscribe = self._transport.on_disconnect(self.on_disconnect)
        self._task = asyncio.create_task(self._poll())

    async def stop(self) -> None:
        """Stop watching without terminating."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def check(self) -> bool:
        """Poll the transport once. Returns whether it is still connected."""
        if self.terminated:
            return False
        if self._transport.is_connected:
            return True
        logger.warning("Transport reports disconnected")
        self._lost()
        return False

    def on_disconnect(self) -> None:
        logger.warning("Transport disconnected")
        self._lost()

    async def _poll(self) -> None:
        while not self.terminated:
            await asyncio.sleep(self._interval)
            self.check()

    def _lost(self) -> None:
        if self.terminated:
            return
        self._state = LivenessState.TERMINATED
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        logger.info("Host connection lost, terminating")
        self._terminate()
