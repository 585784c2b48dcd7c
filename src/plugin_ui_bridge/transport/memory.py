"""In-process transport pair.

Two linked endpoints behave like a window-to-window messaging channel:
messages are JSON round-tripped, delivered on a later loop iteration in send
order, tagged with the sender origin, and dropped when the sender names a
target origin the receiver does not have.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from .base import ANY_ORIGIN, BaseTransport

logger = logging.getLogger(__name__)


class MemoryTransport(BaseTransport):
    """One end of an in-memory channel. Create linked ends with ``pair()``."""

    def __init__(self, origin: str = "memory://local") -> None:
        super().__init__()
        self.origin = origin
        self._peer: MemoryTransport | None = None

    @classmethod
    def pair(
        cls,
        left_origin: str = "memory://host",
        right_origin: str = "memory://plugin",
    ) -> tuple[MemoryTransport, MemoryTransport]:
        """Create two connected endpoints."""
        left = cls(left_origin)
        right = cls(right_origin)
        left._link(right)
        right._link(left)
        return left, right

    def _link(self, peer: MemoryTransport) -> None:
        self._peer = peer
        self._connected = True

    async def _do_send(self, message: dict[str, Any], target_origin: str) -> None:
        peer = self._peer
        if peer is None:
            return
        if target_origin != ANY_ORIGIN and target_origin != peer.origin:
            logger.warning(
                f"Dropping message for origin {target_origin!r}, receiver is {peer.origin!r}"
            )
            return
        # Serialize like a real channel so shared mutable state never leaks across
        payload = json.loads(json.dumps(message))
        asyncio.get_running_loop().call_soon(peer._receive, payload, self.origin)

    def _receive(self, message: dict[str, Any], origin: str) -> None:
        if not self._connected:
            return
        self._deliver(message, origin)

    async def _do_close(self) -> None:
        peer, self._peer = self._peer, None
        if peer is not None and peer._connected:
            asyncio.get_running_loop().call_soon(peer._notify_disconnect)
