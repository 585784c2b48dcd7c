"""Example plugin UI server answering ``/token`` requests.

Run by the host as:
    plugin-ui-bridge serve token_server:TokenServer
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Any

from plugin_ui_bridge import PluginUiServer, RequestError

logger = logging.getLogger(__name__)


class TokenServer(PluginUiServer):
    delay = 1.0

    def setup(self) -> None:
        self.on_request("/token", self.generate_token)

    async def generate_token(self, payload: dict[str, Any]) -> dict[str, str]:
        logger.info(f"Username: {payload.get('username')}")

        # Simulate slow work so concurrent requests overlap
        await asyncio.sleep(self.delay)

        try:
            # A sha256 of the username stands in for a real token
            token = hashlib.sha256(payload["username"].encode("utf-8")).hexdigest()
        except (KeyError, AttributeError) as e:
            raise RequestError("Failed to Generate Token", {"message": str(e)}) from e

        return {"token": token}
