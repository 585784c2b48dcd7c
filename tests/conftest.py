"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import pytest_asyncio

from plugin_ui_bridge import PluginUi, PluginUiServer, ServerEnvironment
from plugin_ui_bridge.transport import MemoryTransport


async def _settle(rounds: int = 20) -> None:
    """Let queued deliveries and freshly spawned tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class Inbox:
    """Collects messages arriving on one end of a memory pair."""

    def __init__(self, transport: MemoryTransport) -> None:
        self.messages: list[dict[str, Any]] = []
        self.origins: list[str | None] = []
        transport.on_message(self._on_message)

    def _on_message(self, message: dict[str, Any], origin: str | None) -> None:
        self.messages.append(message)
        self.origins.append(origin)

    def actions(self) -> list[str]:
        return [m["action"] for m in self.messages]

    def of(self, action: str) -> list[dict[str, Any]]:
        return [m for m in self.messages if m["action"] == action]

    def last(self) -> dict[str, Any]:
        return self.messages[-1]


@pytest.fixture
def settle():
    return _settle


@pytest.fixture
def memory_pair() -> tuple[MemoryTransport, MemoryTransport]:
    """(host end, UI end) of an in-memory channel."""
    return MemoryTransport.pair()


@pytest.fixture
def host_inbox(memory_pair) -> Inbox:
    """Everything the UI sends to the host end."""
    return Inbox(memory_pair[0])


@pytest_asyncio.fixture
async def ui(memory_pair):
    """A PluginUi attached to the UI end of ``memory_pair``."""
    plugin_ui = PluginUi(memory_pair[1])
    plugin_ui.attach()
    yield plugin_ui
    await plugin_ui.close()


@pytest_asyncio.fixture
async def bridge():
    """A server and a UI talking to each other over a memory pair."""
    server_end, ui_end = MemoryTransport.pair()
    server = PluginUiServer(
        server_end,
        environment=ServerEnvironment(
            storage_path="/var/lib/homebridge",
            config_path="/var/lib/homebridge/config.json",
            ui_version="4.50.0",
        ),
    )
    plugin_ui = PluginUi(ui_end)
    server.attach()
    plugin_ui.attach()
    yield server, plugin_ui
    await plugin_ui.close()
    await server.close()
