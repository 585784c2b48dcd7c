"""Example plugin UI server pushing the server time every second.

Run by the host as:
    plugin-ui-bridge serve push_events:setup
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from plugin_ui_bridge import PluginUiServer, TransportClosedError

INTERVAL = 1.0

_tasks: set[asyncio.Task[None]] = set()


async def push_time(server: PluginUiServer, interval: float = INTERVAL) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await server.push_event("server-time-event", {"time": datetime.now().isoformat()})
        except TransportClosedError:
            return


def setup(server: PluginUiServer) -> None:
    # setup runs inside the server's event loop
    task = asyncio.get_running_loop().create_task(push_time(server))
    _tasks.add(task)
    task.add_done_callback(_tasks.discard)
