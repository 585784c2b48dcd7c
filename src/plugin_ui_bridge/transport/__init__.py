"""Transport layer.

Provides the message-passing primitives the bridge runs on:
- memory - linked in-process endpoints with window-messaging semantics
- stdio - child process side of a host <-> server pipe
- process - host side, launching and driving the server subprocess
- websocket - browser-context UIs over WebSocket

The bridge itself only depends on the ``Transport`` protocol, so hosts can
supply their own channel.
"""

from .base import ANY_ORIGIN, BaseTransport, DisconnectHandler, MessageHandler, Transport
from .memory import MemoryTransport
from .process import SubprocessTransport
from .stdio import StdioTransport

# websocket transports are imported from their module:
#   from plugin_ui_bridge.transport.websocket import WebSocketTransport

__all__ = [
    "ANY_ORIGIN",
    "BaseTransport",
    "DisconnectHandler",
    "MessageHandler",
    "Transport",
    "MemoryTransport",
    "StdioTransport",
    "SubprocessTransport",
]
