"""Plugin UI bridge.

Correlated request/response, push events and form sessions between a
sandboxed plugin UI and the plugin's server process, over any
message-passing transport.
"""

from .bus import EventBus, EventTarget, create_event_bus
from .config import BridgeConfig, ServerEnvironment
from .correlator import Correlator
from .errors import (
    BridgeClosedError,
    BridgeError,
    ProtocolError,
    RequestError,
    RequestFailedError,
    TransportClosedError,
)
from .forms import FormSession
from .liveness import LivenessMonitor, LivenessState
from .server import PluginUiServer, RequestHandlerRegistry
from .ui import PluginUi

__version__ = "0.1.0"

__all__ = [
    "BridgeClosedError",
    "BridgeConfig",
    "BridgeError",
    "Correlator",
    "EventBus",
    "EventTarget",
    "FormSession",
    "LivenessMonitor",
    "LivenessState",
    "PluginUi",
    "PluginUiServer",
    "ProtocolError",
    "RequestError",
    "RequestFailedError",
    "RequestHandlerRegistry",
    "ServerEnvironment",
    "TransportClosedError",
    "create_event_bus",
]
