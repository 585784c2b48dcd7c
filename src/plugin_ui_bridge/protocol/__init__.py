"""Transport-agnostic message protocol.

Defines the tagged messages exchanged between a plugin UI and its server
process, identical over every transport (process pipes, window messaging,
WebSocket).

Key concepts:
- Requests: UI -> server calls carrying a ``requestId``
- Responses: exactly one per request, matched by ``requestId`` only
- Streams: server -> UI push events, never correlated
- Forms: one ``formId`` multiplexing change/submit/cancel
"""

from .actions import Action, FormEventType
from .messages import (
    BaseMessage,
    BodyClassMessage,
    CorrelatedMessage,
    FormCreateMessage,
    FormEndMessage,
    FormEventMessage,
    HostCommandMessage,
    HostRequestMessage,
    KNOWN_ACTIONS,
    InlineStyleMessage,
    LinkElementMessage,
    Message,
    ReadyMessage,
    RequestMessage,
    ResponseMessage,
    ScrollHeightMessage,
    StreamMessage,
    ToastMessage,
    parse_message,
)

__all__ = [
    "Action",
    "FormEventType",
    "BaseMessage",
    "BodyClassMessage",
    "CorrelatedMessage",
    "FormCreateMessage",
    "FormEndMessage",
    "FormEventMessage",
    "HostCommandMessage",
    "HostRequestMessage",
    "KNOWN_ACTIONS",
    "InlineStyleMessage",
    "LinkElementMessage",
    "Message",
    "ReadyMessage",
    "RequestMessage",
    "ResponseMessage",
    "ScrollHeightMessage",
    "StreamMessage",
    "ToastMessage",
    "parse_message",
]
