"""Message definitions for the bridge protocol.

Every transport delivery is one JSON object tagged by ``action``. On the wire
field names are camelCase (``requestId``, ``formId``); the models expose
snake_case attributes and serialize back with aliases.

Messages form a closed union discriminated by ``action``, so receivers can
``match`` on the model class instead of branching on strings.

Example (request and its response):
    {"action": "request", "path": "/token", "body": {"username": "alice"}, "requestId": "1kx9"}
    {"action": "response", "requestId": "1kx9", "success": true, "data": {"token": "..."}}

Example (push event):
    {"action": "stream", "event": "server-time-event", "data": {"time": "..."}}
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import ProtocolError
from .actions import Action, FormEventType


class BaseMessage(BaseModel):
    """Common model configuration for all messages."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    action: str

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible dict sent over a transport."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Lifecycle
# =============================================================================


class ReadyMessage(BaseMessage):
    """The sender is attached and ready to exchange messages."""

    action: Literal["ready"] = "ready"


# =============================================================================
# Correlated messages
# =============================================================================


class RequestMessage(BaseMessage):
    """UI -> server call routed by path."""

    action: Literal["request"] = "request"
    path: str
    body: Any = None
    request_id: str | None = Field(default=None, alias="requestId")


class HostRequestMessage(BaseMessage):
    """UI -> host call answered by the host itself (config, i18n)."""

    action: Literal[
        "config.get",
        "config.update",
        "config.save",
        "config.schema",
        "i18n.lang",
        "i18n.translations",
    ]
    request_id: str | None = Field(default=None, alias="requestId")
    plugin_config: Any = Field(default=None, alias="pluginConfig")


class ResponseMessage(BaseMessage):
    """Reply to exactly one correlated request."""

    action: Literal["response"] = "response"
    request_id: str = Field(alias="requestId")
    success: bool
    data: Any = None

    @classmethod
    def ok(cls, request_id: str, data: Any) -> ResponseMessage:
        return cls(request_id=request_id, success=True, data=data)

    @classmethod
    def failure(cls, request_id: str, data: Any) -> ResponseMessage:
        return cls(request_id=request_id, success=False, data=data)


# =============================================================================
# Push events
# =============================================================================


class StreamMessage(BaseMessage):
    """Server -> UI push event, fire-and-forget."""

    action: Literal["stream"] = "stream"
    event: str
    data: Any = None


# =============================================================================
# Form sub-session
# =============================================================================


class FormCreateMessage(BaseMessage):
    action: Literal["form.create"] = "form.create"
    form_id: str = Field(alias="formId")
    form_schema: Any = Field(default=None, alias="schema")
    data: Any = None
    submit_button: str | None = Field(default=None, alias="submitButton")
    cancel_button: str | None = Field(default=None, alias="cancelButton")


class FormEndMessage(BaseMessage):
    """Tear down a rendered form. Without ``formId`` it ends whatever is shown."""

    action: Literal["form.end"] = "form.end"
    form_id: str | None = Field(default=None, alias="formId")
    form_schema: Any = Field(default=None, alias="schema")
    data: Any = None


class FormEventMessage(BaseMessage):
    """Host -> UI change/submit/cancel for an open form."""

    action: Literal["form.event"] = "form.event"
    form_id: str = Field(alias="formId")
    form_event: FormEventType = Field(alias="formEvent")
    form_data: Any = Field(default=None, alias="formData")


# =============================================================================
# Layout and host UI commands
# =============================================================================


class BodyClassMessage(BaseMessage):
    action: Literal["body-class"] = "body-class"
    class_name: str = Field(alias="class")


class InlineStyleMessage(BaseMessage):
    action: Literal["inline-style"] = "inline-style"
    style: str


class LinkElementMessage(BaseMessage):
    action: Literal["link-element"] = "link-element"
    href: str
    rel: str = "stylesheet"


class ScrollHeightMessage(BaseMessage):
    action: Literal["scrollHeight"] = "scrollHeight"
    scroll_height: int = Field(alias="scrollHeight")


class HostCommandMessage(BaseMessage):
    """Payload-free UI -> host commands."""

    action: Literal[
        "close",
        "spinner.show",
        "spinner.hide",
        "schema.show",
        "schema.hide",
    ]


class ToastMessage(BaseMessage):
    action: Literal["toast.success", "toast.error", "toast.warning", "toast.info"]
    message: str
    title: str | None = None


Message = Annotated[
    ReadyMessage
    | RequestMessage
    | HostRequestMessage
    | ResponseMessage
    | StreamMessage
    | FormCreateMessage
    | FormEndMessage
    | FormEventMessage
    | BodyClassMessage
    | InlineStyleMessage
    | LinkElementMessage
    | ScrollHeightMessage
    | HostCommandMessage
    | ToastMessage,
    Field(discriminator="action"),
]

CorrelatedMessage = RequestMessage | HostRequestMessage

_message_adapter: TypeAdapter[Message] = TypeAdapter(Message)

KNOWN_ACTIONS = frozenset(action.value for action in Action)

# Actions a server process may wrap in a "payload" object
_PAYLOAD_WRAPPED = frozenset({"ready", "response", "stream"})


def _unwrap_payload(raw: dict[str, Any]) -> dict[str, Any]:
    """Flatten ``{"action": ..., "payload": {...}}`` into a single object."""
    payload = raw.get("payload")
    if raw.get("action") in _PAYLOAD_WRAPPED and isinstance(payload, dict):
        merged = {k: v for k, v in raw.items() if k != "payload"}
        merged.update(payload)
        return merged
    return raw


def parse_message(raw: Any) -> Message:
    """Parse a decoded transport delivery into a typed message.

    Raises:
        ProtocolError: If the delivery is not an object, has an unknown
            action, or does not match the action's schema.
    """
    if not isinstance(raw, dict):
        raise ProtocolError(f"Message must be an object, got {type(raw).__name__}", raw)

    action = raw.get("action")
    if action not in KNOWN_ACTIONS:
        raise ProtocolError(f"Unknown action: {action!r}", raw)

    try:
        return _message_adapter.validate_python(_unwrap_payload(raw))
    except ValidationError as e:
        raise ProtocolError(f"Invalid {action} message: {e}", raw) from e
