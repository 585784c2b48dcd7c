"""Action tags carried by every bridge message."""

from __future__ import annotations

from enum import Enum


class Action(str, Enum):
    """All message actions understood by the bridge."""

    # Lifecycle
    READY = "ready"

    # Correlated request/response
    REQUEST = "request"
    RESPONSE = "response"

    # Push events
    STREAM = "stream"

    # Form sub-session
    FORM_CREATE = "form.create"
    FORM_END = "form.end"
    FORM_EVENT = "form.event"

    # Host-answered requests (correlated like REQUEST)
    CONFIG_GET = "config.get"
    CONFIG_UPDATE = "config.update"
    CONFIG_SAVE = "config.save"
    CONFIG_SCHEMA = "config.schema"
    I18N_LANG = "i18n.lang"
    I18N_TRANSLATIONS = "i18n.translations"

    # Layout, host -> UI
    BODY_CLASS = "body-class"
    INLINE_STYLE = "inline-style"
    LINK_ELEMENT = "link-element"

    # Layout and host UI commands, UI -> host
    SCROLL_HEIGHT = "scrollHeight"
    CLOSE = "close"
    SPINNER_SHOW = "spinner.show"
    SPINNER_HIDE = "spinner.hide"
    SCHEMA_SHOW = "schema.show"
    SCHEMA_HIDE = "schema.hide"

    # Toast notifications
    TOAST_SUCCESS = "toast.success"
    TOAST_ERROR = "toast.error"
    TOAST_WARNING = "toast.warning"
    TOAST_INFO = "toast.info"


class FormEventType(str, Enum):
    """Sub-event kinds multiplexed under one form id."""

    CHANGE = "change"
    SUBMIT = "submit"
    CANCEL = "cancel"
