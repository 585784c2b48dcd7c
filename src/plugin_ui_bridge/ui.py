"""Plugin UI side of the bridge.

``PluginUi`` is what sandboxed UI code talks to. It issues correlated
requests to the server, receives push events, opens forms rendered by the
host and forwards cosmetic host commands to a layout collaborator.

Inbound routing:
- ready        -> capture origin, show content, emit "ready", start height sync
- response     -> bus event named by requestId (picked up by the Correlator)
- stream       -> bus event named by the push event name
- form.event   -> bus event named by formId (picked up by the FormSession)
- body-class / inline-style / link-element -> layout collaborator
- anything else -> logged and ignored
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from .bus import EventTarget, Listener, add_once_listener, create_event_bus
from .config import BridgeConfig
from .correlator import Correlator
from .errors import ProtocolError
from .forms import FormSession
from .ids import IdGenerator
from .layout import HeightMonitor, LayoutCollaborator, RecordingLayout
from .protocol import (
    Action,
    BodyClassMessage,
    FormEndMessage,
    FormEventMessage,
    HostCommandMessage,
    HostRequestMessage,
    InlineStyleMessage,
    LinkElementMessage,
    ReadyMessage,
    RequestMessage,
    ResponseMessage,
    ScrollHeightMessage,
    StreamMessage,
    ToastMessage,
    parse_message,
)
from .transport import ANY_ORIGIN, Transport

logger = logging.getLogger(__name__)

READY_EVENT = "ready"


class ToastHelper:
    """Ask the host to show toast notifications."""

    def __init__(self, ui: PluginUi) -> None:
        self._ui = ui

    async def _toast(self, kind: str, message: str, title: str | None) -> None:
        await self._ui._post_message(
            ToastMessage(action=f"toast.{kind}", message=message, title=title).to_wire()
        )

    async def success(self, message: str, title: str | None = None) -> None:
        await self._toast("success", message, title)

    async def error(self, message: str, title: str | None = None) -> None:
        await self._toast("error", message, title)

    async def warning(self, message: str, title: str | None = None) -> None:
        await self._toast("warning", message, title)

    async def info(self, message: str, title: str | None = None) -> None:
        await self._toast("info", message, title)


class PluginUi:
    """UI-side bridge endpoint.

    Usage:
        ui = PluginUi(transport)
        ui.attach()
        await ui.wait_ready()

        token = await ui.request("/token", {"username": "alice"})
        ui.add_event_listener("server-time-event", on_time)

        await ui.close()

    Failed requests raise ``RequestFailedError``.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        bus: Any = None,
        layout: LayoutCollaborator | None = None,
        plugin: dict[str, Any] | None = None,
        server_env: dict[str, Any] | None = None,
        config: BridgeConfig | None = None,
    ) -> None:
        self._transport = transport
        self.bus: EventTarget = create_event_bus(bus)
        self.layout: LayoutCollaborator = layout if layout is not None else RecordingLayout()
        self.plugin = plugin or {}
        self.server_env = server_env or {}
        self._config = config or BridgeConfig()

        # Trusted origin for all sends, captured from the first ready message
        self.origin: str | None = None

        self.toast = ToastHelper(self)
        self._correlator = Correlator(self.bus, self._post_message)
        self._forms: dict[str, FormSession] = {}
        self._new_form_id = IdGenerator()
        self._height_monitor: HeightMonitor | None = None
        self._ready = asyncio.Event()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._detach: list[Any] = []

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def attach(self) -> None:
        """Start receiving messages from the transport."""
        if self._detach:
            return
        self._detach.append(self._transport.on_message(self.handle_message))

    async def close(self) -> None:
        """Detach from the transport and fail requests still in flight."""
        for unsubscribe in self._detach:
            unsubscribe()
        self._detach.clear()

        if self._height_monitor is not None:
            await self._height_monitor.stop()
            self._height_monitor = None

        for form in list(self._forms.values()):
            self.bus.remove_listener(form.form_id, form._handle)
        self._forms.clear()

        failed = self._correlator.close()
        if failed:
            logger.info(f"Closed with {failed} request(s) still pending")

        for task in list(self._tasks):
            task.cancel()

    async def __aenter__(self) -> PluginUi:
        self.attach()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def wait_ready(self) -> None:
        """Wait for the host's ready message."""
        await self._ready.wait()

    @property
    def pending_requests(self) -> int:
        return self._correlator.pending_count

    # =========================================================================
    # Inbound dispatch
    # =========================================================================

    def handle_message(self, raw: Any, origin: str | None = None) -> None:
        """Route one inbound message. Never raises, never waits."""
        try:
            message = parse_message(raw)
        except ProtocolError as e:
            logger.info(f"Ignoring message: {e}")
            return

        match message:
            case ReadyMessage():
                self._on_ready(origin)

            case ResponseMessage():
                if not self.bus.emit(message.request_id, message):
                    logger.debug(f"Dropping unmatched response {message.request_id}")

            case StreamMessage():
                self.bus.emit(message.event, message.data)

            case FormEventMessage():
                if message.form_id not in self._forms:
                    logger.warning(
                        f"Form {message.form_event.value} event for unknown form {message.form_id}"
                    )
                    return
                self.bus.emit(message.form_id, message)

            case BodyClassMessage():
                self.layout.add_body_class(message.class_name)

            case InlineStyleMessage():
                self.layout.add_inline_style(message.style)

            case LinkElementMessage():
                self.layout.add_link_element(message.href, message.rel)

            case _:
                logger.info(f"Ignoring {message.action} message sent to the UI")

    def _on_ready(self, origin: str | None) -> None:
        if self.origin is None and origin is not None:
            self.origin = origin
        self.layout.show_content()
        self._ready.set()
        self.bus.emit(READY_EVENT, None)

        self._spawn(self.fix_scroll_height())
        if self._height_monitor is None:
            self._height_monitor = HeightMonitor(
                self.layout,
                self.fix_scroll_height,
                poll_interval=self._config.height_poll_interval,
            )
            self._height_monitor.start()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def done(t: asyncio.Task[Any]) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.warning(f"Background send failed: {t.exception()}")

        task.add_done_callback(done)

    async def _post_message(self, message: dict[str, Any]) -> None:
        await self._transport.send(message, target_origin=self.origin or ANY_ORIGIN)

    # =========================================================================
    # Push events
    # =========================================================================

    def add_event_listener(self, event: str, listener: Listener) -> None:
        self.bus.add_listener(event, listener)

    def remove_event_listener(self, event: str, listener: Listener) -> None:
        self.bus.remove_listener(event, listener)

    def once(self, event: str, listener: Listener) -> Listener:
        """Listen for the next ``event`` only. Returns the registered wrapper."""
        return add_once_listener(self.bus, event, listener)

    # =========================================================================
    # Correlated requests
    # =========================================================================

    async def request(self, path: str, body: Any = None) -> Any:
        """Call a request handler registered on the server under ``path``."""
        return await self._correlator.issue(RequestMessage(path=path, body=body))

    async def get_plugin_config(self) -> Any:
        return await self._correlator.issue(HostRequestMessage(action=Action.CONFIG_GET.value))

    async def update_plugin_config(self, plugin_config: Any) -> Any:
        return await self._correlator.issue(
            HostRequestMessage(action=Action.CONFIG_UPDATE.value, plugin_config=plugin_config)
        )

    async def save_plugin_config(self) -> Any:
        return await self._correlator.issue(HostRequestMessage(action=Action.CONFIG_SAVE.value))

    async def get_plugin_config_schema(self) -> Any:
        return await self._correlator.issue(HostRequestMessage(action=Action.CONFIG_SCHEMA.value))

    async def i18n_current_lang(self) -> str:
        return await self._correlator.issue(HostRequestMessage(action=Action.I18N_LANG.value))

    async def i18n_get_translation(self) -> dict[str, str]:
        return await self._correlator.issue(
            HostRequestMessage(action=Action.I18N_TRANSLATIONS.value)
        )

    # =========================================================================
    # Forms
    # =========================================================================

    async def create_form(
        self,
        schema: Any,
        data: Any,
        submit_label: str | None = None,
        cancel_label: str | None = None,
    ) -> FormSession:
        """Open a form rendered by the host and return its session."""
        form = FormSession(
            self._new_form_id(),
            self.bus,
            self._post_message,
            schema=schema,
            data=data,
            submit_label=submit_label,
            cancel_label=cancel_label,
            on_end=self._forget_form,
        )
        self._forms[form.form_id] = form
        try:
            await form.open()
        except Exception:
            self._forms.pop(form.form_id, None)
            self.bus.remove_listener(form.form_id, form._handle)
            raise
        return form

    def _forget_form(self, form_id: str) -> None:
        self._forms.pop(form_id, None)

    @property
    def open_forms(self) -> list[str]:
        return list(self._forms)

    async def end_form(self) -> None:
        """Ask the host to remove whatever form it is showing."""
        await self._post_message(FormEndMessage().to_wire())

    # =========================================================================
    # Host UI commands
    # =========================================================================

    async def fix_scroll_height(self) -> None:
        await self._post_message(
            ScrollHeightMessage(scroll_height=self.layout.scroll_height()).to_wire()
        )

    async def close_settings(self) -> None:
        await self._command(Action.CLOSE)

    async def show_spinner(self) -> None:
        await self._command(Action.SPINNER_SHOW)

    async def hide_spinner(self) -> None:
        await self._command(Action.SPINNER_HIDE)

    async def show_schema_form(self) -> None:
        await self._command(Action.SCHEMA_SHOW)

    async def hide_schema_form(self) -> None:
        await self._command(Action.SCHEMA_HIDE)

    async def _command(self, action: Action) -> None:
        await self._post_message(HostCommandMessage(action=action.value).to_wire())
