"""Form sub-session.

A form opened by the UI is rendered by the host; every interaction with it
comes back tagged with the form's id. One id multiplexes three kinds of
sub-event (change, submit, cancel), each routed to at most one callback.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .bus import EventTarget
from .protocol import FormCreateMessage, FormEndMessage, FormEventMessage, FormEventType

logger = logging.getLogger(__name__)

FormCallback = Callable[[Any], Any]
SendFn = Callable[[dict[str, Any]], Awaitable[None]]


class FormSession:
    """Handle on one open form.

    Usage:
        form = await ui.create_form(schema, data, submit_label="Save")
        form.on_change(lambda data: print("changed", data))
        form.on_submit(save)
        ...
        await form.end()

    The session is also an async context manager that ends the form on exit.
    """

    def __init__(
        self,
        form_id: str,
        bus: EventTarget,
        send: SendFn,
        schema: Any = None,
        data: Any = None,
        submit_label: str | None = None,
        cancel_label: str | None = None,
        on_end: Callable[[str], None] | None = None,
    ) -> None:
        self.form_id = form_id
        self.schema = schema
        self.data = data
        self.submit_label = submit_label
        self.cancel_label = cancel_label
        self._bus = bus
        self._send = send
        self._on_end = on_end
        self._callbacks: dict[FormEventType, FormCallback] = {}
        self._opened = False
        self._ended = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._ended

    async def open(self) -> FormSession:
        """Subscribe to the form id and ask the host to render the form."""
        if self._opened:
            return self
        self._opened = True
        self._bus.add_listener(self.form_id, self._handle)
        await self._send(
            FormCreateMessage(
                form_id=self.form_id,
                form_schema=self.schema,
                data=self.data,
                submit_button=self.submit_label,
                cancel_button=self.cancel_label,
            ).to_wire()
        )
        return self

    def on_change(self, callback: FormCallback) -> None:
        self._set_callback(FormEventType.CHANGE, callback)

    def on_submit(self, callback: FormCallback) -> None:
        self._set_callback(FormEventType.SUBMIT, callback)

    def on_cancel(self, callback: FormCallback) -> None:
        self._set_callback(FormEventType.CANCEL, callback)

    def _set_callback(self, kind: FormEventType, callback: FormCallback) -> None:
        if not callable(callback):
            logger.error(f"Form {kind.value} handler must be callable, got {type(callback).__name__}")
            return
        self._callbacks[kind] = callback

    def _handle(self, payload: Any) -> Any:
        # A bare stream push named after the form id carries change data only
        if isinstance(payload, FormEventMessage):
            kind, form_data = payload.form_event, payload.form_data
        else:
            kind, form_data = FormEventType.CHANGE, payload

        callback = self._callbacks.get(kind)
        if callback is None:
            logger.info(f"Missing form {kind.value} handler for form {self.form_id}")
            return None
        return callback(form_data)

    async def end(self) -> None:
        """Stop delivery and ask the host to tear the form down. Idempotent."""
        if self._ended:
            return
        self._ended = True
        self._bus.remove_listener(self.form_id, self._handle)
        if self._on_end is not None:
            self._on_end(self.form_id)
        if not self._opened:
            return
        await self._send(
            FormEndMessage(form_id=self.form_id, form_schema=self.schema, data=self.data).to_wire()
        )

    async def __aenter__(self) -> FormSession:
        return await self.open()

    async def __aexit__(self, *args: Any) -> None:
        await self.end()
