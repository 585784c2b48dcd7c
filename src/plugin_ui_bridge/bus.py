"""Event Bus - string-keyed pub/sub for inbound bridge traffic.

Responses are emitted under their ``requestId``, push events under their
event name and form traffic under the ``formId``, so correlators, application
listeners and form sessions share one bus without knowing about each other.

Emission is synchronous: every listener registered for an event runs, in
registration order, before ``emit`` returns. Listeners returning an awaitable
are scheduled on the running loop instead of being awaited.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Listener receives the event payload; may be sync or async
Listener = Callable[[Any], Any]


@runtime_checkable
class EventTarget(Protocol):
    """Capabilities the bridge needs from an event bus."""

    def add_listener(self, event: str, listener: Listener) -> None: ...

    def remove_listener(self, event: str, listener: Listener) -> None: ...

    def emit(self, event: str, data: Any = None) -> int: ...


class EventBus:
    """In-memory event bus with persistent and one-shot listeners.

    Not thread-safe: all calls must come from the event loop thread.

    Usage:
        bus = EventBus()
        bus.add_listener("server-time-event", on_time)
        bus.once("ready", on_ready)
        bus.emit("server-time-event", {"time": "12:00"})
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def add_listener(self, event: str, listener: Listener) -> None:
        """Register ``listener`` for ``event``. Duplicates are called twice."""
        self._listeners.setdefault(event, []).append(listener)

    def once(self, event: str, listener: Listener) -> Listener:
        """Register a listener removed right before its first call.

        Returns:
            The registered wrapper; ``remove_listener`` also accepts the
            original callable.
        """
        return add_once_listener(self, event, listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        """Remove the first registration of ``listener``; unknown pairs are ignored."""
        stack = self._listeners.get(event)
        if not stack:
            return
        for i, registered in enumerate(stack):
            if registered is listener or getattr(registered, "__wrapped__", None) is listener:
                del stack[i]
                break
        if not stack:
            del self._listeners[event]

    def emit(self, event: str, data: Any = None) -> int:
        """Call every listener for ``event`` with ``data``.

        A failing listener is logged and does not stop the others.

        Returns:
            Number of listeners called
        """
        # Copy so listeners may (un)register during emission
        stack = list(self._listeners.get(event, ()))
        for listener in stack:
            try:
                result = listener(data)
            except Exception:
                logger.exception(f"Error in listener for {event!r}")
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)
        return len(stack)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def has_listeners(self, event: str) -> bool:
        return event in self._listeners

    def clear(self) -> None:
        """Drop every listener and cancel scheduled async listeners."""
        self._listeners.clear()
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    def _schedule(self, event: str, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(t: asyncio.Task[Any]) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(
                    f"Error in async listener for {event!r}: {t.exception()}",
                    exc_info=t.exception(),
                )

        task.add_done_callback(done)


def create_event_bus(native: Any = None) -> EventTarget:
    """Select the event bus implementation.

    Uses ``native`` when the host supplies a compatible event target and
    falls back to the in-memory ``EventBus`` otherwise.

    Raises:
        TypeError: If ``native`` lacks the EventTarget capabilities
    """
    if native is None:
        return EventBus()
    if isinstance(native, EventTarget):
        return native
    raise TypeError(
        f"{type(native).__name__} is not a usable event target: "
        "add_listener, remove_listener and emit are required"
    )


def add_once_listener(target: EventTarget, event: str, listener: Listener) -> Listener:
    """Register ``listener`` on ``target`` for the next ``event`` only.

    Works with any event target. The returned wrapper carries the original as
    ``__wrapped__``, which ``EventBus.remove_listener`` also matches.
    """

    def wrapper(data: Any) -> Any:
        target.remove_listener(event, wrapper)
        return listener(data)

    wrapper.__wrapped__ = listener  # type: ignore[attr-defined]
    target.add_listener(event, wrapper)
    return wrapper
