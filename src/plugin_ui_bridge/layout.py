"""Layout collaborator for the UI side.

The bridge does not render anything. Cosmetic host commands (body class,
inline style, link element) are handed to a collaborator, and the UI reports
its content height back to the host so the embedding frame can be resized.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from .config import DEFAULT_HEIGHT_POLL_INTERVAL

logger = logging.getLogger(__name__)


@runtime_checkable
class LayoutCollaborator(Protocol):
    """What the UI needs from its rendering surface."""

    def show_content(self) -> None: ...

    def scroll_height(self) -> int: ...

    def add_body_class(self, name: str) -> None: ...

    def add_inline_style(self, css: str) -> None: ...

    def add_link_element(self, href: str, rel: str) -> None: ...


@runtime_checkable
class ResizeObservable(Protocol):
    """Optional capability: push notification on content resize."""

    def observe_resize(self, callback: Callable[[], None]) -> Callable[[], None]: ...


class RecordingLayout:
    """Layout collaborator that records every cosmetic change.

    Used headless (no rendering surface) and in tests. ``height`` can be set
    to simulate content growth.
    """

    def __init__(self, height: int = 0) -> None:
        self.height = height
        self.visible = False
        self.body_classes: list[str] = []
        self.inline_styles: list[str] = []
        self.link_elements: list[tuple[str, str]] = []

    def show_content(self) -> None:
        self.visible = True

    def scroll_height(self) -> int:
        return self.height

    def add_body_class(self, name: str) -> None:
        self.body_classes.append(name)

    def add_inline_style(self, css: str) -> None:
        self.inline_styles.append(css)

    def add_link_element(self, href: str, rel: str) -> None:
        self.link_elements.append((href, rel))


class HeightMonitor:
    """Report content height to the host whenever it changes.

    Uses the collaborator's resize notifications when it offers them and
    falls back to polling otherwise.
    """

    def __init__(
        self,
        layout: LayoutCollaborator,
        report: Callable[[], Awaitable[Any]],
        poll_interval: float = DEFAULT_HEIGHT_POLL_INTERVAL,
    ) -> None:
        self._layout = layout
        self._report = report
        self._poll_interval = poll_interval
        self._last_height = layout.scroll_height()
        self._task: asyncio.Task[None] | None = None
        self._unobserve: Callable[[], None] | None = None
        self._reports: set[asyncio.Task[Any]] = set()

    @property
    def running(self) -> bool:
        return self._task is not None or self._unobserve is not None

    def start(self) -> None:
        if self.running:
            return
        if isinstance(self._layout, ResizeObservable):
            self._unobserve = self._layout.observe_resize(self._on_resize)
        else:
            self._task = asyncio.create_task(self._poll())

    def _on_resize(self) -> None:
        task = asyncio.ensure_future(self._report())
        self._reports.add(task)
        task.add_done_callback(self._report_done)

    def _report_done(self, task: asyncio.Task[Any]) -> None:
        self._reports.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Failed to report scroll height: {task.exception()}")

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            height = self._layout.scroll_height()
            if height != self._last_height:
                self._last_height = height
                try:
                    await self._report()
                except Exception as e:
                    logger.warning(f"Failed to report scroll height: {e}")

    async def stop(self) -> None:
        if self._unobserve is not None:
            self._unobserve()
            self._unobserve = None
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        for report in list(self._reports):
            report.cancel()
