"""Briefing history controller — refresh lifecycle and previous/current navigation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Protocol

from inbox_brief.briefing.pipeline import RefreshResult
from inbox_brief.briefing.state import ActiveSlot, BriefingState, StateStore

logger = logging.getLogger(__name__)

REFRESHING_LABEL = "Refreshing..."
REFRESHING_SUMMARY = "Reading inbox..."
FOREVER_AGO = "Forever ago"
CANCELLED_MESSAGE = "Refresh cancelled"
ERROR_PREFIX = "Error: "


class RefreshPipeline(Protocol):
    async def refresh(self) -> RefreshResult:
        ...


class RefreshMode(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


#: Called with a snapshot of the state after every mutation.
StateListener = Callable[[BriefingState], None]


def format_timestamp(moment: datetime) -> str:
    """Short wall-clock label, e.g. ``Oct 18, 9:05 AM``."""
    hour = moment.hour % 12 or 12
    return f"{moment:%b} {moment.day}, {hour}:{moment:%M %p}"


def updated_label(timestamp: str | None) -> str:
    return f"Last updated at: {timestamp or FOREVER_AGO}"


class BriefingController:
    """Sole owner and writer of BriefingState.

    Two refreshes never overlap: a request that arrives while one is running
    is rejected.  Every mutation is persisted synchronously before the
    method returns.

    Usage::

        controller = BriefingController(StateStore(), BriefingPipeline())
        await controller.refresh()
        controller.view_previous()
    """

    def __init__(
        self,
        store: StateStore,
        pipeline: RefreshPipeline,
        *,
        clock: Callable[[], datetime] = datetime.now,
        on_change: StateListener | None = None,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._clock = clock
        self._on_change = on_change
        self._mode = RefreshMode.IDLE
        self._task: asyncio.Task[RefreshResult] | None = None
        self._state = store.load()
        if self._state.last_updated_label == REFRESHING_LABEL:
            self._recover_interrupted_refresh()

    # ── Read API ───────────────────────────────────────────────────────────────

    @property
    def state(self) -> BriefingState:
        """A copy of the current state, safe to hand to the presentation layer."""
        return replace(self._state)

    @property
    def mode(self) -> RefreshMode:
        return self._mode

    @property
    def is_refreshing(self) -> bool:
        return self._mode is RefreshMode.REFRESHING

    # ── Refresh lifecycle ──────────────────────────────────────────────────────

    def request_refresh(self) -> asyncio.Task[RefreshResult] | None:
        """Start a refresh in the background and return its task.

        Returns None, without touching state, if a refresh is already running.
        Must be called from within a running event loop.
        """
        if self._mode is RefreshMode.REFRESHING:
            logger.warning("Refresh already in progress — ignoring request")
            return None

        state = self._state
        state.displaced_briefing = state.previous_briefing
        state.displaced_update_time = state.previous_update_time
        state.previous_briefing = state.current_briefing
        state.previous_update_time = state.update_time
        state.last_updated_label = REFRESHING_LABEL
        state.summary = REFRESHING_SUMMARY
        self._mode = RefreshMode.REFRESHING
        self._persist()

        self._task = asyncio.create_task(self._run_refresh())
        self._task.add_done_callback(self._on_task_done)
        return self._task

    async def refresh(self) -> RefreshResult | None:
        """Request a refresh and wait for it.  None if one was already running."""
        task = self.request_refresh()
        if task is None:
            return None
        return await task

    def cancel_refresh(self) -> bool:
        """Cancel the running refresh.  It completes as ``Error: Refresh cancelled``."""
        if self._task is None or self._task.done():
            return False
        logger.info("Cancelling refresh")
        return self._task.cancel()

    def complete_refresh(self, result: RefreshResult) -> None:
        """Record a finished refresh as the current briefing, success or not."""
        if result.ok:
            text = result.text or ""
        else:
            text = f"{ERROR_PREFIX}{result.error}"
        timestamp = format_timestamp(self._clock())

        state = self._state
        state.summary = text
        state.current_briefing = text
        state.update_time = timestamp
        state.last_updated_label = updated_label(timestamp)
        state.active = ActiveSlot.CURRENT
        state.displaced_briefing = None
        state.displaced_update_time = None
        self._mode = RefreshMode.IDLE
        self._task = None
        self._persist()

    async def _run_refresh(self) -> RefreshResult:
        try:
            result = await self._pipeline.refresh()
        except asyncio.CancelledError:
            self.complete_refresh(RefreshResult.failure(CANCELLED_MESSAGE))
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("Unexpected error during refresh: %s", exc, exc_info=True)
            result = RefreshResult.failure(str(exc) or type(exc).__name__)
        self.complete_refresh(result)
        return result

    def _on_task_done(self, task: asyncio.Task[RefreshResult]) -> None:
        # A task cancelled before it first ran never reaches _run_refresh's handler.
        if task is self._task and task.cancelled():
            self.complete_refresh(RefreshResult.failure(CANCELLED_MESSAGE))

    # ── Navigation ─────────────────────────────────────────────────────────────

    def view_previous(self) -> bool:
        """Show the previous briefing.  Returns False (no-op) if there is none."""
        state = self._state
        if state.previous_briefing is None:
            return False
        state.summary = state.previous_briefing
        state.last_updated_label = updated_label(state.previous_update_time)
        state.active = ActiveSlot.PREVIOUS
        self._persist()
        return True

    def view_current(self) -> bool:
        """Show the current briefing.  Returns False (no-op) if there is none."""
        state = self._state
        if state.current_briefing is None:
            return False
        state.summary = state.current_briefing
        state.last_updated_label = updated_label(state.update_time)
        state.active = ActiveSlot.CURRENT
        self._persist()
        return True

    # ── Internal ───────────────────────────────────────────────────────────────

    def _recover_interrupted_refresh(self) -> None:
        """The process died mid-refresh last time; put the last briefing back."""
        logger.warning("Previous refresh never completed — restoring last briefing")
        # Undo the history shift made when that refresh was requested.
        state = self._state
        state.previous_briefing = state.displaced_briefing
        state.previous_update_time = state.displaced_update_time
        state.displaced_briefing = None
        state.displaced_update_time = None
        if not self.view_current():
            fresh = BriefingState()
            self._state.summary = fresh.summary
            self._state.last_updated_label = fresh.last_updated_label
            self._state.active = ActiveSlot.CURRENT
            self._persist()

    def _persist(self) -> None:
        try:
            self._store.save(self._state)
        except OSError as exc:
            logger.error("Failed to persist briefing state to %s: %s", self._store.path, exc)
        if self._on_change is not None:
            self._on_change(self.state)
