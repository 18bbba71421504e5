"""Debounced commits for a rate-limited remote message.

Chat servers throttle edits, and progress arrives in bursts. The mutator
collapses a stream of "latest text" updates into commits spaced at least
`min_interval_s` apart, always committing the newest text and never queueing
superseded ones.

State machine (one instance per progress session):

    IDLE ──update, window open──▶ COMMITTING ──done──▶ IDLE
    IDLE ──update, window shut──▶ SCHEDULED ──timer──▶ COMMITTING
    COMMITTING ──update──▶ (pending kept) ──done──▶ SCHEDULED
    any ──close()──▶ CLOSED   (an in-flight commit still finishes)

At most one task exists at a time: either a sleeping timer or an in-flight
commit.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Awaitable, Callable

log = logging.getLogger(__name__)

MIN_COMMIT_INTERVAL_S = 2.0


class MutatorState(enum.Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    COMMITTING = "committing"
    CLOSED = "closed"


class DebouncedMutator:
    def __init__(
        self,
        commit: Callable[[str], Awaitable[None]],
        *,
        min_interval_s: float = MIN_COMMIT_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._commit = commit
        self._min_interval_s = min_interval_s
        self._clock = clock
        self._sleep = sleep

        self.state = MutatorState.IDLE
        self.last_commit_at: float | None = None
        self.pending_text: str | None = None
        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None

    @property
    def closed(self) -> bool:
        return self.state is MutatorState.CLOSED

    def _elapsed(self) -> float | None:
        if self.last_commit_at is None:
            return None
        return self._clock() - self.last_commit_at

    def update(self, text: str) -> None:
        """Record `text` as the latest state and commit it when allowed."""
        if self.closed:
            return

        if self.state is not MutatorState.IDLE:
            # A timer or an in-flight commit will pick this up.
            self.pending_text = text
            return

        elapsed = self._elapsed()
        if elapsed is None or elapsed >= self._min_interval_s:
            self.pending_text = None
            self._start_commit(text)
            return

        self.pending_text = text
        self._schedule(self._min_interval_s - elapsed)

    def close(self) -> None:
        """Stop for good: drop pending text and any timer.

        A commit already in flight is left to finish (it schedules nothing
        further); `wait_inflight()` awaits it.
        """
        if self.closed:
            return
        committing = self.state is MutatorState.COMMITTING
        self.state = MutatorState.CLOSED
        self.pending_text = None
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if committing:
            self._inflight = task
        else:
            task.cancel()

    async def wait_inflight(self) -> None:
        """Wait for a commit that was in flight when the mutator closed."""
        task = self._inflight
        self._inflight = None
        if task is not None and not task.done():
            await asyncio.wait((task,))

    def _start_commit(self, text: str) -> None:
        self.state = MutatorState.COMMITTING
        self.last_commit_at = self._clock()
        self._task = asyncio.create_task(self._run_commit(text))

    def _schedule(self, delay_s: float) -> None:
        self.state = MutatorState.SCHEDULED
        self._task = asyncio.create_task(self._fire_after(delay_s))

    async def _fire_after(self, delay_s: float) -> None:
        try:
            await self._sleep(delay_s)
        except asyncio.CancelledError:
            return
        if self.closed:
            return
        text = self.pending_text
        self.pending_text = None
        if text is None:
            self.state = MutatorState.IDLE
            self._task = None
            return
        self.state = MutatorState.COMMITTING
        self.last_commit_at = self._clock()
        await self._run_commit(text)

    async def _run_commit(self, text: str) -> None:
        try:
            await self._commit(text)
        except asyncio.CancelledError:
            return
        except Exception:
            log.debug("Progress commit failed", exc_info=True)

        if self.closed:
            return

        self._task = None
        if self.pending_text is None:
            self.state = MutatorState.IDLE
            return

        elapsed = self._elapsed() or 0.0
        if elapsed >= self._min_interval_s:
            text = self.pending_text
            self.pending_text = None
            self._start_commit(text)
        else:
            self._schedule(self._min_interval_s - elapsed)
