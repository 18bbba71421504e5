"""ProgressSession: per-mention progress state and teardown.

A session owns everything that must be released when a mention finishes:
- the cancel token registration
- the typing keepalive task
- the debounced mutator (and its timer)
- the remote progress message

States: INIT -> RUNNING -> COMPLETED | CANCELLED | FAILED -> CLEANED_UP.
`cleanup()` is the only way into CLEANED_UP and runs its steps at most once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from mention_relay.core.session_runtime.api import (
    TERMINAL_STATES,
    ReplyPort,
    SessionState,
)
from mention_relay.progress import (
    CancelRegistry,
    DebouncedMutator,
    TypingIndicator,
    classify,
)
from mention_relay.progress.debounce import MIN_COMMIT_INTERVAL_S
from mention_relay.progress.typing import TYPING_INTERVAL_S

PLACEHOLDER_TEXT = "🤔 Thinking..."


class ProgressSession:
    def __init__(
        self,
        *,
        reply: ReplyPort,
        registry: CancelRegistry,
        min_commit_interval_s: float = MIN_COMMIT_INTERVAL_S,
        typing_interval_s: float = TYPING_INTERVAL_S,
        placeholder_text: str | None = PLACEHOLDER_TEXT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._reply = reply
        self._registry = registry
        self._typing_interval_s = typing_interval_s
        self._placeholder_text = placeholder_text

        self.token = registry.new_token()
        self.log = logging.getLogger(f"session.{self.token}")
        self.abort = asyncio.Event()
        self.state = SessionState.INIT
        self.outcome: SessionState | None = None
        self.progress_handle: object | None = None

        self._typing = TypingIndicator(send_typing=reply.send_typing)
        self._mutator = DebouncedMutator(
            self._commit,
            min_interval_s=min_commit_interval_s,
            clock=clock,
            sleep=sleep,
        )
        self._cleaned_up = False

    @property
    def aborted(self) -> bool:
        return self.abort.is_set()

    @property
    def mutator(self) -> DebouncedMutator:
        return self._mutator

    # -------------------------------------------------------------------------
    # INIT / RUNNING
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        """Register the cancel token, start typing, send the placeholder."""
        self._registry.register(self.token, self.request_abort)
        self._typing.start(interval_s=self._typing_interval_s)

        if self._placeholder_text:
            try:
                self.progress_handle = await self._reply.send_progress(
                    self._placeholder_text, cancel_token=self.token
                )
            except Exception:
                self.log.debug("Failed to send progress placeholder", exc_info=True)

        if self.state is SessionState.INIT:
            self.state = SessionState.RUNNING

    def request_abort(self) -> None:
        """Cancel callback: ask the task to stop and freeze progress output."""
        if self.abort.is_set():
            return
        self.log.info("Cancel requested")
        self.abort.set()
        self._mutator.close()

    def feed(self, event: object) -> None:
        """Classify one runner event and hand its text to the mutator."""
        if self.state is not SessionState.RUNNING or self.abort.is_set():
            return
        update = classify(event)
        if update is not None:
            self._mutator.update(update.display_text)

    async def _commit(self, text: str) -> None:
        if self.progress_handle is None:
            self.progress_handle = await self._reply.send_progress(
                text, cancel_token=self.token
            )
            return
        await self._reply.edit_progress(self.progress_handle, text)

    # -------------------------------------------------------------------------
    # Terminal transitions
    # -------------------------------------------------------------------------

    def _enter(self, state: SessionState) -> None:
        if self.state in TERMINAL_STATES or self.state is SessionState.CLEANED_UP:
            raise RuntimeError(f"Session already finished ({self.state.value})")
        self.state = state
        self.outcome = state
        self._mutator.close()

    async def _remove_progress(self) -> None:
        # A lazy send may still be in flight; its handle is needed here.
        await self._mutator.wait_inflight()
        handle = self.progress_handle
        self.progress_handle = None
        if handle is None:
            return
        try:
            await self._reply.delete_progress(handle)
        except Exception:
            self.log.debug("Failed to delete progress message", exc_info=True)

    async def _send_reply(self, text: str) -> None:
        try:
            await self._reply.reply(text)
        except Exception:
            self.log.warning("Failed to deliver reply", exc_info=True)

    async def complete(self, text: str) -> None:
        self._enter(SessionState.COMPLETED)
        await self._remove_progress()
        await self._send_reply(text)

    async def cancelled(self) -> None:
        self._enter(SessionState.CANCELLED)
        await self._remove_progress()

    async def fail(self, message: str) -> None:
        self._enter(SessionState.FAILED)
        await self._remove_progress()
        await self._send_reply(message)

    # -------------------------------------------------------------------------
    # CLEANED_UP
    # -------------------------------------------------------------------------

    def cleanup(self) -> None:
        """Release every session resource; later calls are no-ops."""
        if self._cleaned_up:
            return
        self._cleaned_up = True

        steps: tuple[tuple[str, Callable[[], None]], ...] = (
            ("typing", self._typing.stop),
            ("mutator", self._mutator.close),
            ("cancel token", lambda: self._registry.unregister(self.token)),
        )
        for name, step in steps:
            try:
                step()
            except Exception:
                self.log.exception("Cleanup step failed: %s", name)

        self.state = SessionState.CLEANED_UP
