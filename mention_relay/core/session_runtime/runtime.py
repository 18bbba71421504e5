"""MentionRuntime.

This is the single place that owns, per mention:
- the progress session (placeholder, debounced edits, typing, cancel token)
- runner orchestration and result handling
- conversation continuity between mentions in the same channel

It depends only on ports, not concrete XMPP/runners.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Awaitable, Callable

from mention_relay.attachments import Attachment
from mention_relay.progress import CancelRegistry
from mention_relay.progress.debounce import MIN_COMMIT_INTERVAL_S
from mention_relay.progress.typing import TYPING_INTERVAL_S
from mention_relay.runners import (
    AssistantMessage,
    FinalResult,
    RunnerError,
    SessionStarted,
    ToolUse,
)
from mention_relay.runners.errors import RunnerResultError

from mention_relay.core.session_runtime.api import (
    CANCELLED,
    InboundMention,
    ReplyPort,
    RunCancelled,
    RunResult,
    SessionState,
)
from mention_relay.core.session_runtime.ports import (
    AttachmentFetcherPort,
    ContinuityStorePort,
    RunnerFactoryPort,
)
from mention_relay.core.session_runtime.prompt import build_prompt
from mention_relay.core.session_runtime.session import PLACEHOLDER_TEXT, ProgressSession

GENERIC_ERROR_TEXT = "Sorry, something went wrong while handling your request."
NO_RESPONSE_TEXT = "No response."


def _session_name(channel_id: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9_.-]+", "-", channel_id).strip("-")
    return slug or "channel"


class MentionRuntime:
    def __init__(
        self,
        *,
        working_dir: str,
        registry: CancelRegistry,
        runner_factory: RunnerFactoryPort,
        continuity: ContinuityStorePort,
        attachments: AttachmentFetcherPort | None = None,
        min_commit_interval_s: float = MIN_COMMIT_INTERVAL_S,
        typing_interval_s: float = TYPING_INTERVAL_S,
        placeholder_text: str | None = PLACEHOLDER_TEXT,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.working_dir = working_dir
        self.registry = registry
        self._runner_factory = runner_factory
        self._continuity = continuity
        self._attachments = attachments
        self._min_commit_interval_s = min_commit_interval_s
        self._typing_interval_s = typing_interval_s
        self._placeholder_text = placeholder_text
        self._clock = clock
        self._sleep = sleep
        self.log = logging.getLogger("runtime")

        # token -> channel, for "/cancel" without a token.
        self._active: dict[str, str] = {}

    def active_tokens(self, channel_id: str) -> list[str]:
        return [t for t, ch in self._active.items() if ch == channel_id]

    def cancel_channel(self, channel_id: str) -> int:
        """Trigger every in-flight cancel token for a channel."""
        return sum(1 for t in self.active_tokens(channel_id) if self.registry.trigger(t))

    def reset_channel(self, channel_id: str) -> bool:
        """Forget the agent session for a channel; the next mention starts fresh."""
        return self._continuity.clear(channel_id)

    def _new_session(self, reply: ReplyPort) -> ProgressSession:
        return ProgressSession(
            reply=reply,
            registry=self.registry,
            min_commit_interval_s=self._min_commit_interval_s,
            typing_interval_s=self._typing_interval_s,
            placeholder_text=self._placeholder_text,
            clock=self._clock,
            sleep=self._sleep,
        )

    async def handle(self, mention: InboundMention, reply: ReplyPort) -> SessionState | None:
        """Run one mention to a terminal state and clean up.

        Returns the terminal state the session reached (None only if the
        handler itself was cancelled before one was reached).
        """
        session = self._new_session(reply)
        self._active[session.token] = mention.channel_id
        self.log.info(
            "Mention from %s in %s (token=%s)",
            mention.username,
            mention.channel_id,
            session.token,
        )

        try:
            await session.open()
            prompt = await self._build_prompt(mention)
            result = await self._run(session, mention, prompt)

            if isinstance(result, RunCancelled):
                self.log.info("Mention cancelled (token=%s)", session.token)
                await session.cancelled()
            else:
                if result.session_id:
                    self._continuity.set(mention.channel_id, result.session_id)
                self.log.info(
                    "Mention completed (token=%s, tools=%d, turns=%d, cost=$%.3f, %.1fs)",
                    session.token,
                    result.tool_count,
                    result.turns,
                    result.cost_usd,
                    result.duration_s,
                )
                await session.complete(result.text.strip() or NO_RESPONSE_TEXT)
        except asyncio.CancelledError:
            raise
        except Exception:
            if session.aborted:
                self.log.info("Mention cancelled mid-failure (token=%s)", session.token)
                await session.cancelled()
            else:
                self.log.exception("Mention failed (token=%s)", session.token)
                await session.fail(GENERIC_ERROR_TEXT)
        finally:
            self._active.pop(session.token, None)
            session.cleanup()

        return session.outcome

    async def _build_prompt(self, mention: InboundMention) -> str:
        attachments: list[Attachment] = []
        if mention.image_urls and self._attachments is not None:
            try:
                attachments = await self._attachments.download_images(
                    mention.channel_id, mention.image_urls
                )
            except Exception:
                self.log.warning("Failed to download attachments", exc_info=True)
        return build_prompt(mention, attachments)

    async def _run(
        self,
        session: ProgressSession,
        mention: InboundMention,
        prompt: str,
    ) -> RunResult | RunCancelled:
        if session.aborted:
            return CANCELLED

        resume_id = self._continuity.get(mention.channel_id)
        runner = self._runner_factory.create(
            working_dir=self.working_dir,
            session_name=_session_name(mention.channel_id),
        )

        started_id: str | None = None
        final: FinalResult | None = None
        tool_count = 0
        start = time.monotonic()
        try:
            async for event in runner.run(prompt, resume_id, abort=session.abort):
                session.feed(event)
                if isinstance(event, SessionStarted):
                    started_id = event.session_id
                elif isinstance(event, AssistantMessage):
                    tool_count += sum(1 for b in event.blocks if isinstance(b, ToolUse))
                elif isinstance(event, FinalResult):
                    final = event
        finally:
            try:
                await runner.cleanup()
            except Exception:
                self.log.warning("Runner cleanup failed", exc_info=True)

        if session.aborted:
            return CANCELLED
        if final is None:
            raise RunnerError("Agent finished without a result")
        if final.is_error:
            raise RunnerResultError(final.text, session_id=final.session_id or started_id)

        return RunResult(
            text=final.text,
            session_id=final.session_id or started_id,
            cost_usd=final.cost_usd,
            turns=final.turns,
            tool_count=tool_count,
            duration_s=final.duration_s or (time.monotonic() - start),
        )
