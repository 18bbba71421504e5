"""Claude Code CLI runner."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from pathlib import Path
from typing import AsyncIterator

from mention_relay.runners.base import BaseRunner, RunState
from mention_relay.runners.claude.config import ClaudeConfig
from mention_relay.runners.claude.processor import ClaudeEventProcessor
from mention_relay.runners.errors import RunnerError, RunnerExitError
from mention_relay.runners.pipeline import JSONLineStats, iter_json_line_pipeline
from mention_relay.runners.ports import RunnerEvent
from mention_relay.runners.subprocess_transport import SubprocessTransport

log = logging.getLogger("claude")


class ClaudeRunner(BaseRunner):
    """Runs Claude Code and streams parsed events."""

    def __init__(
        self,
        working_dir: str,
        output_dir: Path | None = None,
        session_name: str | None = None,
        *,
        config: ClaudeConfig | None = None,
    ):
        super().__init__(working_dir, output_dir, session_name)
        self.config = config or ClaudeConfig()
        self._transport = SubprocessTransport()
        self._processor = ClaudeEventProcessor(
            log_to_file=self._log_to_file,
            log_response=self._log_response,
        )

    def _build_command(self, prompt: str, session_id: str | None) -> list[str]:
        """Build the claude command line."""
        cmd = [
            self.config.resolve_bin(), "-p", prompt,
            "--output-format", "stream-json",
            "--verbose",
            "--permission-mode", self.config.resolve_permission_mode(),
        ]

        model = self.config.resolve_model()
        if model:
            cmd.extend(["--model", model])

        mcp_config = self.config.resolve_mcp_config()
        if mcp_config:
            cmd.extend(["--mcp-config", mcp_config])

        if session_id:
            cmd.extend(["--resume", session_id])
        return cmd

    async def _terminate_on_abort(self, abort: asyncio.Event) -> None:
        await abort.wait()
        log.info("Claude: abort requested, terminating process")
        self._transport.terminate()

    async def run(
        self,
        prompt: str,
        session_id: str | None = None,
        *,
        abort: asyncio.Event | None = None,
    ) -> AsyncIterator[RunnerEvent]:
        """Run Claude, yielding typed runner events.

        Stops quietly once `abort` is set. Raises `RunnerError` when the CLI
        produces no events or exits non-zero without a final result.
        """
        if abort is not None and abort.is_set():
            log.info("Claude: aborted before start")
            return

        log.info(f"Claude: {prompt[:50]}...")
        self._log_prompt(prompt)

        state = RunState()
        cmd = self._build_command(prompt, session_id)
        try:
            stdout = await self._transport.start(
                cmd,
                cwd=self.working_dir,
                stdout_limit=10 * 1024 * 1024,
            )
        except OSError as e:
            raise RunnerError(f"Failed to start {cmd[0]}: {e}") from e

        watcher: asyncio.Task | None = None
        if abort is not None:
            watcher = asyncio.create_task(self._terminate_on_abort(abort))

        try:
            stats = JSONLineStats()
            async for event in iter_json_line_pipeline(
                byte_stream=stdout,
                state=state,
                parse_event=self._processor.parse_event,
                stats=stats,
            ):
                if abort is not None and abort.is_set():
                    break
                yield event

            if abort is not None and abort.is_set():
                return

            returncode = await self._transport.wait()

            if not stats.emitted_any:
                raise RunnerExitError(
                    returncode,
                    output_preview="\n".join(stats.non_json_lines[-10:]) or "no JSON events",
                )
            if returncode != 0 and not state.saw_result:
                raise RunnerExitError(
                    returncode,
                    output_preview="\n".join(stats.non_json_lines[-10:]),
                )
        finally:
            if watcher is not None:
                watcher.cancel()
                with suppress(asyncio.CancelledError):
                    await watcher

    async def cleanup(self) -> None:
        """Terminate and force-kill if the process doesn't exit."""
        await self._transport.terminate_and_kill()
