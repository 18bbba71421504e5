#!/usr/bin/env python3
"""
Mention relay entry point.

Connects one XMPP account, listens for mentions in the configured rooms and
in direct chats, and answers each with a Claude Code run.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path

from mention_relay.attachments import AttachmentStore
from mention_relay.bots.mention_bot import MentionBot
from mention_relay.config import ConfigError, RelayConfig, get_relay_config
from mention_relay.core.session_runtime import InMemoryContinuityStore, MentionRuntime
from mention_relay.progress import CancelRegistry
from mention_relay.runners import ClaudeConfig, Runner, create_runner
from mention_relay.utils import load_env

log = logging.getLogger("bridge")


class ClaudeRunnerFactory:
    """RunnerFactoryPort backed by the runner registry."""

    def __init__(self, *, output_dir: Path | None = None, config: ClaudeConfig | None = None):
        self.output_dir = output_dir
        self.config = config or ClaudeConfig()

    def create(self, *, working_dir: str, session_name: str) -> Runner:
        return create_runner(
            "claude",
            working_dir=working_dir,
            output_dir=self.output_dir,
            session_name=session_name,
            claude_config=self.config,
        )


def build_bot(config: RelayConfig) -> MentionBot:
    runtime = MentionRuntime(
        working_dir=config.work_dir,
        registry=CancelRegistry(),
        runner_factory=ClaudeRunnerFactory(output_dir=config.output_dir),
        continuity=InMemoryContinuityStore(),
        attachments=AttachmentStore(),
        min_commit_interval_s=config.edit_interval_s,
        typing_interval_s=config.typing_interval_s,
        placeholder_text=config.placeholder,
    )
    return MentionBot(config, runtime)


# =============================================================================
# Entry
# =============================================================================


async def main() -> None:
    config = get_relay_config()
    bot = build_bot(config)
    bot.connect_to_server(config.server, config.port)
    log.info("Relay %s starting (rooms: %s)", config.jid, ", ".join(config.rooms) or "none")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    try:
        await stop.wait()
    finally:
        log.info("Shutting down...")
        await bot.shutdown()


def run() -> None:
    load_env()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        asyncio.run(main())
    except ConfigError as e:
        log.error("%s", e)
        raise SystemExit(2) from None
    except KeyboardInterrupt:
        log.info("Shutting down...")


if __name__ == "__main__":
    run()
