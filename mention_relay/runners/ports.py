"""Ports (interfaces) for runner implementations.

The rest of the system (bots, runtime, progress) should depend on these
contracts rather than concrete runner implementations.

Runner events form a closed set: one dataclass per record kind the agent
emits, plus `UnknownEvent` for anything else. Consumers dispatch with
`isinstance` instead of probing raw dicts.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol


# -----------------
# Assistant content blocks
# -----------------


@dataclass(frozen=True)
class Thinking:
    text: str


@dataclass(frozen=True)
class ToolUse:
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TextChunk:
    text: str


ContentBlock = Thinking | ToolUse | TextChunk


# -----------------
# Event records
# -----------------


@dataclass(frozen=True)
class AssistantMessage:
    blocks: tuple[ContentBlock, ...] = ()


@dataclass(frozen=True)
class ToolResult:
    tool_use_id: str | None = None


@dataclass(frozen=True)
class SessionStarted:
    session_id: str


@dataclass(frozen=True)
class FinalResult:
    """Terminal record of a run; `session_id` is the continuation token."""

    text: str
    session_id: str | None = None
    is_error: bool = False
    cost_usd: float = 0.0
    turns: int = 0
    duration_s: float = 0.0


@dataclass(frozen=True)
class UnknownEvent:
    kind: str | None = None


RunnerEvent = AssistantMessage | ToolResult | SessionStarted | FinalResult | UnknownEvent


class Runner(Protocol):
    """A streaming runner (engine adapter).

    `abort` is a cooperative stop request: the runner checks it at its own
    suspension points and stops yielding once it is set.
    """

    def run(
        self,
        prompt: str,
        session_id: str | None = None,
        *,
        abort: asyncio.Event | None = None,
    ) -> AsyncIterator[RunnerEvent]:
        ...

    async def cleanup(self) -> None:
        ...
