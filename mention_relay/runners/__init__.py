"""CLI runners for code agents."""

from mention_relay.runners.claude import ClaudeConfig, ClaudeRunner
from mention_relay.runners.errors import RunnerError
from mention_relay.runners.ports import (
    AssistantMessage,
    FinalResult,
    Runner,
    RunnerEvent,
    SessionStarted,
    TextChunk,
    Thinking,
    ToolResult,
    ToolUse,
    UnknownEvent,
)
from mention_relay.runners.registry import create_runner

__all__ = [
    "AssistantMessage",
    "ClaudeConfig",
    "ClaudeRunner",
    "FinalResult",
    "Runner",
    "RunnerError",
    "RunnerEvent",
    "SessionStarted",
    "TextChunk",
    "Thinking",
    "ToolResult",
    "ToolUse",
    "UnknownEvent",
    "create_runner",
]
