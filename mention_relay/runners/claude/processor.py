"""Claude runner event processing.

Separates parsing/logging concerns from the subprocess orchestration in
`mention_relay/runners/claude/runner.py`. Raw stream-json records become
typed `RunnerEvent`s; anything unexpected becomes `UnknownEvent`.
"""

from __future__ import annotations

from typing import Callable

from mention_relay.runners.base import RunState
from mention_relay.runners.ports import (
    AssistantMessage,
    ContentBlock,
    FinalResult,
    RunnerEvent,
    SessionStarted,
    TextChunk,
    Thinking,
    ToolResult,
    ToolUse,
    UnknownEvent,
)


def _as_float(value: object, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    return default


class ClaudeEventProcessor:
    def __init__(
        self,
        *,
        log_to_file: Callable[[str], None],
        log_response: Callable[[str], None],
    ):
        self._log_to_file = log_to_file
        self._log_response = log_response

    def _handle_system(self, event: dict, state: RunState) -> RunnerEvent | None:
        if event.get("subtype") != "init":
            return None
        session_id = event.get("session_id")
        if isinstance(session_id, str) and session_id:
            state.session_id = session_id
            return SessionStarted(session_id=session_id)
        return None

    def _parse_block(self, block: object, state: RunState) -> ContentBlock | None:
        if not isinstance(block, dict):
            return None
        block_type = block.get("type")

        if block_type == "thinking":
            text = block.get("thinking")
            return Thinking(text=text) if isinstance(text, str) else None

        if block_type == "tool_use":
            state.tool_count += 1
            name = block.get("name")
            tool_input = block.get("input")
            tool = ToolUse(
                name=name if isinstance(name, str) and name else "unknown",
                input=tool_input if isinstance(tool_input, dict) else {},
            )
            self._log_to_file(f"[tool:{tool.name}]\n")
            return tool

        if block_type == "text":
            text = block.get("text")
            return TextChunk(text=text) if isinstance(text, str) else None

        return None

    def _handle_assistant(self, event: dict, state: RunState) -> RunnerEvent:
        message = event.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, list):
            return AssistantMessage()

        blocks: list[ContentBlock] = []
        for raw_block in content:
            block = self._parse_block(raw_block, state)
            if block is not None:
                blocks.append(block)
        return AssistantMessage(blocks=tuple(blocks))

    def _handle_user(self, event: dict, state: RunState) -> RunnerEvent | None:
        # Tool results come back as "user" turns in stream-json output.
        message = event.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, list):
            return None
        for block in content:
            if isinstance(block, dict) and block.get("type") == "tool_result":
                tool_use_id = block.get("tool_use_id")
                return ToolResult(
                    tool_use_id=tool_use_id if isinstance(tool_use_id, str) else None
                )
        return None

    def _handle_result(self, event: dict, state: RunState) -> RunnerEvent:
        state.saw_result = True

        text = event.get("result")
        text = text if isinstance(text, str) else ""
        session_id = event.get("session_id")
        if isinstance(session_id, str) and session_id:
            state.session_id = session_id

        is_error = bool(event.get("is_error"))
        if is_error:
            state.saw_error = True
        elif text:
            self._log_response(text)

        turns = event.get("num_turns")
        return FinalResult(
            text=text,
            session_id=state.session_id,
            is_error=is_error,
            cost_usd=_as_float(event.get("total_cost_usd")),
            turns=turns if isinstance(turns, int) else 0,
            duration_s=_as_float(event.get("duration_ms")) / 1000,
        )

    def parse_event(self, event: dict, state: RunState) -> list[RunnerEvent]:
        event_type = event.get("type")

        if event_type == "system":
            result = self._handle_system(event, state)
            return [result] if result else []
        if event_type == "assistant":
            return [self._handle_assistant(event, state)]
        if event_type == "user":
            result = self._handle_user(event, state)
            return [result] if result else []
        if event_type == "tool_result":
            return [ToolResult()]
        if event_type == "result":
            return [self._handle_result(event, state)]

        return [UnknownEvent(kind=event_type if isinstance(event_type, str) else None)]
