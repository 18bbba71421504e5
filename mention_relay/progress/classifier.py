"""Runner event classification.

Maps each runner event to at most one short, human-readable progress line.
Priority within an assistant message is thinking > tool use > text; once a
higher-priority block is found the rest of the message is ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from mention_relay.runners.ports import (
    AssistantMessage,
    FinalResult,
    TextChunk,
    Thinking,
    ToolResult,
    ToolUse,
)

log = logging.getLogger(__name__)

THINKING_PREVIEW_LEN = 150
TEXT_PREVIEW_LEN = 200
SUMMARY_FIELD_LEN = 80
GENERIC_FIELD_LEN = 60

THINKING_MARKER = "💭"
TOOL_MARKER = "🔧"
WRITING_LINE = "📝 Writing a response..."
PROCESSING_LINE = "⚙️ Processing results..."

_MCP_PREFIX_RE = re.compile(r"^mcp__\w+__")


@dataclass(frozen=True)
class ClassifiedUpdate:
    display_text: str


def truncate(text: str, max_len: int) -> str:
    return text[:max_len] + "..." if len(text) > max_len else text


def _non_empty_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def display_tool_name(name: str) -> str:
    """`mcp__discord__read_messages` -> `read messages`."""
    return _MCP_PREFIX_RE.sub("", name or "unknown").replace("_", " ").strip() or "unknown"


def summarize_tool_input(tool_input: dict) -> str:
    """Pick the most telling field of a tool input; empty when nothing fits."""
    if not isinstance(tool_input, dict):
        return ""

    query = _non_empty_str(tool_input.get("query"))
    if query:
        return f'🔍 "{truncate(query, SUMMARY_FIELD_LEN)}"'
    content = _non_empty_str(tool_input.get("content"))
    if content:
        return f'🔍 "{truncate(content, SUMMARY_FIELD_LEN)}"'

    message = _non_empty_str(tool_input.get("message"))
    if message:
        return f'💬 "{truncate(message, SUMMARY_FIELD_LEN)}"'

    page_id = _non_empty_str(tool_input.get("page_id"))
    if page_id:
        return f"📄 page: {page_id[:8]}..."
    channel_id = _non_empty_str(tool_input.get("channelId"))
    if channel_id:
        return f"📺 channel: {channel_id}"
    thread_id = _non_empty_str(tool_input.get("threadId"))
    if thread_id:
        return f"🧵 thread: {thread_id}"

    path = _non_empty_str(tool_input.get("path")) or _non_empty_str(
        tool_input.get("file_path")
    )
    if path:
        return f"📂 {path}"
    command = _non_empty_str(tool_input.get("command"))
    if command:
        return f"$ {truncate(command, SUMMARY_FIELD_LEN)}"

    for key, value in tool_input.items():
        if isinstance(value, str):
            return f"{key}: {truncate(value, GENERIC_FIELD_LEN)}"
    return ""


def _thinking_preview(text: str) -> str:
    if len(text) <= THINKING_PREVIEW_LEN:
        return text
    tail = text[-THINKING_PREVIEW_LEN:]
    # Drop the partial first line so the preview starts at a line boundary.
    newline = tail.find("\n")
    if newline != -1:
        tail = tail[newline + 1 :]
    return "..." + tail


def _classify_assistant(message: AssistantMessage) -> ClassifiedUpdate | None:
    thoughts = [b for b in message.blocks if isinstance(b, Thinking) and b.text.strip()]
    if thoughts:
        preview = _thinking_preview(thoughts[-1].text)
        return ClassifiedUpdate(f"{THINKING_MARKER} {preview}")

    tools = [b for b in message.blocks if isinstance(b, ToolUse)]
    if tools:
        last = tools[-1]
        name = display_tool_name(last.name)
        summary = summarize_tool_input(last.input)
        if summary:
            return ClassifiedUpdate(f"{TOOL_MARKER} {name} {summary}")
        return ClassifiedUpdate(f"{TOOL_MARKER} {name} is running...")

    text = "".join(b.text for b in message.blocks if isinstance(b, TextChunk))
    if text.strip():
        return ClassifiedUpdate(f"{WRITING_LINE}\n\n{truncate(text, TEXT_PREVIEW_LEN)}")

    return None


def classify(event: object) -> ClassifiedUpdate | None:
    """Classify a runner event; never raises."""
    try:
        if isinstance(event, AssistantMessage):
            return _classify_assistant(event)
        if isinstance(event, (ToolResult, FinalResult)):
            return ClassifiedUpdate(PROCESSING_LINE)
        return None
    except Exception:
        log.debug("Failed to classify runner event %r", event, exc_info=True)
        return None
