"""Shared runner pipeline helpers.

Runners that spawn an agent CLI read its stdout as JSON lines. This module
turns the raw byte stream into parsed events:
- one JSON object per line
- non-JSON lines are kept (bounded) for diagnostics
- the engine supplies `parse_event`, which maps a raw dict to zero or more
  events
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, TypeVar

from mention_relay.runners.base import RunState

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class JSONLineStats:
    emitted_any: bool = False
    lines_read: int = 0
    non_json_lines: list[str] = field(default_factory=list)
    max_non_json_lines: int = 50

    def remember_non_json(self, line: str) -> None:
        if len(self.non_json_lines) < self.max_non_json_lines:
            self.non_json_lines.append(line)


async def iter_json_line_pipeline(
    *,
    byte_stream: asyncio.StreamReader,
    state: RunState,
    parse_event: Callable[[dict, RunState], T | list[T] | None],
    stats: JSONLineStats,
) -> AsyncIterator[T]:
    """Yield parsed events from a JSON-lines byte stream until EOF."""

    while True:
        raw = await byte_stream.readline()
        if not raw:
            break

        stats.lines_read += 1
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            continue

        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            stats.remember_non_json(line)
            continue

        if not isinstance(payload, dict):
            stats.remember_non_json(line)
            continue

        parsed = parse_event(payload, state)
        if not parsed:
            continue

        items: list[T] = parsed if isinstance(parsed, list) else [parsed]
        for item in items:
            stats.emitted_any = True
            yield item
