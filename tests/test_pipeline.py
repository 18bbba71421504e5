import asyncio

import pytest

from mention_relay.runners.base import RunState
from mention_relay.runners.pipeline import JSONLineStats, iter_json_line_pipeline


def _stream(*lines: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for line in lines:
        reader.feed_data(line)
    reader.feed_eof()
    return reader


@pytest.mark.asyncio
async def test_pipeline_yields_parsed_events_and_keeps_noise() -> None:
    stats = JSONLineStats()
    stream = _stream(
        b'{"type": "a"}\n',
        b"not json\n",
        b"\n",
        b"[1, 2]\n",
        b'{"type": "b"}\n',
    )

    def parse_event(payload: dict, state: RunState):
        return [payload["type"], payload["type"].upper()]

    out = [
        item
        async for item in iter_json_line_pipeline(
            byte_stream=stream, state=RunState(), parse_event=parse_event, stats=stats
        )
    ]

    assert out == ["a", "A", "b", "B"]
    assert stats.emitted_any is True
    assert stats.lines_read == 5
    assert stats.non_json_lines == ["not json", "[1, 2]"]


@pytest.mark.asyncio
async def test_pipeline_skips_empty_parses() -> None:
    stats = JSONLineStats()
    stream = _stream(b'{"type": "a"}\n')

    out = [
        item
        async for item in iter_json_line_pipeline(
            byte_stream=stream, state=RunState(), parse_event=lambda p, s: [], stats=stats
        )
    ]

    assert out == []
    assert stats.emitted_any is False


def test_non_json_lines_are_bounded() -> None:
    stats = JSONLineStats(max_non_json_lines=2)
    for i in range(5):
        stats.remember_non_json(str(i))
    assert stats.non_json_lines == ["0", "1"]
