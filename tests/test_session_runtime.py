import asyncio

import pytest

from conftest import FakeRunner, RecordingReply, settle
from mention_relay.core.session_runtime import (
    InboundMention,
    ProgressSession,
    SessionState,
)
from mention_relay.core.session_runtime.runtime import GENERIC_ERROR_TEXT, NO_RESPONSE_TEXT
from mention_relay.progress import CancelRegistry
from mention_relay.runners import (
    AssistantMessage,
    FinalResult,
    SessionStarted,
    TextChunk,
    ToolResult,
    ToolUse,
)
from mention_relay.runners.errors import RunnerExitError


def _mention(prompt="what changed?", channel="room@conf.example") -> InboundMention:
    return InboundMention(
        prompt=prompt,
        channel_id=channel,
        user_id=f"{channel}/alice",
        username="alice",
        message_id="msg-1",
    )


def _happy_events(text="Done!", session_id="sess-1"):
    return [
        SessionStarted(session_id),
        AssistantMessage(blocks=(ToolUse("Bash", {"command": "git log"}),)),
        ToolResult("tool-1"),
        AssistantMessage(blocks=(TextChunk(text),)),
        FinalResult(text=text, session_id=session_id, turns=2),
    ]


@pytest.mark.asyncio
async def test_completed_run_replaces_progress_with_reply(make_runtime, registry, continuity) -> None:
    runner = FakeRunner(_happy_events())
    runtime, factory = make_runtime(runner)
    reply = RecordingReply()

    outcome = await runtime.handle(_mention(), reply)

    assert outcome is SessionState.COMPLETED
    assert reply.calls[0] == ("send", "m1", "🤔 Thinking...")
    assert reply.calls[-2:] == [("delete", "m1"), ("reply", "Done!")]
    assert all(c[1] == "m1" for c in reply.ops("edit"))
    assert reply.cancel_tokens[0]
    assert continuity.get("room@conf.example") == "sess-1"
    assert len(registry) == 0
    assert runner.cleanups == 1
    assert factory.created == [("/tmp/work", "room-conf.example")]
    assert "what changed?" in runner.prompts[0]
    assert "User: alice" in runner.prompts[0]


@pytest.mark.asyncio
async def test_follow_up_mention_resumes_channel_session(make_runtime) -> None:
    first = FakeRunner(_happy_events(session_id="sess-1"))
    second = FakeRunner(_happy_events(text="Again", session_id="sess-2"))
    runtime, _ = make_runtime(first, second)

    await runtime.handle(_mention(), RecordingReply())
    await runtime.handle(_mention("and now?"), RecordingReply())

    assert first.resume_ids == [None]
    assert second.resume_ids == ["sess-1"]

    assert runtime.reset_channel("room@conf.example") is True
    assert runtime.reset_channel("room@conf.example") is False


@pytest.mark.asyncio
async def test_cancel_before_any_event(make_runtime, registry) -> None:
    runner = FakeRunner(_happy_events())
    runtime, factory = make_runtime(runner)
    reply = RecordingReply(on_send_progress=registry.trigger)

    outcome = await runtime.handle(_mention(), reply)

    assert outcome is SessionState.CANCELLED
    assert reply.calls == [("send", "m1", "🤔 Thinking..."), ("delete", "m1")]
    assert reply.ops("reply") == []
    assert factory.created == []
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_cancel_mid_run_stops_progress_and_skips_reply(make_runtime, registry, continuity) -> None:
    runner = FakeRunner([SessionStarted("sess-9")], wait_for_abort=True)
    runtime, _ = make_runtime(runner)
    reply = RecordingReply()

    task = asyncio.create_task(runtime.handle(_mention(), reply))
    await runner.started.wait()
    await settle()
    token = reply.cancel_tokens[0]
    assert runtime.active_tokens("room@conf.example") == [token]

    assert registry.trigger(token) is True
    outcome = await task

    assert outcome is SessionState.CANCELLED
    assert reply.ops("reply") == []
    assert reply.ops("delete") == [("delete", "m1")]
    assert continuity.get("room@conf.example") is None
    assert runtime.active_tokens("room@conf.example") == []
    assert registry.trigger(token) is False
    assert runner.cleanups == 1


@pytest.mark.asyncio
async def test_cancel_channel_triggers_active_tokens(make_runtime) -> None:
    runner = FakeRunner(wait_for_abort=True)
    runtime, _ = make_runtime(runner)
    reply = RecordingReply()

    task = asyncio.create_task(runtime.handle(_mention(), reply))
    await runner.started.wait()

    assert runtime.cancel_channel("other@conf.example") == 0
    assert runtime.cancel_channel("room@conf.example") == 1
    assert await task is SessionState.CANCELLED


@pytest.mark.asyncio
async def test_edit_failures_never_block_completion(make_runtime, registry) -> None:
    runtime, _ = make_runtime(FakeRunner(_happy_events()))
    reply = RecordingReply(fail_edit=True)

    outcome = await runtime.handle(_mention(), reply)

    assert outcome is SessionState.COMPLETED
    assert reply.ops("reply") == [("reply", "Done!")]
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_without_placeholder_first_update_sends_progress(make_runtime) -> None:
    runtime, _ = make_runtime(FakeRunner(_happy_events()), placeholder_text=None)
    reply = RecordingReply()

    outcome = await runtime.handle(_mention(), reply)

    assert outcome is SessionState.COMPLETED
    sends = reply.ops("send")
    assert sends and sends[0][2].startswith("🔧 Bash")
    assert reply.calls[-1] == ("reply", "Done!")


@pytest.mark.asyncio
async def test_runner_failure_sends_one_generic_error(make_runtime, registry) -> None:
    runner = FakeRunner([SessionStarted("s")], error=RunnerExitError(1, output_preview="boom"))
    runtime, _ = make_runtime(runner)
    reply = RecordingReply()

    outcome = await runtime.handle(_mention(), reply)

    assert outcome is SessionState.FAILED
    assert reply.ops("reply") == [("reply", GENERIC_ERROR_TEXT)]
    assert reply.ops("delete") == [("delete", "m1")]
    assert len(registry) == 0
    assert runner.cleanups == 1


@pytest.mark.asyncio
async def test_error_result_and_missing_result_fail(make_runtime, continuity) -> None:
    errored = FakeRunner([FinalResult(text="overloaded", session_id="s1", is_error=True)])
    silent = FakeRunner([SessionStarted("s2")])
    runtime, _ = make_runtime(errored, silent)

    assert await runtime.handle(_mention(), RecordingReply()) is SessionState.FAILED
    assert await runtime.handle(_mention(), RecordingReply()) is SessionState.FAILED
    assert continuity.get("room@conf.example") is None


@pytest.mark.asyncio
async def test_empty_result_text_says_no_response(make_runtime) -> None:
    runtime, _ = make_runtime(FakeRunner([FinalResult(text="  ", session_id="s1")]))
    reply = RecordingReply()

    assert await runtime.handle(_mention(), reply) is SessionState.COMPLETED
    assert reply.calls[-1] == ("reply", NO_RESPONSE_TEXT)


@pytest.mark.asyncio
async def test_session_cleanup_runs_once() -> None:
    registry = CancelRegistry()
    reply = RecordingReply()
    session = ProgressSession(reply=reply, registry=registry)

    await session.open()
    assert session.state is SessionState.RUNNING
    assert session.token in registry

    await session.complete("ok")
    session.cleanup()
    session.cleanup()

    assert session.state is SessionState.CLEANED_UP
    assert session.outcome is SessionState.COMPLETED
    assert session.token not in registry
    assert session.mutator.closed


@pytest.mark.asyncio
async def test_cleanup_step_failure_does_not_skip_others(monkeypatch) -> None:
    registry = CancelRegistry()
    session = ProgressSession(reply=RecordingReply(), registry=registry)
    await session.open()

    def broken_close() -> None:
        raise RuntimeError("mutator gone")

    monkeypatch.setattr(session.mutator, "close", broken_close)
    session.cleanup()

    assert session.state is SessionState.CLEANED_UP
    assert session.token not in registry
    assert registry.trigger(session.token) is False


@pytest.mark.asyncio
async def test_events_after_abort_are_ignored() -> None:
    registry = CancelRegistry()
    reply = RecordingReply()
    session = ProgressSession(reply=reply, registry=registry, min_commit_interval_s=0.0)
    await session.open()

    assert registry.trigger(session.token) is True
    session.feed(AssistantMessage(blocks=(TextChunk("late"),)))
    await settle()

    assert session.aborted
    assert reply.ops("edit") == []
    await session.cancelled()
    with pytest.raises(RuntimeError):
        await session.complete("too late")
    session.cleanup()


@pytest.mark.asyncio
async def test_lazy_progress_send_in_flight_is_still_deleted_on_completion(make_runtime) -> None:
    runtime, _ = make_runtime(FakeRunner(_happy_events()), placeholder_text=None)
    reply = RecordingReply(send_delay=0.05)

    outcome = await runtime.handle(_mention(), reply)

    assert outcome is SessionState.COMPLETED
    assert reply.ops("send")[0][:2] == ("send", "m1")
    assert reply.calls[-2:] == [("delete", "m1"), ("reply", "Done!")]


@pytest.mark.asyncio
async def test_cancel_during_lazy_progress_send_still_deletes_it(make_runtime, registry) -> None:
    events = [SessionStarted("s1"), AssistantMessage(blocks=(ToolUse("Bash", {"command": "make"}),))]
    runtime, _ = make_runtime(FakeRunner(events, wait_for_abort=True), placeholder_text=None)
    reply = RecordingReply(send_delay=0.05, on_send_progress=registry.trigger)

    outcome = await runtime.handle(_mention(), reply)

    assert outcome is SessionState.CANCELLED
    assert reply.ops("delete") == [("delete", "m1")]
    assert reply.ops("reply") == []
    assert len(registry) == 0
