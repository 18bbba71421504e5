import asyncio

import pytest

from mention_relay.core.session_runtime import InMemoryContinuityStore, MentionRuntime
from mention_relay.progress import CancelRegistry


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """Manual clock with a matching sleep; time only moves on `advance`."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self._sleepers: list[tuple[float, asyncio.Future]] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + seconds, fut))
        await fut

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            await settle()
            self._sleepers = [s for s in self._sleepers if not s[1].done()]
            due = [s for s in self._sleepers if s[0] <= target]
            if not due:
                break
            entry = min(due, key=lambda s: s[0])
            self._sleepers.remove(entry)
            self.now = max(self.now, entry[0])
            entry[1].set_result(None)
        self.now = target
        await settle()


class RecordingReply:
    """ReplyPort fake that records every remote mutation."""

    def __init__(self, *, fail_edit=False, fail_send=False, on_send_progress=None, send_delay=0.0):
        self.calls: list[tuple] = []
        self.cancel_tokens: list[str | None] = []
        self.typing = 0
        self.fail_edit = fail_edit
        self.fail_send = fail_send
        self.on_send_progress = on_send_progress
        self.send_delay = send_delay
        self._next = 0

    async def send_progress(self, text, *, cancel_token=None):
        if self.fail_send:
            raise ConnectionError("send failed")
        self._next += 1
        handle = f"m{self._next}"
        self.calls.append(("send", handle, text))
        self.cancel_tokens.append(cancel_token)
        if self.on_send_progress is not None:
            self.on_send_progress(cancel_token)
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        return handle

    async def edit_progress(self, handle, text):
        if self.fail_edit:
            raise ConnectionError("edit failed")
        self.calls.append(("edit", handle, text))

    async def delete_progress(self, handle):
        self.calls.append(("delete", handle))

    async def reply(self, text):
        self.calls.append(("reply", text))

    async def send_typing(self):
        self.typing += 1

    def ops(self, kind: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == kind]


class FakeRunner:
    """Yields scripted events, honouring the abort handle between them."""

    def __init__(self, events=(), *, error=None, wait_for_abort=False):
        self.events = list(events)
        self.error = error
        self.wait_for_abort = wait_for_abort
        self.prompts: list[str] = []
        self.resume_ids: list[str | None] = []
        self.started = asyncio.Event()
        self.cleanups = 0

    async def run(self, prompt, session_id=None, *, abort=None):
        self.prompts.append(prompt)
        self.resume_ids.append(session_id)
        self.started.set()
        for event in self.events:
            if abort is not None and abort.is_set():
                return
            yield event
            await asyncio.sleep(0)
        if self.wait_for_abort and abort is not None:
            await abort.wait()
            return
        if self.error is not None:
            raise self.error

    async def cleanup(self):
        self.cleanups += 1


class FakeRunnerFactory:
    def __init__(self, *runners):
        self.runners = list(runners)
        self.created: list[tuple[str, str]] = []

    def create(self, *, working_dir, session_name):
        self.created.append((working_dir, session_name))
        return self.runners.pop(0)


@pytest.fixture
def registry():
    return CancelRegistry()


@pytest.fixture
def continuity():
    return InMemoryContinuityStore()


@pytest.fixture
def make_runtime(registry, continuity):
    def _make(*runners, **kwargs):
        factory = FakeRunnerFactory(*runners)
        kwargs.setdefault("min_commit_interval_s", 0.0)
        runtime = MentionRuntime(
            working_dir="/tmp/work",
            registry=registry,
            runner_factory=factory,
            continuity=continuity,
            **kwargs,
        )
        return runtime, factory

    return _make
