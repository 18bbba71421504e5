"""Subprocess transport helpers for runners."""

from __future__ import annotations

import asyncio
import logging

log = logging.getLogger(__name__)


class SubprocessTransport:
    def __init__(self):
        self.process: asyncio.subprocess.Process | None = None
        self.terminated = False

    async def start(
        self,
        cmd: list[str],
        *,
        cwd: str,
        stdout_limit: int,
    ) -> asyncio.StreamReader:
        self.terminated = False
        self.process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
            limit=stdout_limit,
        )

        if self.process.stdout is None:
            raise RuntimeError("Subprocess stdout missing")

        return self.process.stdout

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    async def wait(self) -> int:
        if not self.process:
            return 0
        await self.process.wait()
        return int(self.process.returncode or 0)

    def terminate(self) -> None:
        """Ask the process to exit (SIGTERM); safe when it already has."""
        if not self.running:
            return
        self.terminated = True
        try:
            self.process.terminate()  # type: ignore[union-attr]
        except ProcessLookupError:
            pass

    async def terminate_and_kill(self, timeout: float = 5.0) -> None:
        """Terminate the process, wait, then force-kill if still alive."""
        proc = self.process
        if not proc or proc.returncode is not None:
            return
        self.terminate()
        try:
            await asyncio.wait_for(proc.wait(), timeout=timeout)
        except (asyncio.TimeoutError, ProcessLookupError):
            log.warning("Process %s did not exit after SIGTERM, sending SIGKILL", proc.pid)
            try:
                proc.kill()
            except ProcessLookupError:
                pass
