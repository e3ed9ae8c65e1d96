import asyncio
import contextlib
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from vidshorts.context import RunContext
from vidshorts.errors import Cancelled, CommandTimeout


@dataclass(frozen=True)
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str
    elapsed: float

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True)
class Command:
    args: Sequence[str]
    timeout: Optional[float] = None
    cwd: Optional[Path] = None

    async def run(self, ctx: Optional[RunContext] = None) -> CommandResult:
        """Run to completion and capture output.

        The child is killed if the timeout passes (CommandTimeout) or the
        context is cancelled (Cancelled). A non-zero exit is not an error
        here; callers decide what it means.
        """
        args = [str(a) for a in self.args]
        if ctx is not None:
            ctx.check()
        t0 = time.monotonic()
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self.cwd) if self.cwd else None,
        )
        communicate = asyncio.ensure_future(proc.communicate())
        waiters = {communicate}
        cancelled = None
        if ctx is not None:
            cancelled = asyncio.ensure_future(ctx.wait_cancelled())
            waiters.add(cancelled)
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            await _kill(proc, communicate)
            raise
        finally:
            if cancelled is not None:
                cancelled.cancel()

        if communicate not in done:
            await _kill(proc, communicate)
            if ctx is not None and ctx.cancelled:
                raise Cancelled(f"{args[0]} cancelled")
            raise CommandTimeout(args, self.timeout or 0)

        stdout, stderr = communicate.result()
        return CommandResult(
            args=args,
            returncode=proc.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            elapsed=time.monotonic() - t0,
        )


async def _kill(proc: asyncio.subprocess.Process, communicate: asyncio.Future):
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
    with contextlib.suppress(Exception, asyncio.CancelledError):
        await communicate
