import asyncio
import itertools
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

from vidshorts import runtime
from vidshorts.errors import Cancelled

T = TypeVar('T')

_counter = itertools.count()


@dataclass
class RunContext:
    """Per-request state threaded through every stage: where files go, and whether to stop."""
    base_dir: Path = field(default_factory=lambda: runtime.TEMP_DIR)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    _cancelled: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def _dir(self, name: str) -> Path:
        d = Path(self.base_dir) / name
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def audio_dir(self) -> Path:
        return self._dir("audio")

    @property
    def subs_dir(self) -> Path:
        return self._dir("subs")

    @property
    def video_dir(self) -> Path:
        return self._dir("video")

    def token(self) -> str:
        # monotonic timestamp plus run id plus a process-local counter
        return f"{time.monotonic_ns()}-{self.run_id}-{next(_counter)}"

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def check(self):
        if self.cancelled:
            raise Cancelled(f"run {self.run_id} cancelled")

    async def wait_cancelled(self):
        await self._cancelled.wait()

    async def sleep(self, seconds: float):
        self.check()
        if seconds > 0:
            try:
                await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                return
        self.check()


async def poll(
    check: Callable[[int], Awaitable[Optional[T]]],
    attempts: int,
    interval: float,
    ctx: RunContext,
) -> Optional[T]:
    """Call `check` up to `attempts` times, sleeping `interval` before each call.

    Returns the first non-None value, or None once the attempts are used up.
    Raises Cancelled as soon as the context is cancelled, including mid-sleep.
    """
    for attempt in range(1, attempts + 1):
        await ctx.sleep(interval)
        result = await check(attempt)
        if result is not None:
            return result
    return None
