from typing import Optional, Sequence

from vidshorts import normalize
from vidshorts.context import RunContext
from vidshorts.errors import Cancelled, ProviderFailure
from vidshorts.providers import Provider
from vidshorts.types import Outcome, ProviderAttempt, TranscriptResult


class TranscriptResolver:
    """Runs providers one at a time, in order, and stops at the first one with text.

    Provider errors never leave `resolve`; they land in `attempts`. Only
    cancellation propagates.
    """

    def __init__(self, providers: Sequence[Provider]):
        self._providers = list(providers)
        self.attempts: list[ProviderAttempt] = []

    def _record(self, provider: Provider, outcome: Outcome, detail: str = ""):
        self.attempts.append(ProviderAttempt(provider=provider.name, outcome=outcome, detail=detail))

    async def resolve(self, video_id: str, ctx: RunContext) -> Optional[TranscriptResult]:
        self.attempts = []
        for provider in self._providers:
            ctx.check()
            print(f"[{video_id}] Trying {provider.name}...")
            try:
                raw = await provider.attempt(video_id, ctx)
            except Cancelled:
                raise
            except ProviderFailure as exc:
                self._record(provider, Outcome.ERROR, exc.detail)
                print(f"[{video_id}] {provider.name} failed: {exc.detail}")
                continue
            except Exception as exc:
                self._record(provider, Outcome.ERROR, f"{type(exc).__name__}: {exc}")
                print(f"[{video_id}] {provider.name} failed: {type(exc).__name__}: {exc}")
                continue

            text = normalize.collapse(raw)
            if not text:
                self._record(provider, Outcome.EMPTY)
                print(f"[{video_id}] {provider.name} returned nothing")
                continue

            self._record(provider, Outcome.SUCCESS)
            print(f"[{video_id}] Got transcript from {provider.name} ({len(text)} chars)")
            return TranscriptResult(text=text, source=provider.name)

        print(f"[{video_id}] No provider produced a transcript")
        return None
