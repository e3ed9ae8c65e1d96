import asyncio
import contextlib
import os
import sys
from pathlib import Path
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

import httpx

from vidshorts import context, normalize, runtime
from vidshorts.context import RunContext
from vidshorts.errors import (
    TranscriptionAPIFailure, TranscriptionError, TranscriptionRejected, TranscriptionTimeout,
)
from vidshorts.types import AudioAsset, JobStatus, TranscriptResult, Word

DEFAULT_CONFIDENCE = 0.9
UPLOAD_CHUNK = 1024 * 1024
SOURCE = "transcription-job"


@runtime_checkable
class Transcriber(Protocol):
    async def transcribe(self, asset: AudioAsset, ctx: RunContext) -> TranscriptResult: ...


async def _read_chunks(path: Path) -> AsyncIterator[bytes]:
    with open(path, "rb") as f:
        while True:
            chunk = await asyncio.to_thread(f.read, UPLOAD_CHUNK)
            if not chunk:
                break
            yield chunk


def _words(raw: Optional[list]) -> Optional[list[Word]]:
    if not raw:
        return None
    words = []
    for w in raw:
        text = (w.get("text") or "").strip()
        if not text:
            continue
        confidence = w.get("confidence")
        words.append(Word(
            text=text,
            start_ms=int(w.get("start") or 0),
            end_ms=int(w.get("end") or 0),
            confidence=DEFAULT_CONFIDENCE if confidence is None else float(confidence),
        ))
    return words or None


class TranscriptionJob:
    """One upload/submit/poll cycle against AssemblyAI.

    `status` walks UPLOADING -> SUBMITTED -> PROCESSING and then lands on
    exactly one of COMPLETED, ERROR or TIMEOUT. The audio file is deleted
    when `run` returns, whatever the outcome.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        base_url: str = runtime.ASSEMBLYAI_URL,
        interval: float = runtime.POLL_INTERVAL,
        attempts: int = runtime.POLL_ATTEMPTS,
    ):
        self._client = client
        self._headers = {"authorization": api_key}
        self._base_url = base_url.rstrip("/")
        self._interval = interval
        self._attempts = attempts
        self.status: Optional[JobStatus] = None
        self.external_id: Optional[str] = None
        self.polls = 0

    def _set(self, status: JobStatus):
        if self.status is not None and self.status.terminal:
            raise RuntimeError(f"transcription job already {self.status.value}")
        self.status = status

    @staticmethod
    def _check_response(resp: httpx.Response, stage: str):
        if not resp.is_success:
            raise TranscriptionAPIFailure(stage, resp.status_code, resp.text)

    async def _upload(self, asset: AudioAsset) -> str:
        async with contextlib.aclosing(_read_chunks(asset.path)) as chunks:
            resp = await self._client.post(
                f"{self._base_url}/upload",
                headers={**self._headers, "content-type": "application/octet-stream"},
                content=chunks,
            )
        self._check_response(resp, "upload")
        return resp.json()["upload_url"]

    async def _submit(self, upload_url: str) -> str:
        resp = await self._client.post(
            f"{self._base_url}/transcript",
            headers=self._headers,
            json={"audio_url": upload_url},
        )
        self._check_response(resp, "submit")
        return resp.json()["id"]

    async def _check(self, attempt: int) -> Optional[dict]:
        self.polls = attempt
        resp = await self._client.get(
            f"{self._base_url}/transcript/{self.external_id}", headers=self._headers,
        )
        self._check_response(resp, "status")
        body = resp.json()
        if body.get("status") in ("completed", "error"):
            return body
        if attempt % 12 == 0:
            print(f"  Transcript {self.external_id} still {body.get('status')} after {attempt} polls")
        return None

    def _result(self, body: dict) -> TranscriptResult:
        text = normalize.collapse(body.get("text"))
        if not text:
            raise TranscriptionAPIFailure("transcript", 200, "completed with empty text")
        return TranscriptResult(text=text, source=SOURCE, words=_words(body.get("words")))

    @staticmethod
    def _discard(asset: AudioAsset):
        try:
            asset.path.unlink()
        except OSError as exc:
            print(f"Warning: could not delete {asset.path}: {exc}", file=sys.stderr)

    async def run(self, asset: AudioAsset, ctx: RunContext) -> TranscriptResult:
        try:
            self._set(JobStatus.UPLOADING)
            upload_url = await self._upload(asset)

            ctx.check()
            self._set(JobStatus.SUBMITTED)
            self.external_id = await self._submit(upload_url)
            print(f"  Submitted transcript {self.external_id}")

            self._set(JobStatus.PROCESSING)
            body = await context.poll(self._check, self._attempts, self._interval, ctx)
            if body is None:
                self._set(JobStatus.TIMEOUT)
                raise TranscriptionTimeout(self.external_id, self._attempts, self._interval)
            if body["status"] == "error":
                self._set(JobStatus.ERROR)
                raise TranscriptionRejected("transcript", 200, body.get("error") or "unknown error")

            result = self._result(body)
            self._set(JobStatus.COMPLETED)
            return result
        except (Exception, asyncio.CancelledError):
            if self.status is None or not self.status.terminal:
                self.status = JobStatus.ERROR
            raise
        finally:
            self._discard(asset)


class AssemblyAITranscriber:
    def __init__(self, client: httpx.AsyncClient, api_key: str | None = None, **job_options):
        self._client = client
        self._api_key = api_key or os.environ.get("ASSEMBLYAI_API_KEY")
        self._job_options = job_options
        self.last_job: Optional[TranscriptionJob] = None

    async def transcribe(self, asset: AudioAsset, ctx: RunContext) -> TranscriptResult:
        if not self._api_key:
            TranscriptionJob._discard(asset)
            raise TranscriptionError("ASSEMBLYAI_API_KEY not set")
        self.last_job = TranscriptionJob(self._client, self._api_key, **self._job_options)
        return await self.last_job.run(asset, ctx)
