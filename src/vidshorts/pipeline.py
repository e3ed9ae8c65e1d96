from typing import Awaitable, Callable, Optional

import httpx

from vidshorts import align, youtube
from vidshorts.analyzer import SegmentAnalyzer
from vidshorts.audio import AudioDownloader
from vidshorts.clips import ClipExtractor
from vidshorts.context import RunContext
from vidshorts.errors import (
    AudioMissing, Cancelled, CommandTimeout, DownloadFailure, TranscriptionError, ValidationError,
)
from vidshorts.providers import default_providers
from vidshorts.resolver import TranscriptResolver
from vidshorts.transcription import AssemblyAITranscriber, Transcriber
from vidshorts.types import TranscriptResult, VideoReference

UNSUPPORTED_URL = "Only YouTube URLs are supported. Please provide a valid YouTube video URL."
PROCESSING_FAILED = (
    "Unable to process this video: Failed to download and transcribe the audio. "
    "This might be due to the video being age-restricted, private, or region-blocked, "
    "or the audio file being corrupted. Please try with a different video that is "
    "publicly accessible. Technical details: {detail}"
)
CANCELLED = "Processing was cancelled."


def parse(url: str) -> VideoReference:
    ref = youtube.parse_reference(url or "")
    if ref is None:
        raise ValidationError(UNSUPPORTED_URL)
    return ref


async def resolve_transcript(
    ref: VideoReference,
    ctx: RunContext,
    resolver: TranscriptResolver,
    downloader: AudioDownloader,
    transcriber: Transcriber,
) -> TranscriptResult:
    """Captions first. If no provider has any, download the audio and transcribe it."""
    transcript = await resolver.resolve(ref.video_id, ctx)
    if transcript is not None:
        return transcript

    print(f"[{ref.video_id}] No captions, falling back to audio transcription")
    print(f"[{ref.video_id}] Downloading audio...")
    asset = await downloader.download_audio(ref.url, ctx)
    print(f"[{ref.video_id}] Transcribing {asset.path.name}...")
    transcript = await transcriber.transcribe(asset, ctx)
    print(f"[{ref.video_id}] Transcribed ({len(transcript.text)} chars)")
    return transcript


async def _process(
    url: str,
    ctx: RunContext,
    client: httpx.AsyncClient,
    resolver: Optional[TranscriptResolver],
    downloader: Optional[AudioDownloader],
    transcriber: Optional[Transcriber],
    analyzer: Optional[SegmentAnalyzer],
    clips: Optional[ClipExtractor],
    duration: Callable[[str], Awaitable[Optional[float]]],
) -> dict:
    ref = parse(url)
    resolver = resolver or TranscriptResolver(default_providers(client))
    transcript = await resolve_transcript(
        ref, ctx, resolver,
        downloader or AudioDownloader(),
        transcriber or AssemblyAITranscriber(client),
    )

    total = await duration(ref.video_id)
    if total is None and transcript.words:
        total = transcript.words[-1].end_ms / 1000

    print(f"[{ref.video_id}] Looking for shorts...")
    analysis = await (analyzer or SegmentAnalyzer(client)).analyze(transcript.text, total, ctx)
    captions = align.align(analysis.segments, analysis.captions, transcript.words)

    downloaded = {}
    if clips is not None:
        print(f"[{ref.video_id}] Extracting {len(analysis.segments)} clips...")
        downloaded = await clips.extract(ref.url, analysis.segments, ctx)

    print(f"[{ref.video_id}] Done: {len(analysis.segments)} shorts, {len(captions)} captions")
    data = {
        "segments": [s.to_dict() for s in analysis.segments],
        "captions": [c.to_dict() for c in captions],
        "transcript": transcript.text,
        "totalShorts": len(analysis.segments),
        "downloadedSegments": {k: str(v) for k, v in downloaded.items()},
        "source": transcript.source,
        "attempts": [a.to_dict() for a in resolver.attempts],
    }
    if analysis.note:
        data["note"] = analysis.note
    return {"success": True, "data": data}


async def process_video(
    url: str,
    *,
    ctx: Optional[RunContext] = None,
    client: Optional[httpx.AsyncClient] = None,
    resolver: Optional[TranscriptResolver] = None,
    downloader: Optional[AudioDownloader] = None,
    transcriber: Optional[Transcriber] = None,
    analyzer: Optional[SegmentAnalyzer] = None,
    clips: Optional[ClipExtractor] = None,
    duration: Callable[[str], Awaitable[Optional[float]]] = youtube.fetch_duration,
) -> dict:
    """Turn a YouTube URL into candidate shorts with captions.

    Never raises. Returns {"success": True, "data": {...}} or
    {"success": False, "error": "..."}.
    """
    ctx = ctx or RunContext()
    own_client = client is None
    client = client or httpx.AsyncClient(follow_redirects=True, timeout=30)
    try:
        return await _process(url, ctx, client, resolver, downloader, transcriber, analyzer, clips, duration)
    except ValidationError as exc:
        return {"success": False, "error": str(exc)}
    except Cancelled:
        print(f"Run {ctx.run_id} cancelled")
        return {"success": False, "error": CANCELLED}
    except (DownloadFailure, AudioMissing, CommandTimeout, TranscriptionError) as exc:
        print(f"FAILED: {type(exc).__name__}: {exc}")
        return {"success": False, "error": PROCESSING_FAILED.format(detail=exc)}
    except Exception as exc:
        print(f"FAILED: {type(exc).__name__}: {exc}")
        return {"success": False, "error": f"Unexpected error while processing this video: {exc}"}
    finally:
        if own_client:
            await client.aclose()
