import asyncio
from pathlib import Path
from typing import Optional, Sequence

from vidshorts import runtime, util, youtube
from vidshorts.command import Command
from vidshorts.context import RunContext
from vidshorts.errors import CommandTimeout, DownloadFailure
from vidshorts.types import Segment

VIDEO_FORMAT = "bestvideo[ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best"
VIDEO_EXTS = (".mp4", ".webm", ".mkv", ".mov")


class ClipExtractor:
    """Downloads the whole video once and stream-copies each segment out of it with ffmpeg."""

    def __init__(
        self,
        ytdlp: Sequence[str] = (runtime.YTDLP_BIN,),
        ffmpeg: Sequence[str] = (runtime.FFMPEG_BIN,),
        timeout: float = runtime.DOWNLOAD_TIMEOUT,
    ):
        self._ytdlp = list(ytdlp)
        self._ffmpeg = list(ffmpeg)
        self._timeout = timeout

    async def _download(self, video_url: str, ctx: RunContext) -> Path:
        video_dir = ctx.video_dir
        stem = f"original_video_{ctx.token()}"
        args = [
            *self._ytdlp,
            video_url,
            "--format", VIDEO_FORMAT,
            "--merge-output-format", "mp4",
            *youtube.common_args(retries=5),
            "-o", str(video_dir / f"{stem}.%(ext)s"),
            *youtube.cookie_args(),
        ]
        try:
            return await self._fetch(args, video_dir, stem, ctx)
        except (Exception, asyncio.CancelledError):
            for f in video_dir.glob(f"{stem}*"):
                f.unlink(missing_ok=True)
            raise

    async def _fetch(self, args: list[str], video_dir: Path, stem: str, ctx: RunContext) -> Path:
        try:
            result = await Command(args, timeout=self._timeout).run(ctx)
        except FileNotFoundError as exc:
            raise DownloadFailure(None, f"could not start {args[0]}: {exc}") from exc
        if not result.ok:
            raise DownloadFailure(result.returncode, result.stderr)
        path = util.find(
            lambda f: f.name.startswith(stem) and f.suffix.lower() in VIDEO_EXTS,
            sorted(video_dir.iterdir()),
        )
        if path is None:
            raise DownloadFailure(result.returncode, f"no video file named {stem}.* in {video_dir}")
        return path

    async def _cut(self, source: Path, segment: Segment, ctx: RunContext) -> Optional[Path]:
        out = ctx.video_dir / f"segment_{ctx.token()}.mp4"
        result = await Command([
            *self._ffmpeg,
            "-ss", util.timestamp(segment.start),
            "-i", str(source),
            "-t", util.timestamp(segment.duration),
            "-c:v", "copy",
            "-c:a", "copy",
            "-avoid_negative_ts", "make_zero",
            "-y", str(out),
        ], timeout=self._timeout).run(ctx)
        if not result.ok or not out.exists() or out.stat().st_size == 0:
            out.unlink(missing_ok=True)
            return None
        return out

    async def extract(self, video_url: str, segments: Sequence[Segment], ctx: RunContext) -> dict[str, Path]:
        if not segments:
            return {}
        try:
            source = await self._download(video_url, ctx)
        except (DownloadFailure, CommandTimeout) as exc:
            print(f"Warning: full video download failed, no clips extracted: {exc}")
            return {}

        clips: dict[str, Path] = {}
        try:
            for segment in segments:
                try:
                    clip = await self._cut(source, segment, ctx)
                except (CommandTimeout, FileNotFoundError) as exc:
                    print(f"Warning: could not cut {segment.title}: {exc}")
                    continue
                if clip is None:
                    print(f"Warning: ffmpeg produced nothing for {segment.title}")
                    continue
                clips[segment.id] = clip
                print(f"Extracted clip: {segment.title} ({segment.duration:.0f}s)")
        finally:
            source.unlink(missing_ok=True)
        return clips
