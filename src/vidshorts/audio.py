import asyncio
from pathlib import Path
from typing import Sequence

from vidshorts import runtime, youtube
from vidshorts.command import Command
from vidshorts.context import RunContext
from vidshorts.errors import AudioMissing, DownloadFailure
from vidshorts.types import AudioAsset

AUDIO_EXTS = (".wav", ".m4a", ".mp3", ".opus", ".webm")
AUDIO_FORMAT = "bestaudio[ext=m4a]/bestaudio[ext=mp4]/bestaudio"


class AudioDownloader:
    """Pulls an audio-only file with the yt-dlp binary. Used when no captions resolve."""

    def __init__(self, ytdlp: Sequence[str] = (runtime.YTDLP_BIN,), timeout: float = runtime.DOWNLOAD_TIMEOUT):
        self._ytdlp = list(ytdlp)
        self._timeout = timeout

    def _args(self, video_url: str, template: str) -> list[str]:
        return [
            *self._ytdlp,
            video_url,
            "--extract-audio",
            "--audio-format", "wav",
            "--audio-quality", "0",
            "--format", AUDIO_FORMAT,
            *youtube.common_args(retries=5),
            "-o", template,
            *youtube.cookie_args(),
        ]

    @staticmethod
    def _find(directory: Path, stem: str) -> Path | None:
        for f in sorted(directory.iterdir()):
            if f.name.startswith(stem) and f.suffix.lower() in AUDIO_EXTS:
                return f
        return None

    async def _fetch(self, args: list[str], audio_dir: Path, stem: str, ctx: RunContext) -> tuple[Path, int]:
        try:
            result = await Command(args, timeout=self._timeout).run(ctx)
        except FileNotFoundError as exc:
            raise DownloadFailure(None, f"could not start {args[0]}: {exc}") from exc
        if not result.ok:
            raise DownloadFailure(result.returncode, result.stderr)

        path = self._find(audio_dir, stem)
        if path is None:
            raise AudioMissing(f"no audio file named {stem}.* in {audio_dir}")
        size = path.stat().st_size
        if size == 0:
            raise AudioMissing(f"audio file {path.name} is empty")
        return path, size

    async def download_audio(self, video_url: str, ctx: RunContext) -> AudioAsset:
        audio_dir = ctx.audio_dir
        stem = f"audio-{ctx.token()}"
        args = self._args(video_url, str(audio_dir / f"{stem}.%(ext)s"))
        try:
            path, size = await self._fetch(args, audio_dir, stem, ctx)
        except (Exception, asyncio.CancelledError):
            # partial downloads: .part, .ytdl, unmerged streams
            for f in audio_dir.glob(f"{stem}*"):
                f.unlink(missing_ok=True)
            raise

        print(f"Downloaded audio {path.name} ({size / 1024 / 1024:.1f}MB)")
        return AudioAsset(path=path, size_bytes=size, format=path.suffix.lstrip(".").lower())
