import os
import shutil
import sys
from pathlib import Path

TEMP_DIR = Path(os.environ.get("VIDSHORTS_TEMP_DIR", Path.cwd() / "tmp"))
YTDLP_BIN = os.environ.get("VIDSHORTS_YTDLP", "yt-dlp")
FFMPEG_BIN = os.environ.get("VIDSHORTS_FFMPEG", "ffmpeg")

ASSEMBLYAI_URL = os.environ.get("VIDSHORTS_ASSEMBLYAI_URL", "https://api.assemblyai.com/v2")
GEMINI_URL = os.environ.get("VIDSHORTS_GEMINI_URL", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash-lite-preview-06-17")

POLL_INTERVAL = float(os.environ.get("VIDSHORTS_POLL_INTERVAL", "5"))
POLL_ATTEMPTS = int(os.environ.get("VIDSHORTS_POLL_ATTEMPTS", "120"))

DOWNLOAD_TIMEOUT = float(os.environ.get("VIDSHORTS_DOWNLOAD_TIMEOUT", "600"))
SUBTITLE_TIMEOUT = float(os.environ.get("VIDSHORTS_SUBTITLE_TIMEOUT", "120"))

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
REFERER = "https://www.youtube.com/"

_COOKIE_FILE_VARS = ("YT_COOKIES_FILE", "YOUTUBE_COOKIES_FILE", "YTDLP_COOKIES_FILE")
_COOKIE_BROWSER_VARS = ("YTDLP_BROWSER", "YT_COOKIES_BROWSER")
_COOKIE_FILE_CANDIDATES = (Path("bin") / "youtube-cookies.txt", Path("cookies.txt"))


def cookie_file() -> Path | None:
    for var in _COOKIE_FILE_VARS:
        value = os.environ.get(var)
        if value and Path(value).is_file():
            return Path(value)
    for candidate in _COOKIE_FILE_CANDIDATES:
        if candidate.is_file():
            return candidate
    return None


def cookie_browser() -> str | None:
    for var in _COOKIE_BROWSER_VARS:
        if os.environ.get(var):
            return os.environ[var]
    return None


def _check_binary(name: str) -> bool:
    return shutil.which(name) is not None


def check(
    needs_ytdlp: bool = False, needs_ffmpeg: bool = False,
    needs_assemblyai: bool = False, needs_gemini: bool = False,
) -> list[str]:
    errors = []

    if needs_ytdlp and not _check_binary(YTDLP_BIN):
        errors.append(f"{YTDLP_BIN} not found in PATH, install with: pip install yt-dlp")

    if needs_ffmpeg and not _check_binary(FFMPEG_BIN):
        errors.append(f"{FFMPEG_BIN} not found in PATH, install from https://ffmpeg.org/")

    if needs_assemblyai and not os.environ.get("ASSEMBLYAI_API_KEY"):
        errors.append("ASSEMBLYAI_API_KEY not set, add it to .env or export it")

    if needs_gemini and not os.environ.get("GEMINI_API_KEY"):
        errors.append("GEMINI_API_KEY not set, add it to .env or export it")

    return errors


def require(
    needs_ytdlp: bool = False, needs_ffmpeg: bool = False,
    needs_assemblyai: bool = False, needs_gemini: bool = False,
):
    errors = check(
        needs_ytdlp=needs_ytdlp, needs_ffmpeg=needs_ffmpeg,
        needs_assemblyai=needs_assemblyai, needs_gemini=needs_gemini,
    )
    if errors:
        print("Missing requirements:", file=sys.stderr)
        for e in errors:
            print(f"  - {e}", file=sys.stderr)
        sys.exit(1)
