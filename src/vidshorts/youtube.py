import asyncio
import re
from typing import Callable, Optional, Sequence, TypeVar
from urllib import parse as urlparse

import yt_dlp

from vidshorts import runtime, util
from vidshorts.types import VideoReference

T = TypeVar('T')

_URL_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?(?:[^#]*&)?v=|youtu\.be/)([^&\n?#/]+)"),
    re.compile(r"youtube\.com/embed/([^&\n?#/]+)"),
    re.compile(r"youtube\.com/v/([^&\n?#/]+)"),
    re.compile(r"youtube\.com/shorts/([^&\n?#/]+)"),
)

ENGLISH = ("en", "en-US", "en-GB")

# clients that still hand out audio without a PO token
PLAYER_CLIENTS = "youtube:player_client=android,ios,web,mweb"


def _extract_video_id(url: str) -> Optional[str]:
    for pattern in _URL_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def parse_reference(url: str) -> Optional[VideoReference]:
    video_id = _extract_video_id(url.strip())
    if not video_id:
        return None
    return VideoReference(video_id=video_id, url=video_url(video_id))


def video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?{urlparse.urlencode({'v': video_id})}"


def _is_english(language: str) -> bool:
    return language.split("-")[0].lower() == "en"


def select_track(
    tracks: Sequence[T],
    language: Callable[[T], str],
    generated: Callable[[T], bool],
) -> Optional[T]:
    """Manual English, then any manual track, then ASR (English first), then whatever comes first."""
    if not tracks:
        return None
    return (
        util.find(lambda t: not generated(t) and _is_english(language(t) or ""), tracks)
        or util.find(lambda t: not generated(t), tracks)
        or util.find(lambda t: generated(t) and _is_english(language(t) or ""), tracks)
        or util.find(generated, tracks)
        or tracks[0]
    )


def cookie_args() -> list[str]:
    path = runtime.cookie_file()
    if path:
        return ["--cookies", str(path)]
    browser = runtime.cookie_browser()
    if browser:
        return ["--cookies-from-browser", browser]
    return []


def common_args(retries: int) -> list[str]:
    return [
        "--no-warnings",
        "--user-agent", runtime.USER_AGENT,
        "--referer", runtime.REFERER,
        "--retries", str(retries),
        "--fragment-retries", str(retries),
        "--extractor-args", PLAYER_CLIENTS,
    ]


def fetch_info(video_id: str) -> util.Json:
    with yt_dlp.YoutubeDL({"quiet": True, "no_warnings": True, "skip_download": True}) as ydl:
        return ydl.extract_info(video_url(video_id), download=False)


async def fetch_duration(video_id: str) -> Optional[float]:
    try:
        info = await asyncio.to_thread(fetch_info, video_id)
    except Exception as exc:
        print(f"[{video_id}] Could not read video length: {exc}")
        return None
    duration = (info or {}).get("duration")
    return float(duration) if duration else None
