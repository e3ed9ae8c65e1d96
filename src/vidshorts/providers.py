import asyncio
import json
from typing import Callable, Optional, Protocol, Sequence, runtime_checkable

import httpx
from youtube_transcript_api import YouTubeTranscriptApi

from vidshorts import normalize, runtime, util, youtube
from vidshorts.command import Command
from vidshorts.context import RunContext
from vidshorts.errors import ProviderFailure

TIMEDTEXT_URL = "https://video.google.com/timedtext"
API_TIMEDTEXT_URL = "https://www.youtube.com/api/timedtext"

BROWSER_USER_AGENTS = (
    runtime.USER_AGENT,
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)


@runtime_checkable
class Provider(Protocol):
    name: str

    async def attempt(self, video_id: str, ctx: RunContext) -> Optional[str]: ...


def _snippet_text(snippet) -> str:
    if isinstance(snippet, dict):
        return snippet.get("text", "")
    return getattr(snippet, "text", "")


class CaptionScrapeProvider:
    """Lists the caption tracks and picks one by the track policy."""
    name = "caption-scrape"

    def __init__(self, api=None):
        self._api = api or YouTubeTranscriptApi()

    def _fetch(self, video_id: str) -> Optional[str]:
        transcripts = list(self._api.list(video_id))
        track = youtube.select_track(
            transcripts,
            language=lambda t: t.language_code,
            generated=lambda t: t.is_generated,
        )
        if track is None:
            return None
        return normalize.collapse(" ".join(_snippet_text(s) for s in track.fetch()))

    async def attempt(self, video_id: str, ctx: RunContext) -> Optional[str]:
        ctx.check()
        return await asyncio.to_thread(self._fetch, video_id)


class TimedTextProvider:
    """The plain timedtext endpoint, manual track or (kind=asr) the generated one."""

    def __init__(self, client: httpx.AsyncClient, kind: Optional[str] = None):
        self._client = client
        self._kind = kind
        self.name = f"timedtext-{kind or 'manual'}"

    async def attempt(self, video_id: str, ctx: RunContext) -> Optional[str]:
        ctx.check()
        params = {"v": video_id, "lang": "en", "fmt": "json3"}
        if self._kind:
            params["kind"] = self._kind
        resp = await self._client.get(
            TIMEDTEXT_URL, params=params, headers={"User-Agent": "Mozilla/5.0"},
        )
        if resp.status_code != 200:
            raise ProviderFailure(self.name, f"HTTP {resp.status_code}")
        return normalize.caption_text(resp.text)


class YtDlpInfoProvider:
    """Caption URLs from yt-dlp's metadata, fetched over HTTP."""
    name = "ytdlp-info"

    PREFERRED_EXTS = ("json3", "vtt", "srv3")

    def __init__(self, client: httpx.AsyncClient, info: Callable[[str], util.Json] = youtube.fetch_info):
        self._client = client
        self._info = info

    @classmethod
    def _tracks(cls, info: util.Json) -> list[tuple[str, bool, list[dict]]]:
        tracks = []
        for key, generated in (("subtitles", False), ("automatic_captions", True)):
            for lang, formats in (info.get(key) or {}).items():
                if lang == "live_chat" or not formats:
                    continue
                tracks.append((lang, generated, formats))
        return tracks

    @classmethod
    def _pick_format(cls, formats: Sequence[dict]) -> Optional[dict]:
        for ext in cls.PREFERRED_EXTS:
            match = util.find(lambda f: f.get("ext") == ext and f.get("url"), formats)
            if match:
                return match
        return util.find(lambda f: bool(f.get("url")), formats)

    async def attempt(self, video_id: str, ctx: RunContext) -> Optional[str]:
        ctx.check()
        info = await asyncio.to_thread(self._info, video_id)
        track = youtube.select_track(
            self._tracks(info or {}), language=lambda t: t[0], generated=lambda t: t[1],
        )
        if track is None:
            return None
        fmt = self._pick_format(track[2])
        if fmt is None:
            return None
        ctx.check()
        resp = await self._client.get(fmt["url"])
        if resp.status_code != 200:
            raise ProviderFailure(self.name, f"HTTP {resp.status_code} fetching {track[0]} captions")
        return normalize.caption_text(resp.text)


class TranscriptPackageProvider:
    """Direct fetch through youtube-transcript-api, English first."""
    name = "transcript-package"

    def __init__(self, api=None):
        self._api = api or YouTubeTranscriptApi()

    def _fetch(self, video_id: str) -> Optional[str]:
        fetched = self._api.fetch(video_id, languages=youtube.ENGLISH)
        return normalize.collapse(" ".join(_snippet_text(s) for s in fetched))

    async def attempt(self, video_id: str, ctx: RunContext) -> Optional[str]:
        ctx.check()
        return await asyncio.to_thread(self._fetch, video_id)


class TimedTextFormatsProvider:
    """The youtube.com timedtext API, trying each response format with browser headers."""
    name = "timedtext-formats"

    FORMATS = ("json3", "srv3", "vtt")

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def attempt(self, video_id: str, ctx: RunContext) -> Optional[str]:
        headers = {
            "User-Agent": runtime.USER_AGENT,
            "Accept": "*/*",
            "Accept-Language": "en-US,en;q=0.9",
            "Referer": runtime.REFERER,
        }
        failures = []
        for fmt in self.FORMATS:
            ctx.check()
            try:
                resp = await self._client.get(
                    API_TIMEDTEXT_URL,
                    params={"v": video_id, "lang": "en", "fmt": fmt},
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                failures.append(f"{fmt}: {exc}")
                continue
            if resp.status_code != 200:
                failures.append(f"{fmt}: HTTP {resp.status_code}")
                continue
            text = normalize.caption_text(resp.text)
            if text:
                return text
        if failures:
            raise ProviderFailure(self.name, "; ".join(failures))
        return None


def caption_tracks(html: str) -> list[dict]:
    """The captionTracks array embedded in a watch page's player response."""
    idx = html.find('"captionTracks":')
    if idx < 0:
        return []
    start = html.find("[", idx)
    if start < 0:
        return []
    try:
        tracks, _ = json.JSONDecoder().raw_decode(html, start)
    except json.JSONDecodeError:
        return []
    return [t for t in tracks if isinstance(t, dict) and t.get("baseUrl")]


class PageScrapeProvider:
    name = "page-scrape"

    def __init__(self, client: httpx.AsyncClient, user_agents: Sequence[str] = BROWSER_USER_AGENTS):
        self._client = client
        self._user_agents = user_agents

    async def attempt(self, video_id: str, ctx: RunContext) -> Optional[str]:
        for user_agent in self._user_agents:
            ctx.check()
            page = await self._client.get(
                youtube.video_url(video_id),
                headers={
                    "User-Agent": user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                    "Accept-Language": "en-US,en;q=0.5",
                },
            )
            if page.status_code != 200:
                continue
            track = youtube.select_track(
                caption_tracks(page.text),
                language=lambda t: t.get("languageCode", ""),
                generated=lambda t: t.get("kind") == "asr",
            )
            if track is None:
                continue
            resp = await self._client.get(track["baseUrl"], headers={"User-Agent": user_agent})
            if resp.status_code != 200:
                continue
            text = normalize.caption_text(resp.text)
            if text:
                return text
        return None


class YtDlpSubtitleProvider:
    """Runs the yt-dlp binary for subtitles only. The most expensive provider, so it goes last."""
    name = "ytdlp-subtitles"

    def __init__(self, ytdlp: Sequence[str] = (runtime.YTDLP_BIN,), timeout: float = runtime.SUBTITLE_TIMEOUT):
        self._ytdlp = list(ytdlp)
        self._timeout = timeout

    def _args(self, video_id: str, template: str) -> list[str]:
        return [
            *self._ytdlp,
            youtube.video_url(video_id),
            "--write-subs",
            "--write-auto-subs",
            "--sub-langs", ",".join(youtube.ENGLISH),
            "--sub-format", "vtt",
            "--skip-download",
            *youtube.common_args(retries=3),
            "-o", template,
            *youtube.cookie_args(),
        ]

    @staticmethod
    def _language_rank(stem: str):
        def rank(path) -> int:
            lang = path.name[len(stem) + 1:-len(".vtt")]
            return youtube.ENGLISH.index(lang) if lang in youtube.ENGLISH else len(youtube.ENGLISH)
        return rank

    async def attempt(self, video_id: str, ctx: RunContext) -> Optional[str]:
        subs_dir = ctx.subs_dir
        stem = f"subs-{ctx.token()}"
        try:
            result = await Command(
                self._args(video_id, str(subs_dir / f"{stem}.%(ext)s")), timeout=self._timeout,
            ).run(ctx)
            produced = sorted(subs_dir.glob(f"{stem}*.vtt"), key=self._language_rank(stem))
            if not result.ok and not produced:
                raise ProviderFailure(self.name, f"exit {result.returncode}: {result.stderr.strip()}")
            for path in produced:
                text = normalize.vtt_to_text(path.read_text(encoding="utf-8", errors="replace"))
                if text:
                    return text
            return None
        finally:
            for path in subs_dir.glob(f"{stem}*"):
                path.unlink(missing_ok=True)


def default_providers(client: httpx.AsyncClient, api=None, ytdlp: Sequence[str] | None = None) -> list[Provider]:
    api = api or YouTubeTranscriptApi()
    return [
        CaptionScrapeProvider(api),
        TimedTextProvider(client),
        TimedTextProvider(client, kind="asr"),
        YtDlpInfoProvider(client),
        TranscriptPackageProvider(api),
        TimedTextFormatsProvider(client),
        PageScrapeProvider(client),
        YtDlpSubtitleProvider(ytdlp or (runtime.YTDLP_BIN,)),
    ]
