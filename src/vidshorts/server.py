from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import FileResponse
from pydantic import BaseModel

from vidshorts import pipeline, runtime
from vidshorts.analyzer import SegmentAnalyzer
from vidshorts.clips import ClipExtractor
from vidshorts.context import RunContext
from vidshorts.errors import AIResponseMalformed

CONTENT_TYPES = {
    ".webm": "video/webm",
    ".avi": "video/avi",
    ".mov": "video/quicktime",
    ".mkv": "video/x-matroska",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".mp3": "audio/mpeg",
}


class ProcessRequest(BaseModel):
    url: str
    clips: bool = False


class CaptionsRequest(BaseModel):
    text: str
    duration: float


class CaptionsResponse(BaseModel):
    success: bool
    captions: list[dict] = []
    error: str | None = None


def _content_type(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), "video/mp4")


def create_app(
    base_dir: Path | None = None,
    process: Callable[..., Awaitable[dict]] = pipeline.process_video,
    analyzer: Optional[SegmentAnalyzer] = None,
) -> FastAPI:
    app = FastAPI(title="vidshorts")
    base = Path(base_dir or runtime.TEMP_DIR)
    allowed = [(base / "video").resolve(), (base / "audio").resolve()]

    def _allowed(path: Path) -> bool:
        return any(path.is_relative_to(d) for d in allowed)

    @app.post("/api/process")
    async def process_video(req: ProcessRequest) -> dict:
        ctx = RunContext(base_dir=base)
        return await process(req.url, ctx=ctx, clips=ClipExtractor() if req.clips else None)

    @app.post("/api/captions", response_model=CaptionsResponse)
    async def captions(req: CaptionsRequest):
        async with httpx.AsyncClient(timeout=60) as client:
            gen = analyzer or SegmentAnalyzer(client)
            try:
                result = await gen.generate_captions(req.text, req.duration)
            except AIResponseMalformed as exc:
                return CaptionsResponse(success=False, error=str(exc))
        return CaptionsResponse(success=True, captions=[c.to_dict() for c in result])

    @app.get("/api/video-segment")
    def video_segment(path: str | None = Query(None)):
        if not path:
            raise HTTPException(400, "Video path is required")
        resolved = Path(path).resolve()
        if not _allowed(resolved):
            raise HTTPException(403, "Access denied")
        if not resolved.is_file():
            raise HTTPException(404, "Video file not found")
        return FileResponse(
            resolved,
            media_type=_content_type(resolved),
            headers={"Accept-Ranges": "bytes", "Cache-Control": "public, max-age=3600"},
        )

    return app
