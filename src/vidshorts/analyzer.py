"""Ask Gemini which stretches of a transcript would make good shorts.

The analyzer never fails the pipeline: a truncated, malformed or missing
response gets one smaller retry, and after that the canned fallback.
"""
import os
from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from vidshorts import runtime
from vidshorts.context import RunContext
from vidshorts.errors import AIResponseMalformed
from vidshorts.types import Caption, CaptionStyle, RawCaption, Segment

FULL_EXCERPT_CHARS = 4000
SHORT_EXCERPT_CHARS = 2000
CAPTION_EXCERPT_CHARS = 8000
DEFAULT_DURATION = 30.0
FALLBACK_NOTE = "Used fallback segments due to API limitations"


class _Lenient(BaseModel):
    """Nulls from the model count as missing fields."""

    @field_validator("*", mode="before")
    @classmethod
    def _null_is_missing(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class ShortCaption(_Lenient):
    text: str = "Caption"
    start: Optional[float] = None
    end: Optional[float] = None
    emphasis: bool = False


class Short(_Lenient):
    id: Optional[str] = None
    title: str = "Untitled Short"
    start: float = 0.0
    end: Optional[float] = None
    confidence: float = 0.8
    description: str = ""
    captions: list[ShortCaption] = []

    @field_validator("title")
    @classmethod
    def _title(cls, value: str) -> str:
        return value.strip() or "Untitled Short"

    @model_validator(mode="after")
    def _default_end(self) -> 'Short':
        if self.end is None:
            self.end = self.start + DEFAULT_DURATION
        return self


class ShortsResponse(BaseModel):
    shorts: list[Short]

    @field_validator("shorts")
    @classmethod
    def _not_empty(cls, value: list[Short]) -> list[Short]:
        if not value:
            raise ValueError("no shorts in response")
        return value


class GeneratedCaption(_Lenient):
    text: Optional[str] = None
    start: Optional[float] = None
    end: Optional[float] = None
    style: dict = {}


class CaptionsResponse(_Lenient):
    captions: list[GeneratedCaption] = []


class _Part(BaseModel):
    text: Optional[str] = None


class _Content(BaseModel):
    parts: list[_Part] = []


class _Candidate(BaseModel):
    content: Optional[_Content] = None
    finishReason: Optional[str] = None


class _Envelope(BaseModel):
    """The generateContent body around the model's own JSON."""
    candidates: list[_Candidate] = Field(min_length=1)


@dataclass(frozen=True)
class Validation:
    value: Optional[BaseModel] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.value is not None


def validate(model: type[BaseModel], content: Optional[str]) -> Validation:
    if not content or not content.strip():
        return Validation(error="empty content")
    try:
        return Validation(value=model.model_validate_json(content))
    except ValidationError as exc:
        return Validation(error=f"{exc.error_count()} validation errors: {exc.errors()[0]['msg']}")


def validate_shorts(content: Optional[str]) -> Validation:
    return validate(ShortsResponse, content)


@dataclass(frozen=True)
class Analysis:
    segments: list[Segment]
    captions: list[RawCaption]
    note: Optional[str] = None


@dataclass(frozen=True)
class _Reply:
    content: Optional[str]
    finish_reason: Optional[str]


FALLBACK = ShortsResponse(shorts=[
    Short(
        id="fallback-1", title="Key Moment 1", start=30, end=60, confidence=0.8,
        description="Important segment from the video",
        captions=[
            ShortCaption(text="Key insight here", start=30, end=35, emphasis=True),
            ShortCaption(text="Continuing thought", start=35, end=40),
            ShortCaption(text="Conclusion", start=40, end=45),
        ],
    ),
    Short(
        id="fallback-2", title="Key Moment 2", start=120, end=150, confidence=0.75,
        description="Another important segment",
        captions=[
            ShortCaption(text="Another key point", start=120, end=125, emphasis=True),
            ShortCaption(text="Supporting detail", start=125, end=130),
        ],
    ),
])


def excerpt(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _segments_prompt(transcript: str, count: int) -> str:
    return f"""You are an expert video editor. Analyze this transcript and identify exactly {count} viral-worthy segments (45-120 seconds each). Return valid JSON only.

For each segment provide:
1. start/end timestamps in seconds
2. engaging title
3. confidence score (0-1)
4. brief description
5. 3-5 caption chunks with text, start, end, emphasis

JSON structure:
{{
  "shorts": [
    {{
      "id": "short-1",
      "title": "Title",
      "start": 45.2,
      "end": 102.8,
      "confidence": 0.95,
      "description": "Why it works as a short",
      "captions": [
        {{"text": "Caption text", "start": 45.2, "end": 47.5, "emphasis": false}}
      ]
    }}
  ]
}}

Transcript: {transcript}"""


def _font_size(value, default: int) -> int:
    try:
        return int(float(str(value).removesuffix("px")))
    except (TypeError, ValueError):
        return default


def _captions_prompt(transcript: str, duration: float) -> str:
    return (
        "You generate engaging captions for social media videos. Always respond with valid JSON.\n\n"
        f'Generate captions for a {duration:g}-second clip with this content: "{transcript}". '
        "Return a JSON object with a 'captions' array. Each caption has text (string), "
        "start and end (numbers, seconds) and style (object with fontSize, color, position, animation)."
    )


def build(response: ShortsResponse, total_duration: Optional[float], limit: Optional[int] = None,
          note: Optional[str] = None) -> Analysis:
    segments: list[Segment] = []
    captions: list[RawCaption] = []
    seen: set[str] = set()
    shorts = response.shorts[:limit] if limit else response.shorts
    for i, short in enumerate(shorts, 1):
        segment_id = short.id if short.id and short.id not in seen else f"short-{i}"
        seen.add(segment_id)
        segment = Segment.build(
            id=segment_id,
            start=short.start,
            end=short.end,
            title=short.title,
            confidence=short.confidence,
            description=short.description,
            total_duration=total_duration,
        )
        segments.append(segment)
        captions.extend(
            RawCaption(segment_id=segment.id, text=c.text, start=c.start, end=c.end, emphasis=c.emphasis)
            for c in short.captions
        )
    return Analysis(segments=segments, captions=captions, note=note)


def fallback(total_duration: Optional[float]) -> Analysis:
    return build(FALLBACK, total_duration, note=FALLBACK_NOTE)


class SegmentAnalyzer:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None = None,
        model: str = runtime.GEMINI_MODEL,
        base_url: str = runtime.GEMINI_URL,
    ):
        self._client = client
        self._api_key = api_key or os.environ.get("GEMINI_API_KEY")
        self._url = f"{base_url.rstrip('/')}/models/{model}:generateContent"

    async def _generate(self, prompt: str, config: dict) -> _Reply:
        try:
            resp = await self._client.post(
                self._url,
                params={"key": self._api_key},
                headers={"Content-Type": "application/json"},
                json={"contents": [{"parts": [{"text": prompt}]}], "generationConfig": config},
            )
        except httpx.HTTPError as exc:
            raise AIResponseMalformed(f"Gemini request failed: {exc}") from exc
        if not resp.is_success:
            raise AIResponseMalformed(f"Gemini API error: {resp.status_code} - {resp.text[:500]}")
        envelope = validate(_Envelope, resp.text)
        if not envelope.ok:
            raise AIResponseMalformed(f"unexpected Gemini response: {envelope.error}")
        candidate = envelope.value.candidates[0]
        parts = candidate.content.parts if candidate.content else []
        return _Reply(content=parts[0].text if parts else None, finish_reason=candidate.finishReason)

    async def _shorts(self, prompt: str, config: dict, allow_truncated: bool) -> ShortsResponse:
        reply = await self._generate(prompt, config)
        if reply.finish_reason == "MAX_TOKENS" and not allow_truncated:
            raise AIResponseMalformed("response truncated at the output token limit")
        validation = validate_shorts(reply.content)
        if not validation.ok:
            raise AIResponseMalformed(validation.error)
        return validation.value

    async def analyze(self, transcript: str, total_duration: Optional[float],
                      ctx: RunContext | None = None) -> Analysis:
        if not self._api_key:
            print("GEMINI_API_KEY not set, using fallback segments")
            return fallback(total_duration)

        if ctx is not None:
            ctx.check()
        try:
            response = await self._shorts(
                _segments_prompt(excerpt(transcript, FULL_EXCERPT_CHARS), 3),
                {
                    "temperature": 0.7,
                    "topK": 40,
                    "topP": 0.95,
                    "maxOutputTokens": 4096,
                    "responseMimeType": "application/json",
                },
                allow_truncated=False,
            )
            return build(response, total_duration, limit=3)
        except AIResponseMalformed as exc:
            print(f"Segment analysis failed ({exc}), retrying with a shorter excerpt")

        if ctx is not None:
            ctx.check()
        try:
            response = await self._shorts(
                _segments_prompt(excerpt(transcript, SHORT_EXCERPT_CHARS), 2),
                {
                    "temperature": 0.7,
                    "maxOutputTokens": 2048,
                    "responseMimeType": "application/json",
                },
                allow_truncated=True,
            )
            return build(response, total_duration, limit=2)
        except AIResponseMalformed as exc:
            print(f"Segment analysis retry failed ({exc}), using fallback segments")
        return fallback(total_duration)

    async def generate_captions(self, text: str, duration: float) -> list[Caption]:
        if not self._api_key:
            raise AIResponseMalformed("GEMINI_API_KEY not set")
        reply = await self._generate(
            _captions_prompt(excerpt(text, CAPTION_EXCERPT_CHARS), duration),
            {
                "temperature": 0.7,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": 2048,
                "responseMimeType": "application/json",
            },
        )
        validation = validate(CaptionsResponse, reply.content)
        if not validation.ok:
            raise AIResponseMalformed(f"caption response invalid: {validation.error}")
        raw = validation.value.captions
        step = duration / len(raw) if raw else duration
        captions = []
        for i, c in enumerate(raw):
            style = CaptionStyle()
            captions.append(Caption(
                id=f"cap-{i + 1}",
                text=c.text or f"Caption {i + 1}",
                start=c.start if c.start is not None else i * step,
                end=c.end if c.end is not None else (i + 1) * step,
                style=CaptionStyle(
                    font_size=_font_size(c.style.get("fontSize"), style.font_size),
                    color=c.style.get("color") or style.color,
                    position=c.style.get("position") or style.position,
                    animation=c.style.get("animation") or style.animation,
                ),
            ))
        return captions
