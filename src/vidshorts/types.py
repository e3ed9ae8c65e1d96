import enum
from dataclasses import dataclass, field
from pathlib import Path

from vidshorts import util

MIN_SEGMENT_SECONDS = 45.0
MAX_SEGMENT_SECONDS = 120.0


@dataclass(frozen=True)
class VideoReference:
    video_id: str
    url: str


class Outcome(str, enum.Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(frozen=True)
class ProviderAttempt:
    provider: str
    outcome: Outcome
    detail: str = ""

    def to_dict(self) -> dict:
        return {"provider": self.provider, "outcome": self.outcome.value, "detail": self.detail}


@dataclass(frozen=True)
class Word:
    text: str
    start_ms: int
    end_ms: int
    confidence: float

    def to_dict(self) -> dict:
        return {"text": self.text, "start": self.start_ms, "end": self.end_ms,
                "confidence": self.confidence}


@dataclass(frozen=True)
class TranscriptResult:
    text: str
    source: str
    words: list[Word] | None = None

    def __post_init__(self):
        if not self.text or self.text != " ".join(self.text.split()):
            raise ValueError("transcript text must be non-empty and whitespace-normalized")

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "source": self.source,
            "words": [w.to_dict() for w in self.words] if self.words is not None else None,
        }


@dataclass(frozen=True)
class AudioAsset:
    path: Path
    size_bytes: int
    format: str


class JobStatus(str, enum.Enum):
    UPLOADING = "uploading"
    SUBMITTED = "submitted"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    TIMEOUT = "timeout"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.TIMEOUT)


@dataclass(frozen=True)
class Segment:
    id: str
    start: float
    end: float
    duration: float
    title: str
    confidence: float
    description: str = ""

    @classmethod
    def build(
        cls,
        id: str,
        start: float,
        end: float,
        title: str,
        confidence: float,
        description: str = "",
        total_duration: float | None = None,
    ) -> 'Segment':
        duration = util.clamp(end - start, MIN_SEGMENT_SECONDS, MAX_SEGMENT_SECONDS)
        start = max(start, 0.0)
        if total_duration is not None:
            start = max(0.0, min(start, total_duration - duration))
        return cls(
            id=id,
            start=start,
            end=start + duration,
            duration=duration,
            title=title,
            confidence=util.clamp(confidence, 0.0, 1.0),
            description=description,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "title": self.title,
            "confidence": self.confidence,
            "description": self.description,
        }


@dataclass(frozen=True)
class CaptionStyle:
    font_size: int = 24
    color: str = "#ffffff"
    position: str = "bottom"
    animation: str = "fade-in"
    font_weight: str = "normal"

    def to_dict(self) -> dict:
        return {
            "fontSize": self.font_size,
            "color": self.color,
            "position": self.position,
            "animation": self.animation,
            "fontWeight": self.font_weight,
        }


EMPHASIS_STYLE = CaptionStyle(font_size=28, color="#FFD700", animation="bounce-in", font_weight="bold")
PLAIN_STYLE = CaptionStyle()


@dataclass(frozen=True)
class RawCaption:
    """A caption as the analyzer produced it, before alignment."""
    segment_id: str
    text: str
    start: float | None = None
    end: float | None = None
    emphasis: bool = False


@dataclass(frozen=True)
class Caption:
    id: str
    text: str
    start: float
    end: float
    segment_id: str | None = None
    emphasis: bool = False
    style: CaptionStyle = field(default_factory=CaptionStyle)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "start": self.start,
            "end": self.end,
            "segmentId": self.segment_id,
            "emphasis": self.emphasis,
            "style": self.style.to_dict(),
        }
