from collections import defaultdict
from typing import Optional, Sequence

from vidshorts.types import EMPHASIS_STYLE, PLAIN_STYLE, Caption, RawCaption, Segment, Word

MIN_CAPTION_SECONDS = 0.5
DEFAULT_CAPTION_SECONDS = 3.0
MAX_FALLBACK_WORDS = 10


def clamp_span(start: float, end: float, segment: Segment) -> tuple[float, float]:
    """Pull [start, end] inside the segment, keeping at least MIN_CAPTION_SECONDS."""
    start = min(max(start, segment.start), segment.end - MIN_CAPTION_SECONDS)
    end = min(max(end, start + MIN_CAPTION_SECONDS), segment.end)
    return start, end


def _words_for(segment: Segment, index: int, words: Sequence[Word], per_segment: int) -> list[Word]:
    inside = [w for w in words if segment.start * 1000 <= w.start_ms < segment.end * 1000]
    if inside:
        return inside[:per_segment]
    return list(words[index * per_segment:(index + 1) * per_segment])


def align(
    segments: Sequence[Segment],
    raw_captions: Sequence[RawCaption],
    words: Optional[Sequence[Word]] = None,
) -> list[Caption]:
    by_id = {s.id: s for s in segments}
    position = {s.id: i for i, s in enumerate(segments, 1)}
    counts: dict[str, int] = defaultdict(int)
    captions: list[Caption] = []

    for raw in raw_captions:
        segment = by_id.get(raw.segment_id)
        text = raw.text.strip() or "Caption"
        style = EMPHASIS_STYLE if raw.emphasis else PLAIN_STYLE
        if segment is None:
            start = raw.start or 0.0
            end = raw.end if raw.end is not None else start + DEFAULT_CAPTION_SECONDS
            captions.append(Caption(
                id=f"caption-{len(captions) + 1}", text=text, start=start,
                end=max(end, start + MIN_CAPTION_SECONDS), emphasis=raw.emphasis, style=style,
            ))
            continue

        counts[segment.id] += 1
        start = raw.start if raw.start is not None else segment.start
        end = raw.end if raw.end is not None else start + DEFAULT_CAPTION_SECONDS
        start, end = clamp_span(start, end, segment)
        captions.append(Caption(
            id=f"short-{position[segment.id]}-cap-{counts[segment.id]}",
            text=text,
            start=start,
            end=end,
            segment_id=segment.id,
            emphasis=raw.emphasis,
            style=style,
        ))

    if not words:
        return captions

    # segments the model left uncaptioned get one caption per transcript word
    per_segment = min(MAX_FALLBACK_WORDS, len(words) // 3)
    if per_segment == 0:
        return captions
    for index, segment in enumerate(segments):
        if counts[segment.id]:
            continue
        for k, word in enumerate(_words_for(segment, index, words, per_segment)):
            start, end = clamp_span(word.start_ms / 1000, word.end_ms / 1000, segment)
            captions.append(Caption(
                id=f"fallback-{segment.id}-{k}",
                text=word.text,
                start=start,
                end=end,
                segment_id=segment.id,
                style=PLAIN_STYLE,
            ))
    return captions
