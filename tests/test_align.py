from vidshorts import align
from vidshorts.types import EMPHASIS_STYLE, PLAIN_STYLE, RawCaption, Segment, Word


def _segment(id, start, end):
    return Segment.build(id=id, start=start, end=end, title=id, confidence=0.9)


def _inside(caption, segments):
    seg = {s.id: s for s in segments}[caption.segment_id]
    return seg.start <= caption.start < caption.end <= seg.end


def test_ai_captions_get_ids_and_styles():
    segments = [_segment("a", 10, 70), _segment("b", 100, 160)]
    raw = [
        RawCaption("a", "Hook", 10, 13, emphasis=True),
        RawCaption("a", "Then", 13, 16),
        RawCaption("b", "Second", 100, 104),
    ]
    captions = align.align(segments, raw)

    assert [c.id for c in captions] == ["short-1-cap-1", "short-1-cap-2", "short-2-cap-1"]
    assert captions[0].style == EMPHASIS_STYLE
    assert captions[0].style.font_size == 28 and captions[0].style.color == "#FFD700"
    assert captions[1].style == PLAIN_STYLE
    assert captions[1].style.animation == "fade-in"
    assert all(c.style.position == "bottom" for c in captions)


def test_out_of_range_captions_are_clamped():
    segments = [_segment("a", 10, 70)]
    raw = [
        RawCaption("a", "before", 0, 5),
        RawCaption("a", "straddles start", 8, 12),
        RawCaption("a", "straddles end", 68, 75),
        RawCaption("a", "after", 200, 210),
        RawCaption("a", "backwards", 40, 30),
    ]
    captions = align.align(segments, raw)

    assert len(captions) == 5
    assert all(_inside(c, segments) for c in captions)
    assert (captions[1].start, captions[1].end) == (10, 12)
    assert (captions[2].start, captions[2].end) == (68, 70)
    assert captions[3].end == 70


def test_missing_times_default_to_segment_start():
    segments = [_segment("a", 10, 70)]
    captions = align.align(segments, [RawCaption("a", "no times")])
    assert (captions[0].start, captions[0].end) == (10, 13)


def test_word_fallback_for_uncaptioned_segments():
    segments = [_segment("a", 0, 60), _segment("b", 100, 160)]
    words = [Word(f"w{i}", i * 1000, i * 1000 + 500, 0.9) for i in range(200)]
    raw = [RawCaption("a", "AI caption", 1, 3)]
    captions = align.align(segments, raw, words)

    ai = [c for c in captions if c.segment_id == "a"]
    fallback = [c for c in captions if c.segment_id == "b"]
    assert len(ai) == 1
    assert len(fallback) == 10
    assert fallback[0].id == "fallback-b-0"
    assert fallback[0].text == "w100"
    assert (fallback[0].start, fallback[0].end) == (100.0, 100.5)
    assert all(_inside(c, segments) for c in captions)


def test_word_fallback_uses_word_order_when_no_word_is_inside():
    segments = [_segment("a", 500, 560)]
    words = [Word(f"w{i}", i * 1000, i * 1000 + 400, 0.9) for i in range(9)]
    captions = align.align(segments, [], words)

    assert [c.text for c in captions] == ["w0", "w1", "w2"]
    assert all(_inside(c, segments) for c in captions)


def test_no_words_no_fallback():
    assert align.align([_segment("a", 0, 60)], [], None) == []
    assert align.align([_segment("a", 0, 60)], [], [Word("one", 0, 100, 0.9)]) == []


def test_unknown_segment_keeps_caption_unowned():
    captions = align.align([_segment("a", 0, 60)], [RawCaption("zzz", "stray", 5, 6)])
    assert captions[0].segment_id is None
