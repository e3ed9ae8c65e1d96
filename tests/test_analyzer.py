import asyncio
import json

import httpx
import pytest

from vidshorts import analyzer
from vidshorts.analyzer import SegmentAnalyzer
from vidshorts.errors import AIResponseMalformed

TRANSCRIPT = "word " * 2000


def _gemini(content, finish_reason="STOP", status=200):
    if status != 200:
        return httpx.Response(status, text='{"error": {"message": "quota exceeded"}}')
    return httpx.Response(200, json={
        "candidates": [{
            "content": {"parts": [{"text": content if isinstance(content, str) else json.dumps(content)}]},
            "finishReason": finish_reason,
        }],
    })


def _short(i, start, end, captions=3):
    return {
        "id": f"short-{i}",
        "title": f"Moment {i}",
        "start": start,
        "end": end,
        "confidence": 0.9,
        "description": "worth watching",
        "captions": [
            {"text": f"cap {j}", "start": start + j * 4, "end": start + j * 4 + 3, "emphasis": j == 0}
            for j in range(captions)
        ],
    }


class Recorder:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(json.loads(request.content))
        return self.responses.pop(0)


def _analyze(handler, total=600.0, api_key="test-key"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return asyncio.run(SegmentAnalyzer(client, api_key=api_key).analyze(TRANSCRIPT, total))


def test_three_segments():
    shorts = {"shorts": [_short(1, 10, 70), _short(2, 200, 290), _short(3, 400, 460)]}
    recorder = Recorder(_gemini(shorts))
    result = _analyze(recorder)

    assert [s.id for s in result.segments] == ["short-1", "short-2", "short-3"]
    assert result.note is None
    assert len(result.captions) == 9
    assert result.captions[0].emphasis and result.captions[0].segment_id == "short-1"

    body = recorder.requests[0]
    prompt = body["contents"][0]["parts"][0]["text"]
    assert "exactly 3" in prompt
    assert "word " * 10 in prompt
    assert len(prompt.split("Transcript: ", 1)[1]) == analyzer.FULL_EXCERPT_CHARS + 3
    assert body["generationConfig"] == {
        "temperature": 0.7, "topK": 40, "topP": 0.95,
        "maxOutputTokens": 4096, "responseMimeType": "application/json",
    }


def test_request_targets_model_with_key():
    seen = []

    def handler(request):
        seen.append(request)
        return _gemini({"shorts": [_short(1, 0, 60)]})

    _analyze(handler)
    assert seen[0].url.path.endswith("/models/gemini-2.5-flash-lite-preview-06-17:generateContent")
    assert seen[0].url.params["key"] == "test-key"


def test_truncated_response_retries_smaller():
    recorder = Recorder(
        _gemini('{"shorts": [{"id": "short-1", "title": "Cut off', finish_reason="MAX_TOKENS"),
        _gemini({"shorts": [_short(1, 30, 90), _short(2, 300, 360)]}),
    )
    result = _analyze(recorder)

    assert len(recorder.requests) == 2
    retry = recorder.requests[1]
    prompt = retry["contents"][0]["parts"][0]["text"]
    assert "exactly 2" in prompt
    assert len(prompt.split("Transcript: ", 1)[1]) == analyzer.SHORT_EXCERPT_CHARS + 3
    assert retry["generationConfig"]["maxOutputTokens"] == 2048
    assert [s.id for s in result.segments] == ["short-1", "short-2"]
    assert result.note is None


def test_truncated_but_parseable_still_retries():
    recorder = Recorder(
        _gemini({"shorts": [_short(1, 0, 60)]}, finish_reason="MAX_TOKENS"),
        _gemini({"shorts": [_short(1, 100, 160), _short(2, 300, 360)]}),
    )
    result = _analyze(recorder)
    assert len(result.segments) == 2
    assert result.segments[0].start == 100


def test_both_attempts_fail_falls_back():
    recorder = Recorder(_gemini(None, status=500), _gemini(None, status=503))
    result = _analyze(recorder, total=600)

    assert len(recorder.requests) == 2
    assert result.note == analyzer.FALLBACK_NOTE
    assert [s.id for s in result.segments] == ["fallback-1", "fallback-2"]
    assert [s.title for s in result.segments] == ["Key Moment 1", "Key Moment 2"]
    assert result.segments[0].start == 30
    assert result.segments[1].confidence == 0.75
    assert [c.text for c in result.captions] == [
        "Key insight here", "Continuing thought", "Conclusion", "Another key point", "Supporting detail",
    ]


def test_malformed_json_falls_back():
    recorder = Recorder(_gemini("this is not json"), _gemini('{"shorts": []}'))
    result = _analyze(recorder)
    assert result.note == analyzer.FALLBACK_NOTE


def test_missing_candidates_falls_back():
    recorder = Recorder(httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}),
                        httpx.Response(200, json={"candidates": []}))
    assert _analyze(recorder).note == analyzer.FALLBACK_NOTE


@pytest.mark.parametrize("body", [
    {"candidates": [None]},
    {"candidates": [{"content": {"parts": ["oops"]}, "finishReason": "STOP"}]},
    {"candidates": [{"content": {"parts": [{"text": 123}]}, "finishReason": "STOP"}]},
])
def test_odd_envelopes_fall_back(body):
    recorder = Recorder(httpx.Response(200, json=body), httpx.Response(200, json=body))
    result = _analyze(recorder)
    assert result.note == analyzer.FALLBACK_NOTE
    assert len(recorder.requests) == 2


def test_blocked_candidate_without_content_falls_back():
    blocked = {"candidates": [{"finishReason": "SAFETY"}]}
    recorder = Recorder(httpx.Response(200, json=blocked), httpx.Response(200, json=blocked))
    assert _analyze(recorder).note == analyzer.FALLBACK_NOTE


def test_transport_error_falls_back():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    assert _analyze(handler).note == analyzer.FALLBACK_NOTE


def test_no_api_key_skips_request(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    recorder = Recorder()
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    result = asyncio.run(SegmentAnalyzer(client).analyze("some text", 300))
    assert recorder.requests == []
    assert result.note == analyzer.FALLBACK_NOTE


def test_missing_fields_are_defaulted():
    shorts = {"shorts": [
        {"start": 100},
        {"id": "x", "title": None, "start": None, "end": 50, "confidence": None, "description": None},
    ]}
    result = _analyze(Recorder(_gemini(shorts)))
    first, second = result.segments

    assert first.title == "Untitled Short"
    assert first.confidence == 0.8
    assert first.description == ""
    assert first.start == 100
    assert first.duration == 45

    assert second.id == "x"
    assert second.start == 0
    assert second.duration == 50


def test_duplicate_ids_are_renamed():
    shorts = {"shorts": [_short(1, 0, 60), _short(1, 100, 160)]}
    result = _analyze(Recorder(_gemini(shorts)))
    assert [s.id for s in result.segments] == ["short-1", "short-2"]
    assert {c.segment_id for c in result.captions} == {"short-1", "short-2"}


def test_extra_shorts_are_dropped():
    shorts = {"shorts": [_short(i, i * 100, i * 100 + 60) for i in range(1, 6)]}
    assert len(_analyze(Recorder(_gemini(shorts))).segments) == 3


def test_validate_shorts_result():
    ok = analyzer.validate_shorts(json.dumps({"shorts": [_short(1, 0, 60)]}))
    assert ok.ok and ok.error is None

    for content in (None, "", "[]", "{}", '{"shorts": "nope"}', '{"shorts": [{"start": "soon"}]}'):
        result = analyzer.validate_shorts(content)
        assert not result.ok
        assert result.error


def test_generate_captions():
    reply = {"captions": [
        {"text": "Hook", "start": 0, "end": 2, "style": {"fontSize": "32px", "color": "#ff0000"}},
        {"text": "Middle"},
        {"text": None, "start": 5, "end": 6},
    ]}
    recorder = Recorder(_gemini(reply))
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    captions = asyncio.run(SegmentAnalyzer(client, api_key="k").generate_captions("x" * 9000, 30))

    assert [c.id for c in captions] == ["cap-1", "cap-2", "cap-3"]
    assert captions[0].style.font_size == 32
    assert captions[0].style.color == "#ff0000"
    assert (captions[1].start, captions[1].end) == (10, 20)
    assert captions[2].text == "Caption 3"
    assert recorder.requests[0]["generationConfig"]["maxOutputTokens"] == 2048
    prompt = recorder.requests[0]["contents"][0]["parts"][0]["text"]
    assert "x" * analyzer.CAPTION_EXCERPT_CHARS + "..." in prompt


def test_generate_captions_bad_reply():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: _gemini("nope")))
    with pytest.raises(AIResponseMalformed):
        asyncio.run(SegmentAnalyzer(client, api_key="k").generate_captions("text", 30))
