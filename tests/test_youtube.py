from types import SimpleNamespace

import pytest

from vidshorts import runtime, youtube


@pytest.mark.parametrize("url", [
    "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    "https://youtube.com/watch?v=dQw4w9WgXcQ&t=42",
    "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
    "https://youtu.be/dQw4w9WgXcQ?si=abc",
    "https://www.youtube.com/embed/dQw4w9WgXcQ",
    "https://www.youtube.com/v/dQw4w9WgXcQ",
    "https://www.youtube.com/shorts/dQw4w9WgXcQ",
])
def test_parse_reference_shapes(url):
    ref = youtube.parse_reference(url)
    assert ref.video_id == "dQw4w9WgXcQ"
    assert ref.url == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.mark.parametrize("url", ["", "https://vimeo.com/12345", "not a url", "https://www.youtube.com/"])
def test_parse_reference_rejects(url):
    assert youtube.parse_reference(url) is None


def _track(lang, generated):
    return SimpleNamespace(lang=lang, generated=generated)


def _select(tracks):
    return youtube.select_track(tracks, language=lambda t: t.lang, generated=lambda t: t.generated)


def test_select_track_policy():
    manual_en = _track("en", False)
    manual_de = _track("de", False)
    asr_en = _track("en", True)
    asr_fr = _track("fr", True)

    assert _select([asr_en, manual_de, manual_en]) is manual_en
    assert _select([asr_en, manual_de]) is manual_de
    assert _select([asr_fr, asr_en]) is asr_en
    assert _select([asr_fr]) is asr_fr
    assert _select([]) is None


def test_select_track_accepts_regional_english():
    en_gb = _track("en-GB", False)
    assert _select([_track("de", False), en_gb]) is en_gb


def test_cookie_args_prefers_file(monkeypatch, tmp_dir):
    cookies = tmp_dir / "cookies.txt"
    cookies.write_text("# Netscape HTTP Cookie File\n")
    monkeypatch.setenv("YOUTUBE_COOKIES_FILE", str(cookies))
    monkeypatch.setenv("YTDLP_BROWSER", "firefox")
    assert youtube.cookie_args() == ["--cookies", str(cookies)]


def test_cookie_args_browser(monkeypatch, tmp_dir):
    monkeypatch.chdir(tmp_dir)
    monkeypatch.setenv("YT_COOKIES_BROWSER", "chrome")
    assert youtube.cookie_args() == ["--cookies-from-browser", "chrome"]


def test_cookie_args_none(monkeypatch, tmp_dir):
    monkeypatch.chdir(tmp_dir)
    assert youtube.cookie_args() == []


def test_common_args_spoof_and_retry():
    args = youtube.common_args(retries=5)
    assert args[args.index("--user-agent") + 1] == runtime.USER_AGENT
    assert args[args.index("--referer") + 1] == "https://www.youtube.com/"
    assert args[args.index("--retries") + 1] == "5"
    assert args[args.index("--fragment-retries") + 1] == "5"


def test_runtime_check_reports_missing(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setattr(runtime, "YTDLP_BIN", "definitely-not-a-real-binary")
    errors = runtime.check(needs_ytdlp=True, needs_gemini=True)
    assert len(errors) == 2
    assert any("GEMINI_API_KEY" in e for e in errors)
