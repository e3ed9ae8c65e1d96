import pathlib
import sys
import tempfile
import textwrap

import dotenv
import pytest

from vidshorts.context import RunContext

dotenv.load_dotenv(pathlib.Path(__file__).parent.parent / ".env")

# every fake binary records its argv next to itself and can resolve yt-dlp's -o template
_PRELUDE = '''\
import json, pathlib, sys
args = sys.argv[1:]
pathlib.Path(__file__).with_suffix(".args.json").write_text(json.dumps(args))
def output(ext):
    return pathlib.Path(args[args.index("-o") + 1].replace("%(ext)s", ext))
'''


@pytest.fixture
def tmp_dir():
    with tempfile.TemporaryDirectory() as tmp:
        yield pathlib.Path(tmp)


@pytest.fixture
def ctx(tmp_dir):
    return RunContext(base_dir=tmp_dir / "run")


@pytest.fixture
def fake_binary(tmp_dir):
    def make(body: str, name: str = "fake_ytdlp") -> list[str]:
        script = tmp_dir / f"{name}.py"
        script.write_text(_PRELUDE + textwrap.dedent(body))
        return [sys.executable, str(script)]
    return make


@pytest.fixture(autouse=True)
def no_cookies(monkeypatch):
    for var in ("YT_COOKIES_FILE", "YOUTUBE_COOKIES_FILE", "YTDLP_COOKIES_FILE",
                "YTDLP_BROWSER", "YT_COOKIES_BROWSER"):
        monkeypatch.delenv(var, raising=False)


def recorded_args(binary: list[str]) -> list[str]:
    import json
    return json.loads(pathlib.Path(binary[1]).with_suffix(".args.json").read_text())
