"""Turn caption payloads (JSON events, timedtext XML, WebVTT) into plain text.

Every function here returns either a non-empty, whitespace-normalized string
or None. Callers never see "".
"""
import json
import re
from typing import Optional

import webvtt
from webvtt.errors import MalformedFileError

_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_XML_NODE = re.compile(r"<(text|p)\b[^>]*>(.*?)</\1>", re.DOTALL)
_CUE_INDEX = re.compile(r"^\d+$")

# &amp; last, so "&amp;lt;" decodes once to "&lt;"
_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),
)


def decode_entities(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def collapse(text: Optional[str]) -> Optional[str]:
    """Whitespace only. For text that is already free of markup."""
    if not text:
        return None
    return _WHITESPACE.sub(" ", text).strip() or None


def clean(text: Optional[str]) -> Optional[str]:
    """Strip tags, then decode entities, so escaped angle brackets survive as text."""
    if not text:
        return None
    return collapse(decode_entities(_TAG.sub("", text)))


def _join(pieces) -> Optional[str]:
    return collapse(" ".join(p for p in pieces if p))


def json3_to_text(body: str | dict) -> Optional[str]:
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            return None
    if not isinstance(body, dict):
        return None
    pieces = []
    for event in body.get("events") or []:
        for seg in event.get("segs") or []:
            pieces.append(clean(seg.get("utf8")))
    return _join(pieces)


def xml_to_text(body: str) -> Optional[str]:
    # node text is XML-escaped HTML: one decode for the XML layer, then clean
    return _join(clean(decode_entities(_TAG.sub("", m.group(2)))) for m in _XML_NODE.finditer(body))


def _filter_vtt_lines(body: str) -> Optional[str]:
    kept = []
    for line in body.splitlines():
        line = line.strip()
        if not line or line.startswith("WEBVTT") or "-->" in line or _CUE_INDEX.match(line):
            continue
        kept.append(clean(line))
    return _join(kept)


def vtt_to_text(body: str) -> Optional[str]:
    try:
        vtt = webvtt.from_string(body)
    except MalformedFileError:
        return _filter_vtt_lines(body)
    return _join(clean(caption.raw_text) for caption in vtt.captions)


def caption_text(body: str) -> Optional[str]:
    """Sniff the payload format and normalize it."""
    if not body or not body.strip():
        return None
    head = body.lstrip()
    if head.startswith("{"):
        return json3_to_text(head)
    if head.startswith("WEBVTT"):
        return vtt_to_text(head)
    if _XML_NODE.search(head):
        return xml_to_text(head)
    if "-->" in head:
        return _filter_vtt_lines(head)
    return None
