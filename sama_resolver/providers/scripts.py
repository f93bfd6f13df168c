"""
Per-section script payload (episodes.js) parsing.

A section page references a versioned script:

    <script src="episodes.js?filever=2891"></script>

whose body declares one array per alternate server, one element per episode:

    var eps1 = ['https://video.sibnet.ru/shell.php?videoid=1', ...];
    var eps2 = ['https://vidmoly.to/embed-abc.html', ...];

The array's position in the file is the server slot (eps1 -> slot 1).
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin

from .errors import MalformedScriptPayload

_VERSIONED_REF_RE = re.compile(r"""([^\s"'<>=]*episodes\.js\?filever=\d+)""")
_PLAIN_REF_RE = re.compile(r"""src\s*=\s*["']([^"']*episodes\.js)["']""", re.I)
_ARRAY_START_RE = re.compile(r"(?:\b(?:var|let|const)\s+)?\b(eps\w*)\s*=\s*\[")
_STRING_RE = re.compile(r"""\s*(?:'((?:[^'\\]|\\.)*)'|"((?:[^"\\]|\\.)*)")\s*""", re.S)
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
_LINE_COMMENT_RE = re.compile(r"(?m)^\s*//.*$")


def find_script_reference(page: str) -> Optional[str]:
    m = _VERSIONED_REF_RE.search(page or "")
    if m:
        return m.group(1)
    m = _PLAIN_REF_RE.search(page or "")
    return m.group(1) if m else None


def script_url(page_url: str, reference: str) -> str:
    """Resolve a script reference against the page it was found on."""
    return urljoin(page_url, reference)


@dataclass
class ScriptPayload:
    arrays: list[tuple[str, list[str]]] = field(default_factory=list)

    @property
    def episode_count(self) -> int:
        """Length of the longest array; shorter mirrors have gaps."""
        return max((len(items) for _, items in self.arrays), default=0)

    def episode(self, index: int) -> list[tuple[int, str]]:
        """(slot, url) for every server that has a non-empty entry at `index`."""
        out = []
        for slot, (_, items) in enumerate(self.arrays, start=1):
            if 0 <= index < len(items) and items[index].strip():
                out.append((slot, items[index].strip()))
        return out


def _unescape(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def _parse_elements(name: str, body: str) -> list[str]:
    items: list[str] = []
    pos = 0
    body = body.rstrip()
    while pos < len(body):
        m = _STRING_RE.match(body, pos)
        if not m:
            raise MalformedScriptPayload(f"{name}: unexpected token at offset {pos}")
        raw = m.group(1) if m.group(1) is not None else m.group(2)
        items.append(_unescape(raw))
        pos = m.end()
        if pos < len(body):
            if body[pos] != ",":
                raise MalformedScriptPayload(f"{name}: expected ',' at offset {pos}")
            pos += 1
            # trailing comma before ']'
            if not body[pos:].strip():
                break
    return items


def _find_array_end(text: str, start: int) -> int:
    """Index of the ']' closing the array whose body starts at `start`."""
    quote = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "]":
            return i
        i += 1
    return -1


def parse_payload(text: str) -> ScriptPayload:
    """Parse every top-level eps array. Raises MalformedScriptPayload."""
    cleaned = _LINE_COMMENT_RE.sub("", _BLOCK_COMMENT_RE.sub("", text or ""))
    payload = ScriptPayload()
    seen: set[str] = set()
    pos = 0
    while True:
        m = _ARRAY_START_RE.search(cleaned, pos)
        if not m:
            break
        name = m.group(1)
        end = _find_array_end(cleaned, m.end())
        if end < 0:
            raise MalformedScriptPayload(f"{name}: unterminated array")
        items = _parse_elements(name, cleaned[m.end():end])
        if name not in seen:
            seen.add(name)
            payload.arrays.append((name, items))
        pos = end + 1
    if not payload.arrays:
        raise MalformedScriptPayload("no eps arrays found")
    return payload
