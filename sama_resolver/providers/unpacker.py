"""
Dean Edwards p,a,c,k,e,d unpacker.

Ad-heavy players and some episode pages hide their player URLs inside

    eval(function(p,a,c,k,e,d){...}('payload',radix,count,'w0|w1|...'.split('|'),0,{}))

expand_packed() replaces every such block in a script with its plain source
so the free-text strategy can regex over it.
"""
from __future__ import annotations
import re

_PACKED_RE = re.compile(
    r"eval\(function\(p,a,c,k,e,[dr]\)\{.*?\}\(\s*'((?:[^'\\]|\\.)*)'\s*,\s*(\d+)\s*,\s*(\d+)\s*,"
    r"\s*'((?:[^'\\]|\\.)*)'\.split\('\|'\)[^)]*\)\)",
    re.DOTALL,
)
_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_WORD_RE = re.compile(r"\b\w+\b")


def _to_int(word: str, radix: int) -> int:
    value = 0
    for ch in word:
        digit = _ALPHABET.index(ch)
        if digit >= radix:
            raise ValueError(word)
        value = value * radix + digit
    return value


def is_packed(text: str) -> bool:
    return bool(_PACKED_RE.search(text or ""))


def _unpack_match(m: re.Match) -> str:
    payload, radix, count, words = m.group(1), int(m.group(2)), int(m.group(3)), m.group(4)
    symbols = words.split("|")
    symbols += [""] * (count - len(symbols))
    payload = payload.replace("\\'", "'").replace("\\\\", "\\")

    def lookup(word_match: re.Match) -> str:
        word = word_match.group(0)
        try:
            idx = _to_int(word, radix)
        except ValueError:
            return word
        if idx < len(symbols) and symbols[idx]:
            return symbols[idx]
        return word

    return _WORD_RE.sub(lookup, payload)


def expand_packed(text: str) -> str:
    """Return `text` with every packed block replaced by its unpacked source."""
    if not text:
        return ""
    return _PACKED_RE.sub(_unpack_match, text)
