"""Collapse equivalent sources; first occurrence keeps its strategy-order rank."""
from __future__ import annotations
from dataclasses import replace

from .base import StreamingSource


def dedupe(sources: list[StreamingSource]) -> list[StreamingSource]:
    # Key is the exact URL string; classify() has already normalized it.
    seen: set[str] = set()
    out: list[StreamingSource] = []
    for source in sources:
        if source.url in seen:
            continue
        seen.add(source.url)
        out.append(replace(source, rank=len(out) + 1))
    return out
