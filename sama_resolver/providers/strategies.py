"""
Source extraction strategies.

Each strategy is one independent way of finding raw player URLs in a fetched
episode/section page. They are complements, not alternates: SourceExtractor
runs every configured strategy and concatenates their output in order.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .base import RawCandidate
from .classify import is_allowed, normalize_url
from .errors import MalformedScriptPayload
from .fetcher import Pacer
from . import scripts, unpacker

log = logging.getLogger("sama_resolver.providers")


@dataclass
class PageContext:
    url: str                          # URL the page was fetched from
    content: str
    episode_index: int = 0            # 0-based index into the script arrays


# ──────────────────────────────
#  Registry
# ──────────────────────────────
class _Strategy:
    id: str
    name: str
    rank: int

    async def extract(self, page: PageContext, fetcher, pacer: Pacer) -> list[RawCandidate]:
        raise NotImplementedError


_STRATEGIES: dict[str, _Strategy] = {}


def register_strategy(strategy):
    """Decorator to register a strategy class."""
    inst = strategy()
    _STRATEGIES[inst.id] = inst
    return strategy


def list_strategies() -> list[_Strategy]:
    return sorted(_STRATEGIES.values(), key=lambda s: s.rank, reverse=True)


def get_strategy(strategy_id: str) -> Optional[_Strategy]:
    return _STRATEGIES.get(strategy_id)


# ──────────────────────────────
#  HTML helpers
# ──────────────────────────────
_SCRIPT_BLOCK_RE = re.compile(r"<script\b[^>]*>(.*?)</script\s*>", re.I | re.S)
_ANY_TAG_RE = re.compile(r"</?[a-zA-Z][\w-]*(?:\s|/?>)")
_FRAME_TAG_RE = re.compile(r"<(?:iframe|embed)\b([^>]*)>", re.I)
_CLICKABLE_TAG_RE = re.compile(r"<(a|button|div|span|li|option)\b([^>]*)>", re.I)
_ATTR_RE = re.compile(r"""([\w:-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.S)
_ABS_URL_RE = re.compile(r"""https?://[^\s"'<>`\\)\]]+""", re.I)
_QUOTED_URL_RE = re.compile(r"""['"]((?:https?:)?//[^'"\s]+)['"]""", re.I)
_SERVER_CLASS_RE = re.compile(r"server|player|lecteur|streaming", re.I)
_DATA_URL_ATTRS = ("data-url", "data-src", "data-link", "data-video", "data-embed")


def parse_attrs(raw: str) -> dict[str, str]:
    attrs = {}
    for m in _ATTR_RE.finditer(raw or ""):
        name = m.group(1).lower()
        if name not in attrs:
            attrs[name] = m.group(2) if m.group(2) is not None else m.group(3)
    return attrs


def inline_script_text(content: str) -> str:
    """All inline script bodies; a bare script payload is returned whole."""
    blocks = _SCRIPT_BLOCK_RE.findall(content or "")
    if blocks:
        return "\n".join(b for b in blocks if b.strip())
    if _ANY_TAG_RE.search(content or ""):
        return ""
    return content or ""


# ──────────────────────────────
#  Strategies
# ──────────────────────────────
@register_strategy
class ScriptArrayStrategy(_Strategy):
    id = "script-array"
    name = "Embedded script arrays"
    rank = 400

    async def extract(self, page, fetcher, pacer):
        reference = scripts.find_script_reference(page.content)
        if not reference:
            return []
        url = scripts.script_url(page.url, reference)
        await pacer.wait()
        body = await fetcher.get(url, referer=page.url)
        try:
            payload = scripts.parse_payload(body)
        except MalformedScriptPayload as e:
            log.warning(f"[{self.id}] Malformed payload at {url}: {e}")
            return []
        log.info(f"[{self.id}] {len(payload.arrays)} server array(s), "
                 f"{payload.episode_count} episode(s) in {url}")
        return [
            RawCandidate(url=raw, strategy=self.id, slot=slot)
            for slot, raw in payload.episode(page.episode_index)
        ]


@register_strategy
class InlineEmbedStrategy(_Strategy):
    id = "inline-embed"
    name = "Inline iframes"
    rank = 300

    async def extract(self, page, fetcher, pacer):
        found = []
        for m in _FRAME_TAG_RE.finditer(page.content or ""):
            attrs = parse_attrs(m.group(1))
            src = attrs.get("src") or attrs.get("data-src")
            if src and src.strip() and src.strip() != "about:blank":
                found.append(RawCandidate(url=src.strip(), strategy=self.id, slot=len(found) + 1))
        return found


@register_strategy
class FreeTextStrategy(_Strategy):
    id = "free-text"
    name = "Script free-text URLs"
    rank = 200

    async def extract(self, page, fetcher, pacer):
        text = unpacker.expand_packed(inline_script_text(page.content))
        text = text.replace("\\/", "/")
        found = []
        for m in _ABS_URL_RE.finditer(text):
            url = m.group(0).rstrip(".,;")
            if is_allowed(normalize_url(url)):
                found.append(RawCandidate(url=url, strategy=self.id, slot=len(found) + 1))
        return found


@register_strategy
class InteractiveStrategy(_Strategy):
    id = "interactive"
    name = "Server buttons"
    rank = 100

    async def extract(self, page, fetcher, pacer):
        found = []
        for m in _CLICKABLE_TAG_RE.finditer(page.content or ""):
            attrs = parse_attrs(m.group(2))
            url = self._url_from(attrs)
            if url:
                found.append(RawCandidate(url=url, strategy=self.id, slot=len(found) + 1))
        return found

    @staticmethod
    def _url_from(attrs: dict[str, str]) -> Optional[str]:
        for name in _DATA_URL_ATTRS:
            value = (attrs.get(name) or "").strip()
            if value:
                return value
        onclick = attrs.get("onclick") or ""
        m = _QUOTED_URL_RE.search(onclick)
        if m:
            return m.group(1)
        href = (attrs.get("href") or "").strip()
        if href and _SERVER_CLASS_RE.search(attrs.get("class", "")) and (
                href.startswith("http") or href.startswith("//")):
            return href
        return None


# ──────────────────────────────
#  Extractor
# ──────────────────────────────
@dataclass
class StrategyRun:
    candidates: list[RawCandidate] = field(default_factory=list)
    attempted: list[str] = field(default_factory=list)


class SourceExtractor:
    def __init__(self, strategy_ids: Optional[list[str]] = None):
        if strategy_ids is None:
            self.strategies = list_strategies()
        else:
            self.strategies = []
            for sid in strategy_ids:
                strategy = get_strategy(sid)
                if strategy is None:
                    log.warning(f"Unknown strategy '{sid}' ignored")
                    continue
                self.strategies.append(strategy)

    async def extract(self, page: PageContext, fetcher, pacer: Pacer) -> StrategyRun:
        """Run every strategy in order; never short-circuits."""
        run = StrategyRun()
        for strategy in self.strategies:
            run.attempted.append(strategy.id)
            try:
                found = await strategy.extract(page, fetcher, pacer)
            except Exception as e:
                log.warning(f"[{strategy.id}] Strategy failed: {e}")
                continue
            if found:
                log.info(f"[{strategy.id}] {len(found)} raw candidate(s)")
                run.candidates.extend(found)
        return run
