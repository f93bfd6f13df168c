"""
Resolution engine: turns an identifier into sections or streaming sources.

Usage:
    engine = ResolutionEngine()
    sections = await engine.resolve_structure("one-piece")
    result = await engine.resolve(ContentIdentifier("one-piece", episode_number=3))
    print(result.to_dict())
    await engine.close()
"""
from __future__ import annotations
import logging
from typing import Optional

from ..config import Settings, load_settings
from .base import ContentIdentifier, ExtractionResult, SectionDescriptor
from .cache import TTLCache
from .classify import classify_all
from .dedupe import dedupe
from .errors import NoSourcesExtracted, NotFound, UpstreamUnavailable
from .fallback import synthesize
from .fetcher import Fetcher, Pacer
from .strategies import PageContext, SourceExtractor
from .structure import StructureExtractor, seed_sections
from .urls import (
    build_candidate_urls, catalogue_url, episode_index, locate_episode, section_of,
)

log = logging.getLogger("sama_resolver.providers")

# Soft 404s: the origin answers 200 with an error page
MISSING_PAGE_MARKERS = ("Page introuvable", "404 Not Found")


class ResolutionEngine:
    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        fetcher=None,
        cache: Optional[TTLCache] = None,
    ):
        self.settings = settings or load_settings()
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher(timeout=self.settings.request_timeout)
        self.cache = cache
        self.extractor = SourceExtractor(self.settings.strategy_order)

    async def close(self):
        if self._owns_fetcher:
            await self.fetcher.close()

    def list_strategies(self):
        return [{"id": s.id, "name": s.name, "rank": s.rank}
                for s in self.extractor.strategies]

    def _pacer(self) -> Pacer:
        return Pacer(self.settings.fetch_delay_min, self.settings.fetch_delay_max)

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    # ── structure ──────────────────

    async def resolve_structure(self, anime_id: str, pacer: Optional[Pacer] = None) -> list[SectionDescriptor]:
        """Sections of a title in declaration order; [] when nothing is found."""
        pacer = pacer or self._pacer()
        landing = catalogue_url(self.base_url, anime_id)
        sections: list[SectionDescriptor] = []
        try:
            await pacer.wait()
            page = await self.fetcher.get(landing, referer=f"{self.base_url}/")
        except Exception as e:
            log.warning(f"[{anime_id}] Landing page unavailable: {e}")
        else:
            extractor = StructureExtractor(self.fetcher, base_url=self.base_url, pacer=pacer)
            sections = await extractor.discover_sections(page, anime_id)

        if not sections:
            seeded = seed_sections(anime_id)
            if seeded:
                log.info(f"[{anime_id}] Using {len(seeded)} seeded section(s)")
            sections = seeded
        log.info(f"[{anime_id}] {len(sections)} section(s): "
                 f"{[(s.path, s.episode_count) for s in sections]}")
        return sections

    async def _known_sections(self, anime_id: str, pacer: Pacer) -> list[SectionDescriptor]:
        key = f"structure:{anime_id}"
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached
        sections = await self.resolve_structure(anime_id, pacer)
        if self.cache is not None and sections:
            self.cache.set(key, sections)
        return sections

    # ── sources ──────────────────

    async def resolve(self, identifier: ContentIdentifier) -> ExtractionResult:
        """Real sources from the first candidate URL that yields any, else the
        synthetic fallback set. Raises NotFound / UpstreamUnavailable when no
        candidate page could be fetched at all."""
        pacer = self._pacer()
        sections: list[SectionDescriptor] = []
        preferred: list[SectionDescriptor] = []
        local_numbers: dict[str, int] = {}
        if identifier.section_path is None and identifier.episode_number is not None:
            sections = await self._known_sections(identifier.anime_id, pacer)
            located = locate_episode(sections, identifier.episode_number)
            if located:
                target, local = located
                log.info(f"[{identifier.anime_id}] Episode {identifier.episode_number} "
                         f"-> {target.path} #{local + 1}")
                preferred = [target]
                local_numbers[target.path] = local + 1

        # Candidate order puts the located section first; index math keeps declaration order
        candidates = build_candidate_urls(
            identifier, base_url=self.base_url, sections=preferred + sections,
            local_numbers=local_numbers)
        try:
            return await self._extract_first(identifier, candidates, sections, pacer)
        except NoSourcesExtracted as e:
            log.warning(f"[{identifier.anime_id}] {e}; using synthetic fallback sources")
            return ExtractionResult(
                sources=synthesize(identifier),
                strategies_attempted=[s.id for s in self.extractor.strategies],
                strategies_succeeded=[],
            )

    async def resolve_sources(self, identifier: ContentIdentifier):
        return (await self.resolve(identifier)).sources

    async def _extract_first(
        self,
        identifier: ContentIdentifier,
        candidates: list[str],
        sections: list[SectionDescriptor],
        pacer: Pacer,
    ) -> ExtractionResult:
        referer = catalogue_url(self.base_url, identifier.anime_id)
        fetched = missing = failed = 0

        for url in candidates:
            try:
                await pacer.wait()
                content = await self.fetcher.get(url, referer=referer)
            except NotFound:
                missing += 1
                log.info(f"[candidate] 404 {url}")
                continue
            except Exception as e:
                failed += 1
                log.warning(f"[candidate] Failed {url}: {e}")
                continue
            if any(marker in content for marker in MISSING_PAGE_MARKERS):
                missing += 1
                log.info(f"[candidate] Missing page {url}")
                continue

            fetched += 1
            index = episode_index(identifier, section_of(url, self.base_url, identifier.anime_id),
                                  sections)
            run = await self.extractor.extract(PageContext(url, content, index), self.fetcher, pacer)
            sources = dedupe(classify_all(run.candidates, identifier.language))
            if sources:
                log.info(f"[candidate] {len(sources)} source(s) from {url}")
                return ExtractionResult(
                    sources=sources,
                    strategies_attempted=run.attempted,
                    strategies_succeeded=list(dict.fromkeys(s.strategy for s in sources)),
                    page_url=url,
                )
            log.info(f"[candidate] Nothing usable on {url}")

        if fetched:
            raise NoSourcesExtracted(f"{fetched} page(s) fetched, no acceptable source")
        if failed and not missing:
            raise UpstreamUnavailable(f"All {failed} candidate URL(s) failed upstream")
        raise NotFound(f"No reachable page for {identifier.anime_id}")
