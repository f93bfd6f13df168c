"""
Structure extractor: discovers a title's sections and their episode counts.

The landing page declares one section per UI call:

    panneauAnime("Saison 1", "saison1/vostfr");
    panneauAnime("Films", "film/vostfr");

Those calls are the only authoritative source of section existence. Each
section's episode count is the length of the longest server array in the
section's versioned episodes.js script.
"""
from __future__ import annotations
import logging
import re
from typing import Optional

from .base import Language, SectionDescriptor, strip_language_suffix
from .errors import MalformedScriptPayload
from .fetcher import Pacer
from .urls import catalogue_url
from . import scripts

log = logging.getLogger("sama_resolver.providers")

_DECLARATION_RE = re.compile(
    r"""panneauAnime\(\s*(["'])(.*?)\1\s*,\s*(["'])(.*?)\3\s*\)""", re.S)
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
_SEASON_RE = re.compile(r"^saison(\d+)", re.I)
_HREF_EPISODE_RE = re.compile(r"""href\s*=\s*["'][^"']*episode-(\d+)""", re.I)
_LABEL_EPISODE_RE = re.compile(r">\s*[ée]pisode\s*(\d+)\s*<", re.I)
_EPISODE_CLASS_RE = re.compile(r"""<[a-z]+\b[^>]*class\s*=\s*["'][^"']*\bepisode[\w-]*""", re.I)

# Special buckets get fixed numbers so they sort after regular seasons
FILM_NUMBER = 999
OAV_NUMBER = 998
KAI_NUMBER = 997
HORS_SERIE_NUMBER = 996

# Last-resort seed, used only when live discovery finds no section at all.
# Titles listed here are ones whose landing page has been unreliable.
SECTION_OVERRIDES: dict[str, list[tuple[str, str, int]]] = {
    "my-hero-academia": [
        ("Saison 1", "saison1", 13),
        ("Saison 2", "saison2", 25),
        ("Saison 3", "saison3", 25),
        ("Saison 4", "saison4", 25),
        ("Saison 5", "saison5", 25),
        ("Saison 6", "saison6", 25),
        ("Saison 7", "saison7", 21),
    ],
    "demon-slayer": [
        ("Saison 1", "saison1", 26),
        ("Saison 2", "saison2", 18),
    ],
}


def _section_number(path: str, position: int) -> int:
    lowered = path.lower()
    m = _SEASON_RE.match(lowered)
    if m and lowered.endswith("hs"):
        return HORS_SERIE_NUMBER
    if m:
        return int(m.group(1))
    if lowered.startswith("film"):
        return FILM_NUMBER
    if lowered.startswith(("oav", "ova")):
        return OAV_NUMBER
    if lowered.startswith("kai"):
        return KAI_NUMBER
    return position


def _languages(raw_path: str) -> list[Language]:
    lowered = raw_path.lower().rstrip("/")
    if lowered.endswith("/vostfr"):
        return [Language.VOSTFR]
    if lowered.endswith("/vf"):
        return [Language.VF]
    return [Language.VOSTFR, Language.VF]


def parse_section_declarations(page: str) -> list[SectionDescriptor]:
    """Sections in declaration order.

    The first declaration of a path fixes its name, number and position; later
    declarations of the same path only add languages.
    """
    sections: list[SectionDescriptor] = []
    by_path: dict[str, SectionDescriptor] = {}
    for m in _DECLARATION_RE.finditer(_BLOCK_COMMENT_RE.sub("", page or "")):
        name, raw_path = m.group(2).strip(), m.group(4).strip()
        # Template call left in the page source: panneauAnime("nom", "url")
        if not name or not raw_path or (name == "nom" and raw_path == "url"):
            continue
        if "{{" in name or "{{" in raw_path:
            continue
        path = strip_language_suffix(raw_path)
        if not path:
            continue
        if path in by_path:
            known = by_path[path]
            known.languages += [lang for lang in _languages(raw_path) if lang not in known.languages]
            continue
        section = SectionDescriptor(
            number=_section_number(path, len(sections) + 1),
            name=name,
            path=path,
            languages=_languages(raw_path),
        )
        by_path[path] = section
        sections.append(section)
    return sections


def count_episode_elements(page: str) -> int:
    """Fallback signal: episode-labelled elements in a rendered section page."""
    numbers = {int(n) for n in _HREF_EPISODE_RE.findall(page or "")}
    numbers |= {int(n) for n in _LABEL_EPISODE_RE.findall(page or "")}
    if numbers:
        return len(numbers)
    return len(_EPISODE_CLASS_RE.findall(page or ""))


def seed_sections(anime_id: str) -> list[SectionDescriptor]:
    return [
        SectionDescriptor(number=i, name=name, path=path, episode_count=count)
        for i, (name, path, count) in enumerate(SECTION_OVERRIDES.get(anime_id, []), start=1)
    ]


class StructureExtractor:
    def __init__(self, fetcher, *, base_url: str, pacer: Optional[Pacer] = None):
        self.fetcher = fetcher
        self.base_url = base_url
        self.pacer = pacer or Pacer(0, 0)

    async def discover_sections(self, page: str, anime_id: str) -> list[SectionDescriptor]:
        landing = catalogue_url(self.base_url, anime_id)
        discovered = []
        for section in parse_section_declarations(page):
            fetched = await self._fetch_section_page(anime_id, section, landing)
            if fetched is None:
                continue
            section_url, section_page = fetched

            count = await self._count_from_script(section_url, section_page)
            if count == 0:
                count = count_episode_elements(section_page)
                if count:
                    log.info(f"[structure] {section.path}: {count} episode(s) from page elements")
            section.episode_count = count
            section.unknown = count == 0
            if section.unknown:
                log.warning(f"[structure] {section.path}: episode count unknown")
            discovered.append(section)
        return discovered

    async def _fetch_section_page(self, anime_id, section, landing):
        """(url, page) for the first language variant that answers, else None."""
        errors = []
        for language in section.languages:
            url = catalogue_url(self.base_url, anime_id, section.path, language.slug)
            try:
                await self.pacer.wait()
                return url, await self.fetcher.get(url, referer=landing)
            except Exception as e:
                errors.append(str(e))
        log.warning(f"[structure] Section '{section.path}' skipped: {'; '.join(errors)}")
        return None

    async def _count_from_script(self, section_url: str, section_page: str) -> int:
        reference = scripts.find_script_reference(section_page)
        if not reference:
            return 0
        url = scripts.script_url(section_url, reference)
        try:
            await self.pacer.wait()
            body = await self.fetcher.get(url, referer=section_url)
            payload = scripts.parse_payload(body)
        except MalformedScriptPayload as e:
            log.warning(f"[structure] Malformed payload at {url}: {e}")
            return 0
        except Exception as e:
            log.warning(f"[structure] Script fetch failed for {url}: {e}")
            return 0
        log.info(f"[structure] {url}: arrays "
                 f"{[len(items) for _, items in payload.arrays]} -> {payload.episode_count}")
        return payload.episode_count
