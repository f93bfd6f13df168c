"""
Candidate URL builder: identifier -> ordered origin URLs to try, most
specific first. Pure; never touches the network.
"""
from __future__ import annotations
from typing import Iterable, Optional

from .base import ContentIdentifier, SectionDescriptor

DEFAULT_SECTION = "saison1"


def catalogue_url(base_url: str, anime_id: str, *parts: str) -> str:
    """catalogue_url(b, "naruto", "saison1", "vf") -> b/catalogue/naruto/saison1/vf/"""
    path = "/".join(p.strip("/") for p in (anime_id, *parts) if p)
    return f"{base_url.rstrip('/')}/catalogue/{path}/"


def locate_episode(
    sections: Iterable[SectionDescriptor], episode_number: int
) -> Optional[tuple[SectionDescriptor, int]]:
    """Map an absolute episode number onto (section, 0-based local index).

    Sections are walked in declaration order; sections with an unknown count
    cannot be mapped through and stop the walk.
    """
    remaining = episode_number
    for section in sections:
        if section.unknown or section.episode_count <= 0:
            return None
        if remaining <= section.episode_count:
            return section, remaining - 1
        remaining -= section.episode_count
    return None


def section_of(url: str, base_url: str, anime_id: str) -> Optional[str]:
    """Section path a candidate URL points into, or None for section-less forms."""
    prefix = catalogue_url(base_url, anime_id)
    if not url.startswith(prefix):
        return None
    head = url[len(prefix):].split("/", 1)[0]
    if not head or head in ("vf", "vostfr") or head.startswith("episode-"):
        return None
    return head


def episode_index(
    identifier: ContentIdentifier,
    section_path: Optional[str],
    sections: Optional[list[SectionDescriptor]] = None,
) -> int:
    """0-based index into a section's script arrays for the requested episode.

    An explicit section on the identifier means the episode number is local
    to it. Otherwise the number is absolute and is offset by the episode
    counts of the sections declared before `section_path`. The result may be
    negative when the episode lies before that section.
    """
    ep = identifier.episode_number or 1
    if not section_path or section_path == identifier.section_path:
        return ep - 1
    offset = 0
    for section in sections or []:
        if section.path == section_path:
            return ep - 1 - offset
        if section.unknown or section.episode_count <= 0:
            break
        offset += section.episode_count
    return ep - 1


def build_candidate_urls(
    identifier: ContentIdentifier,
    *,
    base_url: str,
    sections: Optional[list[SectionDescriptor]] = None,
    local_numbers: Optional[dict[str, int]] = None,
) -> list[str]:
    """Ordered origin URLs, most specific first.

    local_numbers maps a section path to the episode number to use inside it,
    for absolute episodes already located in that section.
    """
    anime = identifier.anime_id
    lang = identifier.language.slug
    ep = identifier.episode_number
    urls: list[str] = []

    section_paths: list[str] = []
    if identifier.section_path:
        section_paths.append(identifier.section_path)
    for section in sections or []:
        section_paths.append(section.path)
    section_paths.append(DEFAULT_SECTION)

    for path in dict.fromkeys(section_paths):
        if ep is not None:
            number = (local_numbers or {}).get(path, ep)
            urls.append(catalogue_url(base_url, anime, path, lang, f"episode-{number}").rstrip("/"))
        urls.append(catalogue_url(base_url, anime, path, lang))

    if ep is not None:
        urls.append(catalogue_url(base_url, anime, lang, f"episode-{ep}").rstrip("/"))
        urls.append(catalogue_url(base_url, anime, f"episode-{ep}").rstrip("/"))
    urls.append(catalogue_url(base_url, anime, lang))
    # Always last: the minimal well-formed URL, so the list is never empty
    urls.append(catalogue_url(base_url, anime))

    return list(dict.fromkeys(urls))
