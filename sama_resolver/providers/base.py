"""
Core types for the sama-resolver provider system.

Two kinds of result:
  - SectionDescriptor: one season / film bucket / specials bucket of a title
  - StreamingSource: one playable URL (embeddable player or direct media file)
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


# ──────────────────────────────
#  Enums
# ──────────────────────────────
class Language(str, Enum):
    VF = "VF"
    VOSTFR = "VOSTFR"

    @classmethod
    def parse(cls, value) -> "Language":
        """Case-insensitive; anything unrecognised falls back to VOSTFR."""
        if isinstance(value, Language):
            return value
        text = str(value or "").strip().upper()
        return cls.VF if text == "VF" else cls.VOSTFR

    @property
    def slug(self) -> str:
        return self.value.lower()


class Quality(str, Enum):
    SD = "SD"
    HD = "HD"
    FHD = "FHD"
    AUTO = "Auto"


class TransportType(str, Enum):
    EMBEDDABLE = "embeddable"
    DIRECT_FILE = "directFile"


# ──────────────────────────────
#  Request identity
# ──────────────────────────────
_EPISODE_ID_RE = re.compile(r"^(.+?)-(?:episode|ep)-?(\d+)(?:-(vf|vostfr))?$", re.IGNORECASE)
_SIMPLE_ID_RE = re.compile(r"^(.+?)-(\d+)(?:-(vf|vostfr))?$", re.IGNORECASE)


@dataclass(frozen=True)
class ContentIdentifier:
    anime_id: str
    section_path: Optional[str] = None     # e.g. "saison2", "film"
    episode_number: Optional[int] = None   # 1-based
    language: Language = Language.VOSTFR

    def __post_init__(self):
        if not self.anime_id or not self.anime_id.strip():
            raise ValueError("anime_id is required")
        if self.episode_number is not None and self.episode_number < 1:
            raise ValueError("episode_number must be >= 1")
        # Normalize: section paths never carry the language suffix or slashes
        if self.section_path is not None:
            cleaned = strip_language_suffix(self.section_path.strip("/")) or None
            object.__setattr__(self, "section_path", cleaned)
        object.__setattr__(self, "language", Language.parse(self.language))

    @classmethod
    def from_episode_id(cls, episode_id: str) -> "ContentIdentifier":
        """Parse composite ids: naruto-episode-3-vf, naruto-ep3, naruto-3, naruto."""
        text = episode_id.strip().strip("/")
        for regex in (_EPISODE_ID_RE, _SIMPLE_ID_RE):
            m = regex.match(text)
            if m:
                return cls(
                    anime_id=m.group(1),
                    episode_number=int(m.group(2)),
                    language=Language.parse(m.group(3)),
                )
        return cls(anime_id=text, episode_number=1)

    @property
    def cache_key(self) -> str:
        return (f"{self.anime_id}:{self.section_path or '-'}:"
                f"{self.episode_number or '-'}:{self.language.slug}")


def strip_language_suffix(path: str) -> str:
    """saison1/vostfr -> saison1"""
    return re.sub(r"/?(vf|vostfr)$", "", path.strip("/"), flags=re.IGNORECASE)


# ──────────────────────────────
#  Structure
# ──────────────────────────────
@dataclass
class SectionDescriptor:
    number: int
    name: str
    path: str                                        # dedup key, e.g. "saison1"
    languages: list[Language] = field(default_factory=lambda: [Language.VOSTFR, Language.VF])
    episode_count: int = 0                           # 0 = not (yet) known
    unknown: bool = False                            # count could not be detected

    def __post_init__(self):
        if self.episode_count < 0:
            raise ValueError("episode_count must be >= 0")

    def to_dict(self):
        return {
            "number": self.number,
            "name": self.name,
            "path": self.path,
            "languages": [lang.value for lang in self.languages],
            "episodeCount": self.episode_count,
            "unknown": self.unknown,
        }


# ──────────────────────────────
#  Sources
# ──────────────────────────────
@dataclass
class RawCandidate:
    url: str
    strategy: str                     # id of the strategy that found it
    slot: int = 1                     # positional origin, used for "Server N"


@dataclass
class StreamingSource:
    url: str
    server: str
    quality: Quality = Quality.AUTO
    language: Language = Language.VOSTFR
    transport_type: TransportType = TransportType.EMBEDDABLE
    rank: int = 0
    synthetic: bool = False
    strategy: Optional[str] = None

    def to_dict(self):
        return {
            "url": self.url,
            "server": self.server,
            "quality": self.quality.value,
            "language": self.language.value,
            "type": self.transport_type.value,
            "rank": self.rank,
            "synthetic": self.synthetic,
        }


# ──────────────────────────────
#  Final run output
# ──────────────────────────────
@dataclass
class ExtractionResult:
    sources: list[StreamingSource] = field(default_factory=list)
    strategies_attempted: list[str] = field(default_factory=list)
    strategies_succeeded: list[str] = field(default_factory=list)
    page_url: Optional[str] = None

    @property
    def is_synthetic(self) -> bool:
        return bool(self.sources) and all(s.synthetic for s in self.sources)

    def to_dict(self):
        return {
            "sources": [s.to_dict() for s in self.sources],
            "availableServers": list(dict.fromkeys(s.server for s in self.sources)),
            "strategiesAttempted": self.strategies_attempted,
            "strategiesSucceeded": self.strategies_succeeded,
            "synthetic": self.is_synthetic,
            "url": self.page_url,
        }
