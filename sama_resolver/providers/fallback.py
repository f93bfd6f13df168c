"""
Placeholder sources for when nothing real was extracted.

The URLs are guessed from the identifier and are NOT verified to exist. Every
record is flagged synthetic=True and ranked after any real source would be.
"""
from __future__ import annotations

from .base import ContentIdentifier, Quality, StreamingSource, TransportType

FALLBACK_TEMPLATES = [
    ("Vidmoly", "https://vidmoly.to/embed/{slug}", Quality.HD),
    ("SendVid", "https://sendvid.com/embed/{slug}", Quality.HD),
    ("Sibnet", "https://video.sibnet.ru/shell.php?videoid={slug}", Quality.SD),
]


def synthesize(identifier: ContentIdentifier) -> list[StreamingSource]:
    slug = f"{identifier.anime_id}-{identifier.episode_number or 1}"
    return [
        StreamingSource(
            url=template.format(slug=slug),
            server=server,
            quality=quality,
            language=identifier.language,
            transport_type=TransportType.EMBEDDABLE,
            rank=i,
            synthetic=True,
            strategy="fallback",
        )
        for i, (server, template, quality) in enumerate(FALLBACK_TEMPLATES, start=1)
    ]
