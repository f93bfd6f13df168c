"""
Normalizer / classifier: raw candidate URL -> typed StreamingSource or reject.

Rules run in order and the first decision wins:
  validity gate -> server identity -> quality -> transport type -> language
"""
from __future__ import annotations
import html
import re
from typing import Optional
from urllib.parse import urlparse

from .base import Language, Quality, RawCandidate, StreamingSource, TransportType
from . import servers

MEDIA_EXTENSIONS = (".mp4", ".m3u8", ".webm", ".mkv")

# Tracker / ad fragments, matched anywhere in the lowercased URL
DENY_SUBSTRINGS = (
    "googletagmanager", "google-analytics", "doubleclick", "googlesyndication",
    "facebook.com/tr", "aclib", "popunder", "adsystem", "amazon-adsystem",
    "adskeeper", "propellerads", "popcash", "adnxs", "adsrvr", "outbrain",
    "taboola", "advertising", "advertisement",
)
# Host labels that mark an ad / tracking host (ads.example.com, pop-up.cdn.net)
DENY_HOST_LABELS = {"ad", "ads", "adserver", "banner", "popup", "pop", "tracking",
                    "tracker", "analytics", "stats", "pixel"}
ALLOWED_SCHEMES = ("http", "https")
# The origin's own /streaming/ pages are placeholders, not players
ORIGIN_HOST_MARKER = "anime-sama"
ORIGIN_PLACEHOLDER_PATH = "/streaming/"

_BARE_HOST_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?(?:\.[a-z0-9-]+)*\.[a-z]{2,}(?:[/:?#]|$)", re.I)
_QUALITY_TOKENS = (
    (re.compile(r"(?<!\d)1080(?!\d)"), Quality.FHD),
    (re.compile(r"(?<!\d)720(?!\d)"), Quality.HD),
    (re.compile(r"(?<!\d)480(?!\d)"), Quality.SD),
)


def normalize_url(raw: str) -> str:
    """Force scheme-relative and bare-host URLs to absolute https:// form."""
    url = html.unescape((raw or "").strip()).replace("\\/", "/")
    if url.startswith("//"):
        return f"https:{url}"
    if "://" not in url and not url.startswith("/") and _BARE_HOST_RE.match(url):
        return f"https://{url}"
    return url


def is_media_file(url: str) -> bool:
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False
    return path.endswith(MEDIA_EXTENSIONS)


def is_denied(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return True
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        return True
    lowered = url.lower()
    if any(token in lowered for token in DENY_SUBSTRINGS):
        return True
    host = parsed.hostname.lower()
    labels = set(re.split(r"[.-]", host))
    if labels & DENY_HOST_LABELS:
        return True
    if ORIGIN_HOST_MARKER in host and parsed.path.lower().startswith(ORIGIN_PLACEHOLDER_PATH):
        return True
    return False


def is_allowed(url: str) -> bool:
    return servers.is_known_host(url) or is_media_file(url)


def is_acceptable(url: str) -> bool:
    """Validity gate on an already-normalized URL."""
    return not is_denied(url) and is_allowed(url)


def detect_quality(url: str, default: Quality = Quality.AUTO) -> Quality:
    for regex, quality in _QUALITY_TOKENS:
        if regex.search(url):
            return quality
    return default


def classify(candidate: RawCandidate, language: Language) -> Optional[StreamingSource]:
    url = normalize_url(candidate.url)
    if not is_acceptable(url):
        return None

    server = servers.identify(url)
    name = server.name if server else f"Server {candidate.slot}"
    default_quality = server.default_quality if server else Quality.AUTO

    return StreamingSource(
        url=url,
        server=name,
        quality=detect_quality(url, default_quality),
        language=Language.parse(language),
        transport_type=TransportType.DIRECT_FILE if is_media_file(url) else TransportType.EMBEDDABLE,
        strategy=candidate.strategy,
    )


def classify_all(candidates: list[RawCandidate], language: Language) -> list[StreamingSource]:
    out = []
    for c in candidates:
        source = classify(c, language)
        if source is not None:
            out.append(source)
    return out
