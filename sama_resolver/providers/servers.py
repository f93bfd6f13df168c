"""
Known streaming servers: the hostname allow-list and the identity table.

Each server is a small class registered with @register_server. A URL belongs
to a server when its hostname equals, or is a subdomain of, one of `hosts`.
"""
from __future__ import annotations
from typing import Optional
from urllib.parse import urlparse

from .base import Quality


class _Server:
    id: str
    name: str
    hosts: tuple[str, ...]
    default_quality: Quality = Quality.AUTO

    def matches(self, hostname: str) -> bool:
        return any(hostname == h or hostname.endswith("." + h) for h in self.hosts)


_SERVERS: list[_Server] = []


def register_server(server):
    """Decorator to register a server class."""
    global _SERVERS
    _SERVERS = [s for s in _SERVERS if s.id != server.id]
    _SERVERS.append(server())
    return server


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def identify(url: str) -> Optional[_Server]:
    host = _hostname(url)
    if not host:
        return None
    for server in _SERVERS:
        if server.matches(host):
            return server
    return None


def is_known_host(url: str) -> bool:
    return identify(url) is not None


# ──────────────────────────────
#  Table
# ──────────────────────────────
@register_server
class Sibnet(_Server):
    id = "sibnet"
    name = "Sibnet"
    hosts = ("sibnet.ru",)
    default_quality = Quality.SD


@register_server
class Vidmoly(_Server):
    id = "vidmoly"
    name = "Vidmoly"
    hosts = ("vidmoly.to", "vidmoly.net", "vidmoly.me")
    default_quality = Quality.HD


@register_server
class SendVid(_Server):
    id = "sendvid"
    name = "SendVid"
    hosts = ("sendvid.com",)
    default_quality = Quality.HD


@register_server
class VK(_Server):
    id = "vk"
    name = "VK"
    hosts = ("vk.com", "vkvideo.ru")


@register_server
class DoodStream(_Server):
    id = "doodstream"
    name = "DoodStream"
    hosts = ("doodstream.com", "dood.la", "dood.wf", "dood.so", "d0000d.com")


@register_server
class MixDrop(_Server):
    id = "mixdrop"
    name = "MixDrop"
    hosts = ("mixdrop.co", "mixdrop.ag", "mixdrop.to")


@register_server
class StreamTape(_Server):
    id = "streamtape"
    name = "StreamTape"
    hosts = ("streamtape.com", "streamtape.to")


@register_server
class UqLoad(_Server):
    id = "uqload"
    name = "UqLoad"
    hosts = ("uqload.com", "uqload.co", "uqload.io")


@register_server
class Streamlare(_Server):
    id = "streamlare"
    name = "Streamlare"
    hosts = ("streamlare.com",)


@register_server
class MyStream(_Server):
    id = "mystream"
    name = "MyStream"
    hosts = ("mystream.to",)


@register_server
class UptoStream(_Server):
    id = "uptostream"
    name = "UptoStream"
    hosts = ("uptostream.com",)


@register_server
class SmoothPre(_Server):
    id = "smoothpre"
    name = "SmoothPre"
    hosts = ("smoothpre.com",)


@register_server
class StreamHide(_Server):
    id = "streamhide"
    name = "StreamHide"
    hosts = ("streamhide.to",)


@register_server
class Lpayer(_Server):
    id = "lpayer"
    name = "Lpayer"
    hosts = ("lpayer.embed4me.com", "embed4me.com")
