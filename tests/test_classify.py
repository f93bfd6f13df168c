from sama_resolver.providers.base import Language, Quality, RawCandidate, TransportType
from sama_resolver.providers.classify import (
    classify, classify_all, is_acceptable, normalize_url,
)


def _raw(url, slot=1, strategy="inline-embed"):
    return RawCandidate(url=url, strategy=strategy, slot=slot)


def test_ad_sibnet_and_scheme_relative_vidmoly():
    """Tracker rejected; Sibnet accepted; scheme-relative Vidmoly normalized."""
    ad = classify(_raw("https://adsystem.example/x"), Language.VF)
    sibnet = classify(_raw("https://sibnet.ru/shell.php?videoid=1"), Language.VF)
    vidmoly = classify(_raw("//vidmoly.to/embed-abc.html"), Language.VF)

    assert ad is None
    assert sibnet.server == "Sibnet"
    assert sibnet.transport_type == TransportType.EMBEDDABLE
    assert vidmoly.url == "https://vidmoly.to/embed-abc.html"
    assert vidmoly.server == "Vidmoly"
    assert vidmoly.transport_type == TransportType.EMBEDDABLE


def test_language_comes_from_request():
    source = classify(_raw("https://vidmoly.to/embed-abc.html"), Language.VOSTFR)
    assert source.language == Language.VOSTFR


def test_normalize_bare_host():
    assert normalize_url("vidmoly.to/embed-x.html") == "https://vidmoly.to/embed-x.html"
    assert normalize_url("https:\\/\\/sendvid.com\\/embed\\/abc") == "https://sendvid.com/embed/abc"
    assert normalize_url("/catalogue/naruto/") == "/catalogue/naruto/"


def test_gate_rejects_schemes_placeholders_and_unknown_hosts():
    assert not is_acceptable("javascript:void(0)")
    assert not is_acceptable("data:text/html,hello")
    assert not is_acceptable("https://anime-sama.fr/streaming/naruto-1")
    assert not is_acceptable("https://example.com/watch/123")
    assert not is_acceptable("https://ads.vidmoly.to/embed-x.html")
    assert not is_acceptable("https://www.googletagmanager.com/gtm.js")


def test_gate_accepts_subdomains_and_media_files():
    assert is_acceptable("https://video.sibnet.ru/shell.php?videoid=42")
    assert is_acceptable("https://cdn.example.net/ep1/master.m3u8")
    assert is_acceptable("https://cdn.example.net/ep1.mp4?token=abc")


def test_gate_is_idempotent():
    urls = [
        "https://adsystem.example/x",
        "https://sibnet.ru/shell.php?videoid=1",
        "//vidmoly.to/embed-abc.html",
        "https://cdn.example.net/a.webm",
        "https://example.com/page",
    ]
    once = classify_all([_raw(u) for u in urls], Language.VF)
    twice = classify_all([_raw(s.url) for s in once], Language.VF)
    assert [s.url for s in twice] == [s.url for s in once]
    assert len(once) == 3


def test_quality_tokens_then_server_default():
    assert classify(_raw("https://cdn.example.net/ep1_1080p.mp4"), Language.VF).quality == Quality.FHD
    assert classify(_raw("https://cdn.example.net/ep1-720.mp4"), Language.VF).quality == Quality.HD
    assert classify(_raw("https://cdn.example.net/480/ep1.mp4"), Language.VF).quality == Quality.SD
    assert classify(_raw("https://video.sibnet.ru/shell.php?videoid=9"), Language.VF).quality == Quality.SD
    assert classify(_raw("https://vidmoly.to/embed-x.html"), Language.VF).quality == Quality.HD
    assert classify(_raw("https://cdn.example.net/ep1.mp4"), Language.VF).quality == Quality.AUTO


def test_quality_ignores_longer_numbers():
    source = classify(_raw("https://video.sibnet.ru/shell.php?videoid=4108012"), Language.VF)
    assert source.quality == Quality.SD


def test_direct_files_and_positional_names():
    source = classify(_raw("https://cdn.example.net/ep1.m3u8", slot=3), Language.VF)
    assert source.transport_type == TransportType.DIRECT_FILE
    assert source.server == "Server 3"
