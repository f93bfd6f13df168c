import asyncio

import pytest

from sama_resolver.providers.base import ContentIdentifier, Language
from sama_resolver.providers.cache import TTLCache
from sama_resolver.providers.errors import NotFound, UpstreamUnavailable
from sama_resolver.providers.fallback import FALLBACK_TEMPLATES
from sama_resolver.providers.fetcher import Pacer
from sama_resolver.providers.runner import ResolutionEngine
from sama_resolver.providers.urls import build_candidate_urls
from conftest import BASE, FakeFetcher, eps_array

CAT = f"{BASE}/catalogue/naruto"


def _resolve(settings, fetcher, ident, cache=None):
    engine = ResolutionEngine(settings=settings, fetcher=fetcher, cache=cache)
    return asyncio.run(engine.resolve(ident))


def test_absolute_episode_maps_into_second_season(settings):
    fetcher = FakeFetcher({
        f"{CAT}/": """
            panneauAnime("Saison 1", "saison1/vostfr");
            panneauAnime("Saison 2", "saison2/vostfr");
        """,
        f"{CAT}/saison1/vostfr/": '<script src="episodes.js?filever=1"></script>',
        f"{CAT}/saison1/vostfr/episodes.js?filever=1": eps_array(
            "eps1", [f"https://vidmoly.to/embed-s1e{i}.html" for i in range(1, 13)]),
        f"{CAT}/saison2/vostfr/": '<script src="episodes.js?filever=2"></script>',
        f"{CAT}/saison2/vostfr/episodes.js?filever=2": eps_array(
            "eps1", [f"https://vidmoly.to/embed-s2e{i}.html" for i in range(1, 14)]),
    })
    result = _resolve(settings, fetcher, ContentIdentifier("naruto", episode_number=15))

    assert result.sources[0].url == "https://vidmoly.to/embed-s2e3.html"
    assert f"{CAT}/saison2/vostfr/episode-3" in fetcher.calls
    assert f"{CAT}/saison2/vostfr/episode-15" not in fetcher.calls
    assert result.sources[0].server == "Vidmoly"
    assert result.page_url == f"{CAT}/saison2/vostfr/"
    assert result.strategies_succeeded == ["script-array"]
    assert not result.is_synthetic


def test_stops_at_first_candidate_with_sources(settings):
    first = f"{CAT}/saison1/vf/episode-1"
    fetcher = FakeFetcher(
        {first: '<iframe src="https://video.sibnet.ru/shell.php?videoid=5"></iframe>'},
        default='<iframe src="https://vidmoly.to/embed-other.html"></iframe>',
    )
    ident = ContentIdentifier("naruto", section_path="saison1", episode_number=1, language=Language.VF)
    result = _resolve(settings, fetcher, ident)

    assert fetcher.calls == [first]
    assert [s.url for s in result.sources] == ["https://video.sibnet.ru/shell.php?videoid=5"]
    assert result.sources[0].language == Language.VF
    assert result.sources[0].rank == 1


def test_missing_candidates_are_skipped(settings):
    fetcher = FakeFetcher({
        f"{CAT}/saison1/vostfr/episode-2": "<h1>Page introuvable</h1>",
        f"{CAT}/saison1/vostfr/": '<a class="server" href="https://sendvid.com/embed/ep2">Lecteur</a>',
    })
    ident = ContentIdentifier("naruto", section_path="saison1", episode_number=2)
    result = _resolve(settings, fetcher, ident)
    assert [s.server for s in result.sources] == ["SendVid"]
    assert result.strategies_succeeded == ["interactive"]


def test_duplicate_urls_across_strategies_collapse(settings):
    page = """
        <iframe src="https://vidmoly.to/embed-abc.html"></iframe>
        <script>var player = "https://vidmoly.to/embed-abc.html";</script>
        <iframe src="https://adsystem.example/banner"></iframe>
    """
    ident = ContentIdentifier("naruto", section_path="saison1", episode_number=1)
    result = _resolve(settings, FakeFetcher(default=page), ident)
    assert [(s.url, s.rank, s.strategy) for s in result.sources] == [
        ("https://vidmoly.to/embed-abc.html", 1, "inline-embed")]


def test_nothing_extractable_yields_exactly_the_fallback_set(settings):
    fetcher = FakeFetcher(default="<html><body>Aucun lecteur</body></html>")
    ident = ContentIdentifier("naruto", section_path="saison1", episode_number=2)
    result = _resolve(settings, fetcher, ident)

    assert fetcher.calls == build_candidate_urls(ident, base_url=BASE)
    assert [s.url for s in result.sources] == [
        template.format(slug="naruto-2") for _, template, _ in FALLBACK_TEMPLATES]
    assert all(s.synthetic for s in result.sources)
    assert [s.rank for s in result.sources] == [1, 2, 3]
    assert result.is_synthetic
    assert result.strategies_succeeded == []


def test_malformed_script_falls_through_to_other_strategies(settings):
    fetcher = FakeFetcher({
        f"{CAT}/saison1/vostfr/episode-1": """
            <script src="episodes.js?filever=3"></script>
            <iframe src="https://sendvid.com/embed/abc"></iframe>
        """,
        f"{CAT}/saison1/vostfr/episodes.js?filever=3": "var eps1 = ['https://vidmoly.to/x.html'",
    })
    ident = ContentIdentifier("naruto", section_path="saison1", episode_number=1)
    result = _resolve(settings, fetcher, ident)
    assert [s.url for s in result.sources] == ["https://sendvid.com/embed/abc"]
    assert result.strategies_attempted == ["script-array", "inline-embed", "free-text", "interactive"]


def test_no_reachable_page_is_not_found(settings):
    ident = ContentIdentifier("naruto", section_path="saison1", episode_number=1)
    with pytest.raises(NotFound):
        _resolve(settings, FakeFetcher(), ident)
    with pytest.raises(NotFound):
        _resolve(settings, FakeFetcher(default="<title>404 Not Found</title>"), ident)


def test_transport_failures_are_upstream_unavailable(settings):
    with pytest.raises(UpstreamUnavailable):
        _resolve(settings, FakeFetcher(down=True), ContentIdentifier("naruto", episode_number=4))


def test_structure_is_cached_between_resolutions(settings):
    landing = f"{CAT}/"
    fetcher = FakeFetcher(
        {landing: 'panneauAnime("Saison 1", "saison1/vostfr");'},
        default='<iframe src="https://vidmoly.to/embed-abc.html"></iframe>',
    )
    engine = ResolutionEngine(settings=settings, fetcher=fetcher, cache=TTLCache())
    asyncio.run(engine.resolve(ContentIdentifier("naruto", episode_number=1)))
    asyncio.run(engine.resolve(ContentIdentifier("naruto", episode_number=2)))
    assert fetcher.calls.count(landing) == 1


def test_configured_strategy_order(settings):
    settings.strategy_order = ["inline-embed", "interactive"]
    engine = ResolutionEngine(settings=settings, fetcher=FakeFetcher())
    assert [s["id"] for s in engine.list_strategies()] == ["inline-embed", "interactive"]


def test_one_pacer_spans_structure_and_candidates(settings, monkeypatch):
    created = []

    def pacer(self):
        created.append(Pacer(0, 0))
        return created[-1]

    monkeypatch.setattr(ResolutionEngine, "_pacer", pacer)
    fetcher = FakeFetcher(
        {f"{CAT}/": 'panneauAnime("Saison 1", "saison1/vostfr");'},
        default='<iframe src="https://vidmoly.to/embed-abc.html"></iframe>',
    )
    _resolve(settings, fetcher, ContentIdentifier("naruto", episode_number=1))
    assert len(created) == 1
    assert created[0]._calls == len(fetcher.calls)
