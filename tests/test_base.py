import pytest

from sama_resolver.providers.base import (
    ContentIdentifier, ExtractionResult, Language, SectionDescriptor, StreamingSource,
)


@pytest.mark.parametrize("episode_id, expected", [
    ("naruto-episode-3-vf", ("naruto", 3, Language.VF)),
    ("one-piece-ep12", ("one-piece", 12, Language.VOSTFR)),
    ("naruto-shippuden-5-vostfr", ("naruto-shippuden", 5, Language.VOSTFR)),
    ("naruto-3", ("naruto", 3, Language.VOSTFR)),
    ("one-piece", ("one-piece", 1, Language.VOSTFR)),
])
def test_episode_id_formats(episode_id, expected):
    ident = ContentIdentifier.from_episode_id(episode_id)
    assert (ident.anime_id, ident.episode_number, ident.language) == expected


def test_identifier_normalizes_section_and_language():
    ident = ContentIdentifier("naruto", section_path="/saison1/vostfr/", language="vf")
    assert ident.section_path == "saison1"
    assert ident.language == Language.VF
    assert ident.cache_key == "naruto:saison1:-:vf"


def test_identifier_rejects_bad_values():
    with pytest.raises(ValueError):
        ContentIdentifier("")
    with pytest.raises(ValueError):
        ContentIdentifier("naruto", episode_number=0)


def test_unknown_language_defaults_to_vostfr():
    assert Language.parse("fr") == Language.VOSTFR
    assert Language.parse(None) == Language.VOSTFR
    assert Language.parse(" Vf ") == Language.VF


def test_section_count_cannot_be_negative():
    with pytest.raises(ValueError):
        SectionDescriptor(number=1, name="Saison 1", path="saison1", episode_count=-1)


def test_result_serialization_marks_synthetic():
    result = ExtractionResult(sources=[
        StreamingSource(url="https://vidmoly.to/embed/x-1", server="Vidmoly", rank=1, synthetic=True),
        StreamingSource(url="https://sendvid.com/embed/x-1", server="SendVid", rank=2, synthetic=True),
    ])
    data = result.to_dict()
    assert data["synthetic"] is True
    assert data["availableServers"] == ["Vidmoly", "SendVid"]
    assert data["sources"][0]["type"] == "embeddable"
    assert data["sources"][0]["quality"] == "Auto"
    assert ExtractionResult().is_synthetic is False
