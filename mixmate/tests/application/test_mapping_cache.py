import json

from mixmate.application.mapping_cache import FileMappingCache, MappingCache
from mixmate.application.merging import build_merge_key
from mixmate.domain.entities import UnifiedSong

from conftest import candidate


def song(title="Imagine", artist="John Lennon", isrc=None):
    return UnifiedSong(id="song_1", title=title, artist=artist, source="youtube", isrc=isrc)


def test_song_key_prefers_isrc():
    assert build_merge_key(song(isrc=" gbum71029602 ")) == "isrc:GBUM71029602"
    assert build_merge_key(song()) == "text:imagine|john lennon"


def test_put_and_get_by_platform():
    cache = MappingCache()
    cache.put(song(), "spotify", "sp1", 0.92)

    mapping = cache.get(song(title="IMAGINE"), "spotify")

    assert mapping.platform_id == "sp1"
    assert mapping.confidence == 0.92
    assert cache.get(song(), "youtube") is None
    assert len(cache) == 1


def test_file_cache_persists_between_instances(tmp_path):
    path = str(tmp_path / "cache" / "mappings.json")

    FileMappingCache(path).put(song(), "spotify", "sp1", 0.81)
    reloaded = FileMappingCache(path)

    assert reloaded.get(song(), "spotify").platform_id == "sp1"
    with open(path) as f:
        assert "text:imagine|john lennon" in json.load(f)


def test_file_cache_ignores_unreadable_file(tmp_path):
    path = tmp_path / "mappings.json"
    path.write_text("{not json")

    cache = FileMappingCache(str(path))

    assert len(cache) == 0


def test_cache_key_matches_candidate_merge_key():
    found = candidate("sp1", "Imagine", "John Lennon")
    cache = MappingCache()
    cache.put(song(), "spotify", "sp1", 0.9)

    assert build_merge_key(found) == build_merge_key(song())
    assert cache.get(song(title="imagine!"), "spotify").platform_id == "sp1"
