import threading
from unittest.mock import Mock

from mixmate.application.search import STATUS_OK, SearchAggregator
from mixmate.crosscutting.metrics import MetricsCollector
from mixmate.domain.errors import TemporaryFailure
from mixmate.infrastructure.providers.spotify import SpotifyProvider

from conftest import FakeAdapter, candidate, spotify_track


class BlockingAdapter(FakeAdapter):
    """Adapter that never answers until released."""

    def __init__(self, source):
        super().__init__(source)
        self.release = threading.Event()

    def search(self, query, limit):
        self.calls.append((query, limit))
        self.release.wait(5)
        return []


def lennon(source, source_id, **kwargs):
    return candidate(source_id, "Imagine", "John Lennon", source=source, isrc="GBUM71029602", **kwargs)


def test_merges_matching_results_from_both_platforms():
    spotify = FakeAdapter("spotify", [lennon("spotify", "sp1", popularity=80)])
    youtube = FakeAdapter("youtube", [lennon("youtube", "yt1")])

    result = SearchAggregator([spotify, youtube]).search_songs("Imagine", limit=10)

    assert result.total == 1
    assert not result.has_more
    [song] = result.songs
    assert song.spotify_id == "sp1"
    assert song.youtube_id == "yt1"
    assert song.source == "combined"
    assert result.sources == {"spotify": STATUS_OK, "youtube": STATUS_OK}


def test_splits_limit_across_sources():
    spotify = FakeAdapter("spotify")
    youtube = FakeAdapter("youtube")

    SearchAggregator([spotify, youtube]).search_songs("  imagine  ", limit=5)

    assert spotify.calls == [("imagine", 3)]
    assert youtube.calls == [("imagine", 3)]


def test_failed_source_is_reported_and_others_still_returned():
    spotify = FakeAdapter("spotify", error=TemporaryFailure("503"))
    youtube = FakeAdapter("youtube", [candidate("yt1", "Imagine", "John Lennon", source="youtube")])

    result = SearchAggregator([spotify, youtube]).search_songs("Imagine")

    assert [s.youtube_id for s in result.songs] == ["yt1"]
    assert result.sources["youtube"] == STATUS_OK
    assert "TemporaryFailure" in result.sources["spotify"]


def test_slow_source_is_abandoned_after_timeout():
    slow = BlockingAdapter("spotify")
    fast = FakeAdapter("youtube", [candidate("yt1", "Imagine", "John Lennon", source="youtube")])
    try:
        result = SearchAggregator([slow, fast], timeout_sec=0.1).search_songs("Imagine")
    finally:
        slow.release.set()

    assert [s.youtube_id for s in result.songs] == ["yt1"]
    assert "TimeoutError" in result.sources["spotify"]


def test_all_sources_failing_yields_empty_result():
    adapters = [FakeAdapter("spotify", error=RuntimeError("x")), FakeAdapter("youtube", error=RuntimeError("y"))]

    result = SearchAggregator(adapters).search_songs("Imagine")

    assert result.songs == []
    assert result.total == 0
    assert set(result.sources) == {"spotify", "youtube"}


def test_truncates_to_limit_and_reports_has_more():
    spotify = FakeAdapter("spotify", [candidate(f"sp{i}", f"Song {i}", "Artist", popularity=i) for i in range(5)])
    youtube = FakeAdapter("youtube", [candidate(f"yt{i}", f"Tune {i}", "Band", source="youtube") for i in range(5)])

    result = SearchAggregator([spotify, youtube]).search_songs("song", limit=3)

    # Two per source
    assert result.total == 4
    assert result.has_more
    assert [s.spotify_id for s in result.songs[:2]] == ["sp1", "sp0"]
    assert result.songs[2].youtube_id == "yt0"


def test_empty_query_or_bad_limit_returns_empty_without_searching():
    adapter = FakeAdapter("spotify", [candidate("sp1", "Imagine", "John Lennon")])
    aggregator = SearchAggregator([adapter])

    assert aggregator.search_songs("   ").total == 0
    assert aggregator.search_songs("Imagine", limit=0).total == 0
    assert adapter.calls == []


def test_no_adapters_returns_empty():
    assert SearchAggregator([]).search_songs("Imagine").songs == []


def test_records_search_metrics():
    metrics = MetricsCollector()
    adapters = [
        FakeAdapter("spotify", [lennon("spotify", "sp1"), candidate("sp2", "Other", "Artist")]),
        FakeAdapter("youtube", error=RuntimeError("down")),
    ]

    SearchAggregator(adapters, metrics=metrics).search_songs("Imagine")

    [recorded] = metrics.searches
    assert recorded.query == "Imagine"
    assert recorded.results_by_source == {"spotify": 2, "youtube": 0}
    assert recorded.failed_sources == ["youtube"]
    assert recorded.candidate_count == 2
    assert recorded.merged_count == 2


def test_mistyped_record_does_not_drop_platform_results():
    odd = spotify_track("sp2", "Imagine", "John Lennon")
    odd['album'] = "Just a string"
    client = Mock()
    client.search.return_value = {'tracks': {'items': [spotify_track("sp1", "Jealous Guy", "John Lennon"), odd]}}
    youtube = FakeAdapter("youtube", [candidate("yt1", "Imagine", "John Lennon", source="youtube")])

    result = SearchAggregator([SpotifyProvider(access_token="token", client=client), youtube]).search_songs(
        "John Lennon", limit=10
    )

    assert result.sources == {"spotify": STATUS_OK, "youtube": STATUS_OK}
    spotify_ids = {s.spotify_id for s in result.songs}
    assert spotify_ids == {"sp1", "sp2"}
