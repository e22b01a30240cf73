"""End-to-end flows through the real providers with mocked HTTP clients."""
from unittest.mock import Mock

from mixmate.application.export import PlaylistExporter
from mixmate.application.matching import CrossPlatformResolver, adapter_search
from mixmate.application.search import SearchAggregator
from mixmate.crosscutting.metrics import MetricsCollector
from mixmate.domain.entities import PlatformRef, UnifiedSong
from mixmate.infrastructure.providers.spotify import SpotifyProvider
from mixmate.infrastructure.providers.youtube import YouTubeProvider

from conftest import spotify_track, youtube_video


def youtube_session(items):
    response = Mock()
    response.status_code = 200
    response.headers = {}
    response.json.return_value = {'items': items}
    session = Mock()
    session.get.return_value = response
    return session


def test_search_unifies_same_song_from_both_platforms():
    spotify_client = Mock()
    spotify_client.search.return_value = {'tracks': {'items': [
        spotify_track("4ahN7fE", "Imagine - Remastered 2010", "John Lennon", album="Imagine", popularity=81),
    ]}}
    session = youtube_session([
        youtube_video("YkgkThdzX-8", "John Lennon - Imagine - Remastered 2010 (Official Audio)", "John Lennon"),
    ])
    aggregator = SearchAggregator([
        SpotifyProvider(access_token="token", client=spotify_client),
        YouTubeProvider(api_key="key", session=session),
    ])

    result = aggregator.search_songs("Imagine John Lennon")

    assert result.total == 1
    [song] = result.songs
    assert song.spotify_id == "4ahN7fE"
    assert song.youtube_id == "YkgkThdzX-8"
    # Title comes from the first source
    assert song.title == "Imagine - Remastered 2010"
    assert song.album == "Imagine"
    assert song.source == "combined"


def test_one_platform_down_still_returns_results():
    spotify_client = Mock()
    spotify_client.search.side_effect = ConnectionError("network down")
    session = youtube_session([youtube_video("yt1", "Queen - Bohemian Rhapsody (Official Video)", "Queen Official")])
    metrics = MetricsCollector()
    aggregator = SearchAggregator([
        SpotifyProvider(access_token="token", client=spotify_client),
        YouTubeProvider(api_key="key", session=session),
    ], metrics=metrics)

    result = aggregator.search_songs("bohemian rhapsody")

    assert [(s.title, s.artist) for s in result.songs] == [("Bohemian Rhapsody", "Queen")]
    assert result.sources["youtube"] == "ok"
    assert result.sources["spotify"] != "ok"
    assert metrics.searches[0].failed_sources == ["spotify"]


def test_export_three_songs_two_found():
    spotify_client = Mock()
    catalog = {
        "Imagine John Lennon": [spotify_track("sp-imagine", "Imagine", "John Lennon")],
        "Bohemian Rhapsody Queen": [spotify_track("sp-bohemian", "Bohemian Rhapsody", "Queen")],
    }
    spotify_client.search.side_effect = lambda q, **kwargs: {'tracks': {'items': catalog.get(q, [])}}
    spotify_client.current_user.return_value = {'id': 'user1'}
    spotify_client.user_playlist_create.return_value = {
        'id': 'pl1', 'name': 'Favourites', 'external_urls': {'spotify': 'https://open.spotify.com/playlist/pl1'},
    }
    spotify_client.playlist_add_items.return_value = {'snapshot_id': 'snap1'}
    provider = SpotifyProvider(access_token="token", client=spotify_client)
    exporter = PlaylistExporter(provider, CrossPlatformResolver(adapter_search(provider)))

    songs = [
        UnifiedSong(id=f"s{i}", title=title, artist=artist, source="youtube",
                    platforms={"youtube": PlatformRef(source_id=f"yt{i}")})
        for i, (title, artist) in enumerate([
            ("Imagine", "John Lennon"),
            ("Bohemian Rhapsody", "Queen"),
            ("Basement Jam 2003", "Local Garage Band"),
        ])
    ]

    result = exporter.export_playlist("Favourites", songs)

    assert result.success
    assert result.matched == 2
    assert result.unmatched == ["Basement Jam 2003 - Local Garage Band"]
    assert result.message == "Exported 2 songs to Spotify. 1 song could not be found."
    spotify_client.playlist_add_items.assert_called_once_with(
        'pl1', ['spotify:track:sp-imagine', 'spotify:track:sp-bohemian']
    )


def test_export_survives_mistyped_search_result():
    odd = spotify_track("sp-imagine", "Imagine", "John Lennon")
    odd['external_urls'] = "https://x"
    odd['album'] = "Imagine"
    spotify_client = Mock()
    spotify_client.search.return_value = {'tracks': {'items': [odd]}}
    spotify_client.current_user.return_value = {'id': 'user1'}
    spotify_client.user_playlist_create.return_value = {
        'id': 'pl1', 'name': 'Mix', 'external_urls': {'spotify': 'https://open.spotify.com/playlist/pl1'},
    }
    spotify_client.playlist_add_items.return_value = {'snapshot_id': 'snap1'}
    provider = SpotifyProvider(access_token="token", client=spotify_client)
    exporter = PlaylistExporter(provider, CrossPlatformResolver(adapter_search(provider)))
    song = UnifiedSong(id="s1", title="Imagine", artist="John Lennon", source="youtube",
                       platforms={"youtube": PlatformRef(source_id="yt1")})

    result = exporter.export_playlist("Mix", [song])

    assert result.success
    assert result.matched == 1
    spotify_client.playlist_add_items.assert_called_once_with('pl1', ['spotify:track:sp-imagine'])
