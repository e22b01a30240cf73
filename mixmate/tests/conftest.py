import os
import sys
from typing import Any, Dict, List, Optional

import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()

from mixmate.domain.entities import AddResult, CandidateSong, ExportPlaylist  # noqa: E402


_ENV_KEYS = [
    'SPOTIFY_CLIENT_ID', 'SPOTIFY_CLIENT_SECRET', 'SPOTIFY_ACCESS_TOKEN',
    'YOUTUBE_API_KEY', 'MIXMATE_SEARCH_LIMIT', 'MIXMATE_SEARCH_TIMEOUT',
    'MIXMATE_MATCH_THRESHOLD', 'MIXMATE_MARKET', 'MIXMATE_MAPPING_CACHE',
]


@pytest.fixture(autouse=True)
def _clear_credentials_env():
    """Ensure credentials from a developer's shell or .env never leak into tests."""
    backup = {k: os.environ.get(k) for k in _ENV_KEYS}
    for k in _ENV_KEYS:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


def spotify_track(track_id: str, name: str, artist: str, album: Optional[str] = "Album",
                  isrc: Optional[str] = None, popularity: Optional[int] = 50,
                  duration_ms: int = 180000) -> Dict[str, Any]:
    """Raw Spotify track object as returned by the search API."""
    track = {
        'id': track_id,
        'name': name,
        'uri': f'spotify:track:{track_id}',
        'artists': [{'name': artist}],
        'album': {
            'name': album,
            'images': [{'url': f'https://i.scdn.co/image/{track_id}'}],
            'release_date': '1971-09-09',
        },
        'duration_ms': duration_ms,
        'popularity': popularity,
        'preview_url': f'https://p.scdn.co/mp3-preview/{track_id}',
        'external_urls': {'spotify': f'https://open.spotify.com/track/{track_id}'},
        'external_ids': {'isrc': isrc} if isrc else {},
    }
    return track


def youtube_video(video_id: str, title: str, channel: str = "Some Channel") -> Dict[str, Any]:
    """Raw YouTube search item."""
    return {
        'id': {'kind': 'youtube#video', 'videoId': video_id},
        'snippet': {
            'title': title,
            'channelTitle': channel,
            'publishedAt': '2009-10-25T06:57:33Z',
            'thumbnails': {'high': {'url': f'https://i.ytimg.com/vi/{video_id}/hqdefault.jpg'}},
        },
    }


def candidate(source_id: str, title: str, artist: str, source: str = 'spotify',
              **kwargs) -> CandidateSong:
    return CandidateSong(source_id=source_id, source=source, title=title, artist=artist, **kwargs)


class FakeAdapter:
    """In-memory search adapter returning already-normalized candidates."""

    def __init__(self, source: str, results: Optional[List[CandidateSong]] = None,
                 error: Optional[Exception] = None):
        self.source = source
        self.results = results or []
        self.error = error
        self.calls = []

    def search(self, query: str, limit: int):
        self.calls.append((query, limit))
        if self.error:
            raise self.error
        return list(self.results[:limit])

    def normalize(self, raw):
        return raw


@pytest.fixture
def make_candidate():
    return candidate


class FakeTarget:
    """In-memory export target recording every call."""

    source = 'spotify'
    max_batch_size = 100

    def __init__(self, add_errors: Optional[List[Optional[Exception]]] = None,
                 create_error: Optional[Exception] = None):
        self.add_errors = list(add_errors or [])
        self.create_error = create_error
        self.created = []
        self.batches = []

    def create_playlist(self, name: str, description: str = ''):
        if self.create_error:
            raise self.create_error
        self.created.append((name, description))
        return ExportPlaylist(id='pl1', name=name, url='https://open.spotify.com/playlist/pl1')

    def add_tracks_batch(self, playlist_id: str, track_uris: List[str]):
        self.batches.append(list(track_uris))
        if self.add_errors:
            error = self.add_errors.pop(0)
            if error:
                raise error
        return AddResult(added=len(track_uris), errors=0)

    def track_uri(self, platform_id: str) -> str:
        return f'spotify:track:{platform_id}'
