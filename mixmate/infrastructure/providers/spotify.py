import logging
from typing import Any, Dict, List, Optional

import spotipy
from spotipy.oauth2 import SpotifyClientCredentials
from urllib3.exceptions import ReadTimeoutError

from mixmate.domain.entities import AddResult, CandidateSong, ExportPlaylist, Source
from mixmate.domain.errors import NotFound, PermanentFailure, RateLimited, TemporaryFailure
from mixmate.domain.normalization import normalize_spotify_track
from mixmate.crosscutting.config import ConfigError

logger = logging.getLogger(__name__)

PLAYLIST_URL = "https://open.spotify.com/playlist/{playlist_id}"


class SpotifyProvider:
    """Spotify search adapter and export target.

    Credentials are injected: a user access token enables both search and
    export, client credentials alone only allow search.
    """

    source = Source.SPOTIFY.value
    max_batch_size = 100

    def __init__(self,
                 access_token: Optional[str] = None,
                 client_id: Optional[str] = None,
                 client_secret: Optional[str] = None,
                 market: Optional[str] = None,
                 requests_timeout: int = 15,
                 client: Optional[spotipy.Spotify] = None):
        """Initialize Spotify provider.

        Args:
            access_token: Spotify user access token
            client_id: Spotify client ID for the client-credentials flow
            client_secret: Spotify client secret for the client-credentials flow
            market: Optional market code applied to searches
            requests_timeout: HTTP timeout in seconds
            client: Preconfigured spotipy client, mainly for tests
        """
        self.market = market
        self._has_user_token = bool(access_token)

        if client is not None:
            self._client = client
        elif access_token:
            self._client = spotipy.Spotify(auth=access_token, requests_timeout=requests_timeout)
        elif client_id and client_secret:
            auth_manager = SpotifyClientCredentials(client_id=client_id, client_secret=client_secret)
            self._client = spotipy.Spotify(auth_manager=auth_manager, requests_timeout=requests_timeout)
        else:
            raise ConfigError("Spotify needs an access token or a client id and secret")

    def _map_error(self, error: Exception, operation: str) -> Exception:
        """Translate a spotipy/transport error into a domain error."""
        if isinstance(error, ReadTimeoutError):
            return TemporaryFailure(f"Spotify {operation} timed out")

        status = getattr(error, 'http_status', None)
        if status == 429:
            headers = getattr(error, 'headers', None) or {}
            try:
                retry_after = int(headers.get('Retry-After', 1))
            except (TypeError, ValueError):
                retry_after = 1
            return RateLimited(retry_after_ms=retry_after * 1000)
        if status in (401, 403):
            return PermanentFailure(f"Spotify {operation} not authorized: {error}")
        if status == 404:
            return NotFound(f"Spotify {operation}: {error}")
        if status == 400:
            return PermanentFailure(f"Spotify {operation} rejected: {error}")
        return TemporaryFailure(f"Spotify {operation} failed: {error}")

    def search(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """Search Spotify tracks.

        Args:
            query: Free-text query
            limit: Maximum number of tracks (Spotify caps this at 50)

        Returns:
            Raw Spotify track objects
        """
        limit = max(1, min(int(limit), 50))
        logger.debug(f"Searching Spotify: {query} (market={self.market}, limit={limit})")
        try:
            results = self._client.search(query, type='track', limit=limit, market=self.market)
        except Exception as e:
            raise self._map_error(e, "search") from e

        if not results or 'tracks' not in results:
            return []
        return list(results['tracks'].get('items') or [])

    def normalize(self, raw: Dict[str, Any]) -> CandidateSong:
        return normalize_spotify_track(raw)

    def _require_user_token(self, operation: str) -> None:
        if not self._has_user_token:
            raise PermanentFailure(f"Spotify {operation} needs a user access token")

    def get_current_user_id(self) -> str:
        self._require_user_token("profile lookup")
        try:
            return self._client.current_user()['id']
        except Exception as e:
            raise self._map_error(e, "profile lookup") from e

    def create_playlist(self, name: str, description: str = "") -> ExportPlaylist:
        """Create a private playlist for the current user.

        Args:
            name: Playlist name
            description: Playlist description

        Returns:
            ExportPlaylist with its public URL
        """
        user_id = self.get_current_user_id()
        logger.info(f"Creating Spotify playlist: {name}")
        try:
            result = self._client.user_playlist_create(user_id, name, public=False, description=description)
        except Exception as e:
            raise self._map_error(e, "playlist creation") from e

        playlist_id = result['id']
        url = (result.get('external_urls') or {}).get('spotify') or PLAYLIST_URL.format(playlist_id=playlist_id)
        return ExportPlaylist(id=playlist_id, name=result.get('name', name), url=url)

    def add_tracks_batch(self, playlist_id: str, track_uris: List[str]) -> AddResult:
        """Add up to 100 tracks to a playlist.

        Args:
            playlist_id: Target playlist ID
            track_uris: List of track URIs to add

        Returns:
            AddResult with operation statistics
        """
        if not track_uris:
            return AddResult(added=0, errors=0)
        if len(track_uris) > self.max_batch_size:
            raise PermanentFailure(f"Spotify accepts at most {self.max_batch_size} tracks per request")

        self._require_user_token("add tracks")
        try:
            result = self._client.playlist_add_items(playlist_id, track_uris)
        except Exception as e:
            raise self._map_error(e, "add tracks") from e

        if result and 'snapshot_id' in result:
            return AddResult(added=len(track_uris), errors=0)
        logger.error(f"Spotify add tracks returned no snapshot for playlist {playlist_id}")
        return AddResult(added=0, errors=len(track_uris))

    def track_uri(self, platform_id: str) -> str:
        if platform_id.startswith('spotify:track:'):
            return platform_id
        return f"spotify:track:{platform_id}"
