import logging
from typing import Any, Dict, List, Optional

import requests

from mixmate.crosscutting.config import ConfigError
from mixmate.domain.entities import CandidateSong, Source
from mixmate.domain.errors import PermanentFailure, RateLimited, TemporaryFailure
from mixmate.domain.normalization import normalize_youtube_video

logger = logging.getLogger(__name__)

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"


class YouTubeProvider:
    """YouTube Data API search adapter."""

    source = Source.YOUTUBE.value

    def __init__(self,
                 api_key: str,
                 session: Optional[requests.Session] = None,
                 timeout_sec: float = 10.0,
                 query_suffix: str = " music"):
        """Initialize YouTube provider.

        Args:
            api_key: YouTube Data API key
            session: Optional requests session, mainly for tests
            timeout_sec: HTTP timeout in seconds
            query_suffix: Text appended to queries to bias results toward music
        """
        if not api_key:
            raise ConfigError("YOUTUBE_API_KEY is required for YouTube search")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout_sec = timeout_sec
        self.query_suffix = query_suffix

    def search(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """Search YouTube videos.

        Args:
            query: Free-text query
            limit: Maximum number of videos (the API caps this at 50)

        Returns:
            Raw search items with ``id.videoId`` and ``snippet``
        """
        params = {
            'part': 'snippet',
            'q': f"{query}{self.query_suffix}",
            'type': 'video',
            'maxResults': max(1, min(int(limit), 50)),
            'key': self.api_key,
        }
        logger.debug(f"Searching YouTube: {query} (limit={params['maxResults']})")

        try:
            response = self.session.get(YOUTUBE_SEARCH_URL, params=params, timeout=self.timeout_sec)
        except requests.Timeout as e:
            raise TemporaryFailure("YouTube search timed out") from e
        except requests.RequestException as e:
            raise TemporaryFailure(f"YouTube search failed: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get('Retry-After', '1')
            raise RateLimited(retry_after_ms=int(retry_after) * 1000 if retry_after.isdigit() else 1000)
        if response.status_code == 403:
            # quotaExceeded is reported as 403
            raise PermanentFailure(f"YouTube API refused the request: {response.text[:200]}")
        if response.status_code >= 500:
            raise TemporaryFailure(f"YouTube API error: {response.status_code}")
        if response.status_code != 200:
            raise PermanentFailure(f"YouTube API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise TemporaryFailure(f"YouTube returned invalid JSON: {e}") from e
        return list(data.get('items') or [])

    def normalize(self, raw: Dict[str, Any]) -> CandidateSong:
        return normalize_youtube_video(raw)
