import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values


class ConfigError(Exception):
    """Configuration error: a required credential or setting is missing or invalid."""
    pass


@dataclass(frozen=True)
class SpotifyCredentials:
    """Credentials for Spotify search and export."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    access_token: Optional[str] = None

    @property
    def can_search(self) -> bool:
        return bool(self.access_token or (self.client_id and self.client_secret))

    @property
    def can_export(self) -> bool:
        return bool(self.access_token)


class Settings:
    """Application settings read from the environment and an optional .env file.

    Process environment wins over the .env file so deployments can override
    a checked-in development file.
    """

    def __init__(self, env_file: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """Initialize settings."""
        self.env_file = Path(env_file) if env_file else Path.cwd() / '.env'
        self._environ = dict(os.environ if environ is None else environ)
        self._file_values = self._load_env_file()

    def _load_env_file(self) -> Dict[str, str]:
        if not self.env_file.exists():
            return {}
        try:
            return {k: v for k, v in dotenv_values(self.env_file).items() if v is not None}
        except (IOError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._environ.get(key)
        if value is None or value == '':
            value = self._file_values.get(key)
        if value is None or value == '':
            return default
        return value

    def _get_int(self, key: str, default: int) -> int:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{key} must be an integer, got '{raw}'")

    def _get_float(self, key: str, default: float) -> float:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"{key} must be a number, got '{raw}'")

    @property
    def spotify(self) -> SpotifyCredentials:
        return SpotifyCredentials(
            client_id=self.get('SPOTIFY_CLIENT_ID'),
            client_secret=self.get('SPOTIFY_CLIENT_SECRET'),
            access_token=self.get('SPOTIFY_ACCESS_TOKEN'),
        )

    @property
    def youtube_api_key(self) -> Optional[str]:
        return self.get('YOUTUBE_API_KEY')

    @property
    def search_limit(self) -> int:
        return self._get_int('MIXMATE_SEARCH_LIMIT', 20)

    @property
    def search_timeout(self) -> float:
        return self._get_float('MIXMATE_SEARCH_TIMEOUT', 10.0)

    @property
    def match_threshold(self) -> float:
        threshold = self._get_float('MIXMATE_MATCH_THRESHOLD', 0.7)
        if not 0.0 <= threshold <= 1.0:
            raise ConfigError(f"MIXMATE_MATCH_THRESHOLD must be within [0, 1], got {threshold}")
        return threshold

    @property
    def market(self) -> Optional[str]:
        return self.get('MIXMATE_MARKET')

    @property
    def mapping_cache_path(self) -> Optional[str]:
        return self.get('MIXMATE_MAPPING_CACHE')

    def require_search_source(self) -> None:
        """Raise when no platform can be searched at all."""
        if not self.spotify.can_search and not self.youtube_api_key:
            raise ConfigError(
                "No search source configured: set SPOTIFY_CLIENT_ID/SPOTIFY_CLIENT_SECRET, "
                "SPOTIFY_ACCESS_TOKEN or YOUTUBE_API_KEY"
            )

    def require_spotify_export(self) -> SpotifyCredentials:
        """Return credentials usable for playlist export or raise."""
        credentials = self.spotify
        if not credentials.can_export:
            raise ConfigError("SPOTIFY_ACCESS_TOKEN not found; connect Spotify before exporting")
        return credentials

    def validate_configuration(self) -> Dict[str, bool]:
        """Report which settings are present."""
        spotify = self.spotify
        return {
            'spotify_client_id': bool(spotify.client_id),
            'spotify_client_secret': bool(spotify.client_secret),
            'spotify_access_token': bool(spotify.access_token),
            'youtube_api_key': bool(self.youtube_api_key),
        }

    def get_config_summary(self) -> Dict[str, Any]:
        """Get configuration summary (without sensitive data)."""
        validation = self.validate_configuration()
        spotify = self.spotify
        sources = []
        if spotify.can_search:
            sources.append('spotify')
        if self.youtube_api_key:
            sources.append('youtube')

        return {
            'env_file': str(self.env_file),
            'validation': validation,
            'search_sources': sources,
            'can_export_to_spotify': spotify.can_export,
            'search_limit': self.search_limit,
            'search_timeout': self.search_timeout,
            'match_threshold': self.match_threshold,
            'market': self.market,
        }
