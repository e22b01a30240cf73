import logging
from typing import List, Optional

from mixmate.application.export import PlaylistExporter
from mixmate.application.mapping_cache import FileMappingCache, MappingCache
from mixmate.application.matching import CrossPlatformResolver, adapter_search
from mixmate.application.search import SearchAggregator
from mixmate.crosscutting.config import Settings
from mixmate.crosscutting.metrics import MetricsCollector
from mixmate.domain.ports import SearchAdapter, SongStore
from mixmate.infrastructure.providers.spotify import SpotifyProvider
from mixmate.infrastructure.providers.youtube import YouTubeProvider


logger = logging.getLogger(__name__)


def create_search_adapters(settings: Settings) -> List[SearchAdapter]:
    """Create one adapter per platform that has credentials.

    Raises:
        ConfigError: If no platform can be searched
    """
    settings.require_search_source()
    adapters: List[SearchAdapter] = []

    spotify = settings.spotify
    if spotify.can_search:
        adapters.append(SpotifyProvider(
            access_token=spotify.access_token,
            client_id=spotify.client_id,
            client_secret=spotify.client_secret,
            market=settings.market,
        ))
    if settings.youtube_api_key:
        adapters.append(YouTubeProvider(settings.youtube_api_key, timeout_sec=settings.search_timeout))

    logger.debug(f"Search sources: {[a.source for a in adapters]}")
    return adapters


def create_search_aggregator(settings: Settings,
                             metrics: Optional[MetricsCollector] = None) -> SearchAggregator:
    return SearchAggregator(create_search_adapters(settings), timeout_sec=settings.search_timeout, metrics=metrics)


def create_mapping_cache(settings: Settings) -> MappingCache:
    path = settings.mapping_cache_path
    return FileMappingCache(path) if path else MappingCache()


def create_spotify_exporter(settings: Settings,
                            metrics: Optional[MetricsCollector] = None,
                            mapping_cache: Optional[MappingCache] = None,
                            song_store: Optional[SongStore] = None) -> PlaylistExporter:
    """Create an exporter targeting Spotify with the user's access token.

    Raises:
        ConfigError: If no Spotify user token is configured
    """
    credentials = settings.require_spotify_export()
    provider = SpotifyProvider(access_token=credentials.access_token, market=settings.market)
    resolver = CrossPlatformResolver(adapter_search(provider), threshold=settings.match_threshold)
    return PlaylistExporter(
        target=provider,
        resolver=resolver,
        target_name="Spotify",
        mapping_cache=mapping_cache if mapping_cache is not None else create_mapping_cache(settings),
        song_store=song_store,
        metrics=metrics,
    )
