import logging
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from mixmate.application.mapping_cache import MappingCache
from mixmate.application.matching import CrossPlatformResolver
from mixmate.application.merging import build_merge_key, song_id_for_key
from mixmate.crosscutting.logging import log_error, log_export_complete, log_export_start
from mixmate.crosscutting.metrics import ExportMetrics, MetricsCollector
from mixmate.domain.entities import (
    AddResult, ExportResult, PlatformRef, Source, UnifiedSong,
)
from mixmate.domain.errors import NotFound, PermanentFailure, RateLimited, TemporaryFailure
from mixmate.domain.ports import ExportTarget, SongStore


logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def song_from_dict(data: Dict[str, Any]) -> UnifiedSong:
    """Build a song from a stored playlist entry.

    Accepts the stored snapshot shape (``platform``/``platform_id``) as well as
    serialized unified songs (``platforms`` or ``spotifyId``/``youtubeId``).
    """
    title = (data.get("title") or "").strip()
    artist = (data.get("artist") or "").strip()
    if not title or not artist:
        raise ValueError("song entries need a non-empty title and artist")

    platforms: Dict[str, PlatformRef] = {}
    for name, ref in (data.get("platforms") or {}).items():
        if isinstance(ref, dict) and ref.get("source_id"):
            platforms[name] = PlatformRef(**{k: v for k, v in ref.items() if k in PlatformRef.__dataclass_fields__})
    if data.get("platform") and data.get("platform_id"):
        platforms.setdefault(data["platform"], PlatformRef(source_id=str(data["platform_id"])))
    if data.get("spotifyId"):
        platforms.setdefault(Source.SPOTIFY.value, PlatformRef(source_id=data["spotifyId"], uri=data.get("spotifyUri")))
    if data.get("youtubeId"):
        platforms.setdefault(Source.YOUTUBE.value, PlatformRef(source_id=data["youtubeId"]))

    isrc = data.get("isrc") or None
    song = UnifiedSong(
        id="",
        title=title,
        artist=artist,
        source=Source.COMBINED.value if len(platforms) > 1 else next(iter(platforms), data.get("platform") or ""),
        album=data.get("album") or None,
        isrc=isrc,
        platforms=platforms,
    )
    song.id = str(data.get("id") or song_id_for_key(build_merge_key(song)))
    return song


class ExportProgress:
    """Tracks export progress and logs periodic updates."""

    def __init__(self, total_songs: int, progress_interval_sec: int = 30):
        """Initialize progress tracker.

        Args:
            total_songs: Total number of songs to locate on the target
            progress_interval_sec: Interval for progress updates in seconds
        """
        self.total_songs = total_songs
        self.processed = 0
        self.matched = 0
        self.unmatched = 0
        self.progress_interval_sec = progress_interval_sec
        self.start_time = time.time()
        self.last_progress_time = self.start_time

    def update(self, matched: bool) -> None:
        self.processed += 1
        if matched:
            self.matched += 1
        else:
            self.unmatched += 1

        now = time.time()
        if self.processed % 10 == 0 or now - self.last_progress_time >= self.progress_interval_sec:
            pct = (self.processed / self.total_songs) * 100 if self.total_songs else 100.0
            logger.info(f"Progress: {self.processed}/{self.total_songs} songs ({pct:.1f}%) "
                        f"in {now - self.start_time:.1f}s. "
                        f"Matched: {self.matched}, Not found: {self.unmatched}")
            self.last_progress_time = now

    def get_final_summary(self) -> Dict[str, Any]:
        total_time = time.time() - self.start_time
        return {
            "total_songs": self.total_songs,
            "processed": self.processed,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "match_rate_percent": (self.matched / self.total_songs) * 100 if self.total_songs else 0.0,
            "total_time_seconds": total_time,
        }


class PlaylistExporter:
    """Exports a playlist of unified songs into a target platform's native playlist.

    Songs already carrying a target id are used directly; the rest are looked
    up in the mapping cache and then resolved by searching the target. Songs
    that cannot be found are reported, never silently dropped.
    """

    def __init__(self,
                 target: ExportTarget,
                 resolver: CrossPlatformResolver,
                 target_name: Optional[str] = None,
                 batch_size: int = MAX_BATCH_SIZE,
                 max_retries: int = 2,
                 mapping_cache: Optional[MappingCache] = None,
                 song_store: Optional[SongStore] = None,
                 metrics: Optional[MetricsCollector] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize the exporter.

        Args:
            target: Platform receiving the playlist
            resolver: Resolver searching the target platform
            target_name: Human-readable platform name for messages
            batch_size: Tracks per add request, capped by the target's limit
            max_retries: Retries for a batch failing with a temporary error
            mapping_cache: Optional cache of previously resolved songs
            song_store: Optional persistence collaborator receiving resolved ids
            metrics: Optional metrics collector
            sleep: Sleep function used between retries
        """
        self.target = target
        self.resolver = resolver
        self.target_source = target.source
        self.target_name = target_name or str(target.source).capitalize()
        limit = getattr(target, "max_batch_size", MAX_BATCH_SIZE) or MAX_BATCH_SIZE
        self.batch_size = max(1, min(batch_size, limit, MAX_BATCH_SIZE))
        self.max_retries = max_retries
        self.mapping_cache = mapping_cache
        self.song_store = song_store
        self.metrics = metrics
        self._sleep = sleep

    def create_batches(self, track_uris: List[str]) -> List[List[str]]:
        """Split track URIs into chunks the target accepts in one request."""
        return [track_uris[i:i + self.batch_size] for i in range(0, len(track_uris), self.batch_size)]

    def locate(self, song: UnifiedSong, export_metrics: Optional[ExportMetrics] = None
               ) -> Tuple[Optional[str], str]:
        """Find the target platform id for one song.

        Returns:
            ``(platform_id, how)`` where ``how`` is "direct", "cache",
            "resolved" or the resolver's failure reason
        """
        existing = song.platform_id(self.target_source)
        if existing:
            if export_metrics:
                export_metrics.direct_count += 1
            return existing, "direct"

        if self.mapping_cache is not None:
            cached = self.mapping_cache.get(song, self.target_source)
            if cached:
                if export_metrics:
                    export_metrics.cache_hit_count += 1
                return cached.platform_id, "cache"

        try:
            result = self.resolver.resolve(song)
        except (RateLimited, TemporaryFailure, PermanentFailure, NotFound) as e:
            log_error(logger, f"Could not search {self.target_name} for '{song.title}'", e)
            return None, "search failed"

        if not result.matched:
            return None, result.reason or "not found"

        if self.mapping_cache is not None:
            try:
                self.mapping_cache.put(song, self.target_source, result.target_platform_id, result.confidence)
            except OSError as e:
                log_error(logger, f"Failed to cache {self.target_name} id for song {song.id}", e)
        if self.song_store is not None:
            try:
                self.song_store.update_platform_id(
                    song.id, self.target_source, result.target_platform_id, result.confidence
                )
            except Exception as e:
                log_error(logger, f"Failed to store {self.target_name} id for song {song.id}", e)
        return result.target_platform_id, "resolved"

    def add_batch(self, playlist_id: str, batch: List[str], batch_index: int) -> AddResult:
        """Add one chunk, retrying rate limits and temporary failures.

        Raises:
            TemporaryFailure: If max retries exceeded
            PermanentFailure: If the target rejects the request outright
        """
        attempt = 0
        while True:
            try:
                result = self.target.add_tracks_batch(playlist_id, batch)
                logger.info(f"Batch {batch_index} completed: added={result.added}, errors={result.errors}")
                return result
            except RateLimited as e:
                attempt += 1
                if attempt > self.max_retries:
                    raise TemporaryFailure(f"Still rate limited after {self.max_retries} retries")
                logger.warning(f"Rate limited on batch {batch_index}, waiting {e.retry_after_ms}ms")
                self._sleep(e.retry_after_ms / 1000.0)
            except TemporaryFailure as e:
                attempt += 1
                if attempt > self.max_retries:
                    raise TemporaryFailure(f"Failed to add batch after {self.max_retries} retries: {e}")
                # Exponential backoff: 1s, 2s, 4s, ...
                backoff_time = 2 ** (attempt - 1)
                logger.warning(f"Batch {batch_index} failed (attempt {attempt}), retrying in {backoff_time}s: {e}")
                self._sleep(backoff_time)

    def export_playlist(self, name: str, songs: List[UnifiedSong]) -> ExportResult:
        """Create a playlist on the target platform and fill it with the songs.

        Args:
            name: Playlist name on the target platform
            songs: Songs in playlist order

        Returns:
            ExportResult whose message counts exported and missing songs
        """
        if self.metrics:
            with self.metrics.export_context(name, self.target_source, len(songs)) as export_metrics:
                return self._export(name, songs, export_metrics)
        return self._export(name, songs, None)

    def _export(self, name: str, songs: List[UnifiedSong],
                export_metrics: Optional[ExportMetrics]) -> ExportResult:
        log_export_start(logger, name, len(songs), self.target_source)

        description = f"Exported from MixMate - {date.today().isoformat()}"
        try:
            playlist = self.target.create_playlist(name, description)
        except (RateLimited, TemporaryFailure, PermanentFailure, NotFound) as e:
            log_error(logger, f"Failed to create {self.target_name} playlist '{name}'", e)
            return ExportResult(success=False, message=f"Failed to create {self.target_name} playlist: {e}")

        progress = ExportProgress(len(songs))
        track_uris: List[str] = []
        unmatched: List[str] = []
        for song in songs:
            platform_id, how = self.locate(song, export_metrics)
            if platform_id:
                track_uris.append(self.target.track_uri(platform_id))
            else:
                logger.info(f"'{song.title}' by '{song.artist}' not found on {self.target_name}: {how}")
                unmatched.append(f"{song.title} - {song.artist}")
            progress.update(platform_id is not None)

        added = 0
        not_added = 0
        failed_batches = 0
        batches = self.create_batches(track_uris)
        for index, batch in enumerate(batches):
            try:
                result = self.add_batch(playlist.id, batch, index)
                added += result.added
                not_added += result.errors
            except (TemporaryFailure, PermanentFailure, NotFound) as e:
                failed_batches += 1
                not_added += len(batch)
                log_error(logger, f"Failed to add batch {index} to {self.target_name} playlist", e,
                          batch_size=len(batch))

        if export_metrics:
            export_metrics.matched_count = len(track_uris)
            export_metrics.unmatched_count = len(unmatched)
            export_metrics.batch_count = len(batches)
            export_metrics.failed_batch_count = failed_batches
            export_metrics.added_count = added

        message = f"Exported {_plural(added, 'song')} to {self.target_name}."
        if unmatched:
            message += f" {_plural(len(unmatched), 'song')} could not be found."
        if not_added:
            message += f" {_plural(not_added, 'track')} could not be added."

        log_export_complete(logger, name, len(track_uris), len(unmatched), added,
                            failed_batches=failed_batches,
                            total_time_seconds=progress.get_final_summary()["total_time_seconds"])
        return ExportResult(
            success=True,
            message=message,
            playlist_url=playlist.url,
            matched=len(track_uris),
            unmatched=unmatched,
            added=added,
            failed_batches=failed_batches,
        )
