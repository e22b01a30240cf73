from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from .entities import AddResult, CandidateSong, ExportPlaylist


class SearchAdapter(Protocol):
    """Port for a platform catalog that can be searched by free text.

    Implementations own all transport details and return platform-native
    records; ``normalize`` maps one of them into a ``CandidateSong``.
    """

    source: str

    def search(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """Return up to ``limit`` raw platform records for the query."""

    def normalize(self, raw: Dict[str, Any]) -> CandidateSong:
        """Map a raw record into a candidate song."""


class ExportTarget(Protocol):
    """Port for a platform that can host an exported playlist."""

    source: str
    max_batch_size: int

    def create_playlist(self, name: str, description: str = "") -> ExportPlaylist:
        """Create a private playlist owned by the current user."""

    def add_tracks_batch(self, playlist_id: str, track_uris: List[str]) -> AddResult:
        """Add up to ``max_batch_size`` tracks to the playlist."""

    def track_uri(self, platform_id: str) -> str:
        """Return the URI the platform expects for a track id."""


class SongStore(Protocol):
    """Persistence collaborator that receives resolved platform ids."""

    def update_platform_id(self, song_id: str, platform: str, platform_id: str,
                           confidence: Optional[float] = None) -> None:
        """Record that ``song_id`` is ``platform_id`` on ``platform``."""
