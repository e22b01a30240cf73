from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Source(str, Enum):
    """Platforms a song record can come from."""

    SPOTIFY = "spotify"
    YOUTUBE = "youtube"
    COMBINED = "combined"


@dataclass(frozen=True)
class CandidateSong:
    """Single-source search result after normalization."""

    source_id: str
    source: str
    title: str
    artist: str
    album: Optional[str] = None
    duration_ms: Optional[int] = None
    popularity: Optional[int] = None
    image_url: Optional[str] = None
    preview_url: Optional[str] = None
    external_url: Optional[str] = None
    isrc: Optional[str] = None
    release_date: Optional[str] = None
    genres: Tuple[str, ...] = ()
    # Source-scoped extras
    uri: Optional[str] = None
    raw_title: Optional[str] = None
    channel: Optional[str] = None


@dataclass(frozen=True)
class PlatformRef:
    """Identifiers of one song on one platform."""

    source_id: str
    uri: Optional[str] = None
    external_url: Optional[str] = None
    raw_title: Optional[str] = None
    channel: Optional[str] = None

    @classmethod
    def from_candidate(cls, candidate: CandidateSong) -> "PlatformRef":
        return cls(
            source_id=candidate.source_id,
            uri=candidate.uri,
            external_url=candidate.external_url,
            raw_title=candidate.raw_title,
            channel=candidate.channel,
        )


@dataclass
class UnifiedSong:
    """One logical recording, carrying identifiers from every platform that matched it."""

    id: str
    title: str
    artist: str
    source: str
    album: Optional[str] = None
    duration_ms: Optional[int] = None
    popularity: Optional[int] = None
    image_url: Optional[str] = None
    preview_url: Optional[str] = None
    isrc: Optional[str] = None
    release_date: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    platforms: Dict[str, PlatformRef] = field(default_factory=dict)

    def platform_id(self, source: str) -> Optional[str]:
        ref = self.platforms.get(_source_value(source))
        return ref.source_id if ref else None

    @property
    def spotify_id(self) -> Optional[str]:
        return self.platform_id(Source.SPOTIFY)

    @property
    def spotify_uri(self) -> Optional[str]:
        ref = self.platforms.get(Source.SPOTIFY.value)
        if not ref:
            return None
        return ref.uri or f"spotify:track:{ref.source_id}"

    @property
    def spotify_url(self) -> Optional[str]:
        ref = self.platforms.get(Source.SPOTIFY.value)
        return ref.external_url if ref else None

    @property
    def youtube_id(self) -> Optional[str]:
        return self.platform_id(Source.YOUTUBE)

    @property
    def youtube_url(self) -> Optional[str]:
        ref = self.platforms.get(Source.YOUTUBE.value)
        return ref.external_url if ref else None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON responses; unset fields are omitted."""
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "source": self.source,
            "genres": list(self.genres),
        }
        for key in ("album", "duration_ms", "popularity", "image_url",
                    "preview_url", "isrc", "release_date"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        data["platforms"] = {
            name: {k: v for k, v in vars(ref).items() if v is not None}
            for name, ref in self.platforms.items()
        }
        return data


@dataclass(frozen=True)
class MatchResult:
    """Outcome of resolving one song against a target platform."""

    matched: bool
    confidence: float
    target_platform_id: Optional[str] = None
    reason: Optional[str] = None
    candidate: Optional[CandidateSong] = None


@dataclass
class SearchResult:
    """Aggregated search response."""

    songs: List[UnifiedSong]
    total: int
    has_more: bool
    sources: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "songs": [s.to_dict() for s in self.songs],
            "total": self.total,
            "hasMore": self.has_more,
            "sources": dict(self.sources),
        }


@dataclass
class ExportResult:
    """Summary of a playlist export."""

    success: bool
    message: str
    playlist_url: Optional[str] = None
    matched: int = 0
    unmatched: List[str] = field(default_factory=list)
    added: int = 0
    failed_batches: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "message": self.message,
            "matched": self.matched,
            "unmatched": list(self.unmatched),
            "added": self.added,
            "failedBatches": self.failed_batches,
        }
        if self.playlist_url:
            data["playlistUrl"] = self.playlist_url
        return data


@dataclass(frozen=True)
class ExportPlaylist:
    """Playlist created on the export target."""

    id: str
    name: str
    url: Optional[str] = None


@dataclass(frozen=True)
class AddResult:
    """Result of a batch add operation to a playlist."""

    added: int
    errors: int


def _source_value(source: Any) -> str:
    return source.value if isinstance(source, Source) else str(source)
