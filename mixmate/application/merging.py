import hashlib
import logging
from typing import Dict, List, Union

from mixmate.domain.entities import CandidateSong, PlatformRef, Source, UnifiedSong
from mixmate.domain.normalization import normalize_text


logger = logging.getLogger(__name__)

# Metadata filled first-non-empty-wins, in group order
_SCALAR_FIELDS = (
    "album", "duration_ms", "popularity", "image_url",
    "preview_url", "isrc", "release_date",
)


def build_merge_key(song: Union[CandidateSong, UnifiedSong]) -> str:
    """Grouping key: ISRC when present, else normalized title and artist.

    Also keys resolved platform mappings, so a song and its candidates
    always share a key.
    """
    if song.isrc:
        return f"isrc:{song.isrc.strip().upper()}"
    return f"text:{normalize_text(song.title)}|{normalize_text(song.artist)}"


def song_id_for_key(merge_key: str) -> str:
    digest = hashlib.sha1(merge_key.encode("utf-8")).hexdigest()
    return f"song_{digest[:16]}"


def to_unified(candidate: CandidateSong, merge_key: str) -> UnifiedSong:
    """Start a unified song from the first candidate of a group."""
    return UnifiedSong(
        id=song_id_for_key(merge_key),
        title=candidate.title,
        artist=candidate.artist,
        source=candidate.source,
        album=candidate.album,
        duration_ms=candidate.duration_ms,
        popularity=candidate.popularity,
        image_url=candidate.image_url,
        preview_url=candidate.preview_url,
        isrc=candidate.isrc,
        release_date=candidate.release_date,
        genres=list(candidate.genres),
        platforms={candidate.source: PlatformRef.from_candidate(candidate)},
    )


def merge_into(song: UnifiedSong, candidate: CandidateSong) -> UnifiedSong:
    """Fold a later candidate of the same group into the accumulated song.

    Identifiers are additive (one ref per platform, earliest kept), scalar
    metadata only fills gaps, and genres keep the first non-empty list.
    """
    for name in _SCALAR_FIELDS:
        if getattr(song, name) is None:
            value = getattr(candidate, name)
            if value is not None:
                setattr(song, name, value)

    if not song.genres and candidate.genres:
        song.genres = list(candidate.genres)

    if candidate.source not in song.platforms:
        song.platforms[candidate.source] = PlatformRef.from_candidate(candidate)

    if len(song.platforms) > 1:
        song.source = Source.COMBINED.value
    return song


def merge_all(candidates: List[CandidateSong]) -> List[UnifiedSong]:
    """Group candidates representing the same recording and merge each group.

    Groups keep first-seen order; no quality-based sorting happens here.
    """
    groups: Dict[str, UnifiedSong] = {}
    for candidate in candidates:
        if not candidate.title or not candidate.artist:
            logger.warning(f"Skipping candidate {candidate.source}:{candidate.source_id} without title/artist")
            continue
        key = build_merge_key(candidate)
        existing = groups.get(key)
        if existing is None:
            groups[key] = to_unified(candidate, key)
        else:
            merge_into(existing, candidate)

    merged = list(groups.values())
    logger.debug(f"Merged {len(candidates)} candidates into {len(merged)} songs")
    return merged
