from __future__ import annotations

import html
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .entities import CandidateSong, Source
from .errors import MalformedRecord


logger = logging.getLogger(__name__)

_NON_WORD_SPACE_PATTERN = re.compile(r"[^\w\s]", re.UNICODE)
_MULTISPACE_PATTERN = re.compile(r"\s+")
# Noise tokens video platforms append to titles, in (...) or [...] form
_VIDEO_NOISE_PATTERN = re.compile(
    r"\s*[\(\[]\s*(?:"
    r"official\s+(?:music\s+|lyric\s+)?video"
    r"|official\s+audio"
    r"|lyric\s+video"
    r"|lyrics?"
    r"|audio"
    r"|visuali[sz]er"
    r"|hd|4k"
    r")\s*[\)\]]",
    re.IGNORECASE,
)
# "Artist - Title"; the dash must be spaced so names like "Jay-Z" survive
_ARTIST_TITLE_PATTERN = re.compile(r"^(.+?)\s+[-–—]\s+(.+)$")
_CHANNEL_SUFFIX_PATTERN = re.compile(r"(\s+-\s+topic|vevo)$", re.IGNORECASE)


def normalize_text(value: Optional[str]) -> str:
    """Lower-case, strip punctuation and collapse whitespace."""
    value = (value or "").lower()
    value = _NON_WORD_SPACE_PATTERN.sub("", value)
    return _MULTISPACE_PATTERN.sub(" ", value).strip()


def clean_video_title(title: str) -> str:
    """Remove noise tokens like "(Official Video)" or "[Lyrics]" from a video title."""
    cleaned = title or ""
    while True:
        stripped = _VIDEO_NOISE_PATTERN.sub("", cleaned)
        if stripped == cleaned:
            break
        cleaned = stripped
    return _MULTISPACE_PATTERN.sub(" ", cleaned).strip()


def clean_channel_name(channel: str) -> str:
    return _CHANNEL_SUFFIX_PATTERN.sub("", (channel or "").strip()).strip()


def split_video_title(title: str, channel: str) -> Tuple[str, str]:
    """Split a video title into ``(artist, title)``.

    Uses the "<artist> - <title>" convention when present and falls back to
    the uploader's channel name as artist.
    """
    cleaned = clean_video_title(title)
    match = _ARTIST_TITLE_PATTERN.match(cleaned)
    if match:
        return match.group(1).strip(), match.group(2).strip()
    return clean_channel_name(channel), cleaned


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value >= 0 else None


def _mapping(value: Any) -> Dict[str, Any]:
    """Nested object or an empty one when the field is missing or mistyped."""
    return value if isinstance(value, dict) else {}


def _first_mapping(value: Any) -> Dict[str, Any]:
    if isinstance(value, list) and value:
        return _mapping(value[0])
    return {}


def normalize_spotify_track(raw: Dict[str, Any]) -> CandidateSong:
    """Map a Spotify track object into a candidate song.

    Optional nested fields of the wrong type are treated as absent; a missing
    id, title or artist makes the record malformed.
    """
    if not isinstance(raw, dict):
        raise MalformedRecord(f"Spotify record is not an object: {type(raw).__name__}")
    track_id = _optional_str(raw.get("id"))
    if not track_id:
        raise MalformedRecord("Spotify track without id")

    first_artist = _first_mapping(raw.get("artists"))
    title = (_optional_str(raw.get("name")) or "").strip()
    artist = (_optional_str(first_artist.get("name")) or "").strip()
    if not title or not artist:
        raise MalformedRecord(f"Spotify track {track_id} lacks title or artist")

    album = _mapping(raw.get("album"))
    image = _first_mapping(album.get("images"))
    external_urls = _mapping(raw.get("external_urls"))
    external_ids = _mapping(raw.get("external_ids"))
    genres = first_artist.get("genres")
    if not isinstance(genres, list):
        genres = []

    return CandidateSong(
        source_id=track_id,
        source=Source.SPOTIFY.value,
        title=title,
        artist=artist,
        album=_optional_str(album.get("name")),
        duration_ms=_optional_int(raw.get("duration_ms")),
        popularity=_optional_int(raw.get("popularity")),
        image_url=_optional_str(image.get("url")),
        preview_url=_optional_str(raw.get("preview_url")),
        external_url=_optional_str(external_urls.get("spotify")),
        isrc=_optional_str(external_ids.get("isrc")),
        release_date=_optional_str(album.get("release_date")),
        genres=tuple(g for g in genres if isinstance(g, str) and g),
        uri=_optional_str(raw.get("uri")) or f"spotify:track:{track_id}",
    )


def normalize_youtube_video(raw: Dict[str, Any]) -> CandidateSong:
    """Map a YouTube search item into a candidate song."""
    if not isinstance(raw, dict):
        raise MalformedRecord(f"YouTube record is not an object: {type(raw).__name__}")
    raw_id = raw.get("id")
    video_id = _optional_str(raw_id.get("videoId") if isinstance(raw_id, dict) else raw_id)
    if not video_id:
        raise MalformedRecord("YouTube item without videoId")

    snippet = _mapping(raw.get("snippet"))
    # The Data API returns HTML-escaped titles
    raw_title = html.unescape(_optional_str(snippet.get("title")) or "")
    channel = html.unescape(_optional_str(snippet.get("channelTitle")) or "")
    artist, title = split_video_title(raw_title, channel)
    if not title or not artist:
        raise MalformedRecord(f"YouTube video {video_id} lacks title or artist")

    thumbnails = _mapping(snippet.get("thumbnails"))
    thumb = (_mapping(thumbnails.get("high")) or _mapping(thumbnails.get("medium"))
             or _mapping(thumbnails.get("default")))

    return CandidateSong(
        source_id=video_id,
        source=Source.YOUTUBE.value,
        title=title,
        artist=artist,
        image_url=_optional_str(thumb.get("url")),
        external_url=f"https://www.youtube.com/watch?v={video_id}",
        release_date=_optional_str(snippet.get("publishedAt")),
        raw_title=_optional_str(raw_title),
        channel=_optional_str(channel),
    )


_NORMALIZERS = {
    Source.SPOTIFY.value: normalize_spotify_track,
    Source.YOUTUBE.value: normalize_youtube_video,
}


def normalize(raw: Dict[str, Any], source: str) -> CandidateSong:
    """Map a raw record from ``source`` into a candidate song."""
    key = source.value if isinstance(source, Source) else source
    try:
        normalizer = _NORMALIZERS[key]
    except KeyError:
        raise MalformedRecord(f"No normalizer registered for source '{key}'")
    return normalizer(raw)


def normalize_records(raws: Iterable[Dict[str, Any]], source: str,
                      normalizer=None) -> List[CandidateSong]:
    """Normalize a batch, skipping malformed records instead of failing."""
    normalizer = normalizer or (lambda raw: normalize(raw, source))
    candidates: List[CandidateSong] = []
    for index, raw in enumerate(raws or []):
        try:
            candidates.append(normalizer(raw))
        except MalformedRecord as e:
            logger.warning(f"Skipping malformed {source} record #{index}: {e}")
    return candidates
