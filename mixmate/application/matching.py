import logging
from typing import Any, Callable, Dict, List, Optional

from mixmate.domain.entities import CandidateSong, MatchResult
from mixmate.domain.normalization import normalize_records
from mixmate.domain.ports import SearchAdapter
from mixmate.domain.similarity import similarity


logger = logging.getLogger(__name__)

TITLE_WEIGHT = 0.4
ARTIST_WEIGHT = 0.4
ALBUM_WEIGHT = 0.2
DEFAULT_THRESHOLD = 0.7
DEFAULT_SEARCH_LIMIT = 5

REASON_NO_CANDIDATES = "no candidates"
REASON_BELOW_THRESHOLD = "below threshold"

TargetSearch = Callable[[str, int], List[CandidateSong]]


def adapter_search(adapter: SearchAdapter) -> TargetSearch:
    """Wrap a search adapter so it yields normalized candidates."""

    def _search(query: str, limit: int) -> List[CandidateSong]:
        raws = adapter.search(query, limit)
        return normalize_records(raws, adapter.source, normalizer=adapter.normalize)

    return _search


def calculate_confidence(song: Any, candidate: CandidateSong) -> float:
    """Weighted title/artist/album similarity between a song and a candidate.

    Missing album data on either side is not penalized: the album term then
    contributes its full weight.
    """
    score = TITLE_WEIGHT * similarity(song.title or "", candidate.title or "")
    score += ARTIST_WEIGHT * similarity(song.artist or "", candidate.artist or "")

    album = getattr(song, "album", None)
    if album and candidate.album:
        score += ALBUM_WEIGHT * similarity(album, candidate.album)
    else:
        score += ALBUM_WEIGHT
    return min(1.0, score)


class CrossPlatformResolver:
    """Finds the track on a target platform that corresponds to a known song.

    Searches the target with "<title> <artist>", scores every candidate with
    ``calculate_confidence`` and accepts the best one only when it beats the
    threshold. A candidate sharing the song's ISRC wins outright.
    """

    def __init__(self,
                 search: TargetSearch,
                 limit: int = DEFAULT_SEARCH_LIMIT,
                 threshold: float = DEFAULT_THRESHOLD):
        """Initialize the resolver.

        Args:
            search: Callable returning normalized target candidates for a query
            limit: Number of target results to request per song
            threshold: Minimum confidence (exclusive) for accepting a match
        """
        self.search = search
        self.limit = limit
        self.threshold = threshold

    @staticmethod
    def build_query(song: Any) -> str:
        return f"{song.title} {song.artist}".strip()

    def resolve(self, song: Any) -> MatchResult:
        """Resolve one song against the target platform.

        Args:
            song: Object with ``title``, ``artist`` and optional ``album``/``isrc``

        Returns:
            MatchResult; ``reason`` explains a failed match
        """
        query = self.build_query(song)
        candidates = self.search(query, self.limit) or []

        if not candidates:
            logger.info(f"No candidates for '{query}'")
            return MatchResult(matched=False, confidence=0.0, reason=REASON_NO_CANDIDATES)

        isrc = getattr(song, "isrc", None)
        if isrc:
            for candidate in candidates:
                if candidate.isrc and candidate.isrc.upper() == isrc.upper():
                    logger.debug(f"ISRC match for '{query}': {candidate.source_id}")
                    return MatchResult(
                        matched=True,
                        confidence=1.0,
                        target_platform_id=candidate.source_id,
                        candidate=candidate,
                    )

        best: Optional[CandidateSong] = None
        best_score = -1.0
        for candidate in candidates:
            score = calculate_confidence(song, candidate)
            logger.debug(f"Candidate {candidate.source_id} '{candidate.title}' by '{candidate.artist}': {score:.3f}")
            # Strict comparison keeps the earliest of equally scored candidates
            if score > best_score:
                best, best_score = candidate, score

        if best_score > self.threshold:
            return MatchResult(
                matched=True,
                confidence=best_score,
                target_platform_id=best.source_id,
                candidate=best,
            )

        logger.info(f"Best candidate for '{query}' scored {best_score:.3f}, below {self.threshold}")
        return MatchResult(matched=False, confidence=best_score, reason=REASON_BELOW_THRESHOLD)

    def resolve_batch(self, songs: List[Any]) -> List[MatchResult]:
        """Resolve several songs in order."""
        return [self.resolve(song) for song in songs]


def calculate_match_rate(results: List[MatchResult]) -> float:
    """Share of results that matched (0.0 to 1.0)."""
    if not results:
        return 0.0
    return sum(1 for r in results if r.matched) / len(results)


def get_match_statistics(results: List[MatchResult]) -> Dict[str, Any]:
    """Get detailed statistics about match results.

    Args:
        results: List of match results

    Returns:
        Dictionary with match statistics
    """
    total = len(results)
    if total == 0:
        return {
            "total": 0,
            "matched": 0,
            "unmatched": 0,
            "match_rate": 0.0,
            "average_confidence": 0.0,
            "by_reason": {},
        }

    matched = [r for r in results if r.matched]
    by_reason: Dict[str, int] = {}
    for result in results:
        reason = result.reason or "matched"
        by_reason[reason] = by_reason.get(reason, 0) + 1

    return {
        "total": total,
        "matched": len(matched),
        "unmatched": total - len(matched),
        "match_rate": len(matched) / total,
        "average_confidence": sum(r.confidence for r in matched) / len(matched) if matched else 0.0,
        "by_reason": by_reason,
    }
