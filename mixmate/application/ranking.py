from functools import cmp_to_key
from typing import Dict, List, Optional

from mixmate.domain.entities import Source, UnifiedSong


# Lower sorts first; unknown sources go last
SOURCE_PRECEDENCE: Dict[str, int] = {
    Source.SPOTIFY.value: 0,
    Source.COMBINED.value: 1,
    Source.YOUTUBE.value: 2,
}


def rank(songs: List[UnifiedSong], query: str,
         source_precedence: Optional[Dict[str, int]] = None) -> List[UnifiedSong]:
    """Order songs by relevance to the query, then popularity, then source.

    Returns a new list. ``sorted`` is stable, so songs tied on every
    criterion keep their merge order.
    """
    precedence = source_precedence or SOURCE_PRECEDENCE
    fallback = max(precedence.values(), default=0) + 1
    query_lower = (query or "").lower()

    def compare(a: UnifiedSong, b: UnifiedSong) -> int:
        a_match = query_lower in a.title.lower()
        b_match = query_lower in b.title.lower()
        if a_match != b_match:
            return -1 if a_match else 1

        a_pop = a.popularity or 0
        b_pop = b.popularity or 0
        if a_pop != b_pop:
            return b_pop - a_pop

        return precedence.get(a.source, fallback) - precedence.get(b.source, fallback)

    return sorted(songs, key=cmp_to_key(compare))
