from mixmate.application.ranking import rank
from mixmate.domain.entities import UnifiedSong


def song(song_id, title, popularity=None, source="spotify"):
    return UnifiedSong(id=song_id, title=title, artist="Artist", source=source, popularity=popularity)


def ids(songs):
    return [s.id for s in songs]


def test_title_containing_query_sorts_first():
    songs = [song("a", "Something Else", popularity=90), song("b", "Imagine", popularity=10)]
    assert ids(rank(songs, "imagine")) == ["b", "a"]


def test_popularity_breaks_containment_ties():
    songs = [song("a", "Imagine", popularity=10), song("b", "Imagine (Live)", popularity=70)]
    assert ids(rank(songs, "Imagine")) == ["b", "a"]


def test_unset_popularity_counts_as_zero():
    songs = [song("a", "Song", popularity=None), song("b", "Song", popularity=1)]
    assert ids(rank(songs, "x")) == ["b", "a"]


def test_source_precedence_breaks_remaining_ties():
    songs = [
        song("yt", "Song", source="youtube"),
        song("mix", "Song", source="combined"),
        song("sp", "Song", source="spotify"),
        song("other", "Song", source="deezer"),
    ]
    assert ids(rank(songs, "song")) == ["sp", "mix", "yt", "other"]


def test_full_ties_keep_merge_order():
    songs = [song(str(i), "Song", popularity=5) for i in range(6)]
    assert ids(rank(songs, "song")) == [str(i) for i in range(6)]


def test_rank_is_deterministic_and_does_not_mutate_input():
    songs = [
        song("a", "Imagine", 10, "youtube"),
        song("b", "Imagine", 10, "spotify"),
        song("c", "Other", 99),
        song("d", "imagine all the people", None, "combined"),
    ]
    original = list(songs)

    first = rank(songs, "Imagine")
    second = rank(songs, "Imagine")

    assert ids(first) == ids(second)
    assert songs == original
    assert first is not songs


def test_custom_source_precedence():
    songs = [song("sp", "Song", source="spotify"), song("yt", "Song", source="youtube")]
    assert ids(rank(songs, "song", source_precedence={"youtube": 0, "spotify": 1})) == ["yt", "sp"]
