"""
The queries module contains the read paths over the library: album listings under various orderings
and filters, and the track paths of an album in playback order.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from musli.common import MusliExpectedError
from musli.library import Album, Library


class InvalidQueryError(MusliExpectedError):
    pass


def _sql_order(ascending: bool) -> str:
    return "ASC" if ascending else "DESC"


def random_albums(library: Library) -> list[Album]:
    """All albums, shuffled anew on every call."""
    return library.select_albums(order_by="RANDOM()")


def one_random_album(library: Library) -> Album | None:
    """A single random album, or None if the library is empty."""
    albums = library.select_albums(order_by="RANDOM()", limit=1)
    return albums[0] if albums else None


def albums_by_artist(library: Library, ascending: bool = True) -> list[Album]:
    return library.select_albums(order_by=f"album_artist {_sql_order(ascending)}, id ASC")


def albums_by_year(library: Library, ascending: bool = True) -> list[Album]:
    return library.select_albums(order_by=f"year {_sql_order(ascending)}, id ASC")


def _escape_like(x: str) -> str:
    return x.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_albums(library: Library, substring: str) -> list[Album]:
    """
    Albums whose name or album artist contains `substring`, case-insensitively. The result is always
    ordered by album artist, then name.
    """
    pattern = f"%{_escape_like(substring)}%"
    return library.select_albums(
        where="name LIKE ? ESCAPE '\\' OR album_artist LIKE ? ESCAPE '\\'",
        params=(pattern, pattern),
        order_by="album_artist ASC, name ASC",
    )


def parse_year_query(args: Sequence[str | int]) -> tuple[int, int | None]:
    """
    Parse one year or a pair of years into (low, high). High is None for a single year. A reversed
    pair is swapped.
    """
    if len(args) < 1 or len(args) > 2:
        raise InvalidQueryError(f"Invalid year query: expected one or two years, got {len(args)}")
    years: list[int] = []
    for arg in args:
        try:
            year = int(str(arg).strip())
        except ValueError as e:
            raise InvalidQueryError(f"Invalid year query: {arg}") from e
        if year < 0:
            raise InvalidQueryError(f"Invalid year query: {arg}")
        years.append(year)
    if len(years) == 1:
        return years[0], None
    lo, hi = years
    if hi < lo:
        lo, hi = hi, lo
    return lo, hi


def albums_by_year_range(
    library: Library,
    lo: str | int,
    hi: str | int | None = None,
) -> list[Album]:
    """
    Albums released within [lo, hi] inclusive, ordered by year, album artist, then name. With a
    single year, albums released in exactly that year, ordered by album artist, then name.
    """
    start, end = parse_year_query([lo] if hi is None else [lo, hi])
    if end is None:
        return library.select_albums(
            where="year = ?",
            params=(start,),
            order_by="album_artist ASC, name ASC",
        )
    return library.select_albums(
        where="year BETWEEN ? AND ?",
        params=(start, end),
        order_by="year ASC, album_artist ASC, name ASC",
    )


def track_paths_for_album(library: Library, album_id: int) -> list[Path]:
    """The album's track paths in playback order: by track number, then by disc."""
    return library.list_track_paths(album_id)


def all_track_paths(library: Library) -> list[Path]:
    return library.list_all_track_paths()
