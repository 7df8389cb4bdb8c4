import hashlib
import sqlite3
from pathlib import Path

import pytest

from musli.common import VERSION
from musli.library import (
    LIBRARY_SCHEMA_PATH,
    Album,
    Library,
    StoreError,
    Track,
    calculate_album_logtext,
    close_library,
    connect,
)


def test_schema(isolated_dir: Path) -> None:
    """Test that the schema successfully bootstraps, including the parent directories."""
    path = isolated_dir / "nested" / "dir" / "library.db"
    with LIBRARY_SCHEMA_PATH.open("rb") as fp:
        schema_hash = hashlib.sha256(fp.read()).hexdigest()
    with connect(path) as library:
        row = library.conn.execute("SELECT schema_hash, version FROM _schema_hash").fetchone()
        assert row["schema_hash"] == schema_hash
        assert row["version"] == VERSION
        assert library.count_albums() == 0
        assert library.count_tracks() == 0
    assert path.is_file()


def test_pragmas(isolated_dir: Path) -> None:
    with connect(isolated_dir / "library.db") as library:
        assert library.conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        # NORMAL == 1.
        assert library.conn.execute("PRAGMA synchronous").fetchone()[0] == 1
        assert library.conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1


def test_open_is_idempotent(isolated_dir: Path) -> None:
    path = isolated_dir / "library.db"
    with connect(path) as library:
        library.insert_album(Album(album_artist="A", name="B", year=2000))
    with connect(path) as library:
        assert library.count_albums() == 1
    with connect(path) as library:
        assert library.count_albums() == 1
        assert library.conn.execute("SELECT COUNT(*) FROM _schema_hash").fetchone()[0] == 1


def test_migration(isolated_dir: Path) -> None:
    """Test that an outdated schema is rebuilt."""
    path = isolated_dir / "library.db"
    with connect(path) as library:
        library.insert_album(Album(album_artist="A", name="B", year=2000))
        library.conn.execute("UPDATE _schema_hash SET schema_hash = 'haha'")

    with connect(path) as library:
        assert library.count_albums() == 0
        with LIBRARY_SCHEMA_PATH.open("rb") as fp:
            latest_schema_hash = hashlib.sha256(fp.read()).hexdigest()
        row = library.conn.execute("SELECT schema_hash FROM _schema_hash").fetchone()
        assert row["schema_hash"] == latest_schema_hash
        assert library.conn.execute("SELECT COUNT(*) FROM _schema_hash").fetchone()[0] == 1


def test_migration_of_unversioned_library(isolated_dir: Path) -> None:
    """Test that a library created without a schema version is rebuilt."""
    path = isolated_dir / "library.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE albums (id integer PRIMARY KEY, album_artist TEXT, name TEXT, year INTEGER);
        CREATE TABLE tracks (id integer PRIMARY KEY, album_id INTEGER, disc INTEGER, path TEXT, track_number INTEGER);
        INSERT INTO albums (album_artist, name, year) VALUES ('A', 'B', 2000);
        INSERT INTO albums (album_artist, name, year) VALUES ('A', 'B', 2000);
        """
    )
    conn.close()

    with connect(path) as library:
        assert library.count_albums() == 0
        # The rebuilt schema enforces album uniqueness.
        library.insert_album(Album(album_artist="A", name="B", year=2000))
        with pytest.raises(StoreError):
            library.insert_album(Album(album_artist="A", name="B", year=2000))


def test_open_failure(isolated_dir: Path) -> None:
    (isolated_dir / "file").touch()
    with pytest.raises(StoreError):
        Library.open(isolated_dir / "file" / "library.db")


def test_close_is_idempotent(library: Library) -> None:
    library.close()
    assert library.closed
    library.close()
    with pytest.raises(StoreError):
        library.count_albums()


def test_close_library_tolerates_none() -> None:
    close_library(None)


def test_album_lookup(library: Library) -> None:
    assert library.find_album_id("The Beatles", "Abbey Road", 1969) is None
    album_id = library.insert_album(Album(album_artist="The Beatles", name="Abbey Road", year=1969))
    assert library.find_album_id("The Beatles", "Abbey Road", 1969) == album_id
    assert library.find_album_id("The Beatles", "Abbey Road", 2019) is None
    assert library.find_album_id("the beatles", "Abbey Road", 1969) is None
    assert library.get_album(album_id) == Album(
        id=album_id, album_artist="The Beatles", name="Abbey Road", year=1969
    )
    assert library.get_album(album_id + 1) is None


def test_album_triple_is_unique(library: Library) -> None:
    library.insert_album(Album(album_artist="", name="", year=0))
    with pytest.raises(StoreError):
        library.insert_album(Album(album_artist="", name="", year=0))
    assert library.count_albums() == 1


def test_track_lookup_and_delete(library: Library) -> None:
    album_id = library.insert_album(Album(album_artist="A", name="B", year=2000))
    path = Path("/music/a/01.flac")
    assert library.find_track_id(path) is None
    track_id = library.insert_track(Track(path=path, disc=1, track_number=1, album_id=album_id))
    assert library.find_track_id(path) == track_id
    assert library.list_all_track_paths() == [path]
    assert library.delete_track(path)
    assert not library.delete_track(path)
    assert library.find_track_id(path) is None


def test_track_path_is_unique(library: Library) -> None:
    album_id = library.insert_album(Album(album_artist="A", name="B", year=2000))
    track = Track(path=Path("/music/a/01.flac"), disc=1, track_number=1, album_id=album_id)
    library.insert_track(track)
    with pytest.raises(StoreError):
        library.insert_track(track)


def test_track_requires_existing_album(library: Library) -> None:
    with pytest.raises(StoreError):
        library.insert_track(Track(path=Path("/music/a/01.flac"), disc=1, track_number=1, album_id=999))
    assert library.count_tracks() == 0


def test_list_track_paths_playback_order(seeded_library: Library) -> None:
    assert seeded_library.list_track_paths(1) == [
        Path("/music/abbey road/01.flac"),
        Path("/music/abbey road/02.flac"),
        Path("/music/abbey road/03.flac"),
    ]
    assert seeded_library.list_track_paths(999) == []


def test_list_track_paths_track_number_before_disc(library: Library) -> None:
    album_id = library.insert_album(Album(album_artist="A", name="B", year=2000))
    for disc, track_number, name in [(1, 2, "d1t2"), (2, 1, "d2t1"), (1, 1, "d1t1")]:
        library.insert_track(
            Track(path=Path(f"/m/{name}.flac"), disc=disc, track_number=track_number, album_id=album_id)
        )
    assert library.list_track_paths(album_id) == [
        Path("/m/d1t1.flac"),
        Path("/m/d2t1.flac"),
        Path("/m/d1t2.flac"),
    ]


def test_delete_empty_albums(seeded_library: Library) -> None:
    seeded_library.delete_track(Path("/music/let it be/01.flac"))
    seeded_library.delete_track(Path("/music/abbey road/01.flac"))
    assert seeded_library.delete_empty_albums() == 1
    assert sorted(seeded_library.list_album_ids()) == [1, 3, 4, 5, 6, 7, 8]


def test_album_ids_and_counts(seeded_library: Library) -> None:
    assert sorted(seeded_library.list_album_ids()) == [1, 2, 3, 4, 5, 6, 7, 8]
    assert seeded_library.count_albums() == 8
    assert seeded_library.count_tracks() == 10


def test_transaction_rolls_back(library: Library) -> None:
    with pytest.raises(StoreError):
        with library.transaction():
            library.insert_album(Album(album_artist="A", name="B", year=2000))
            library.insert_album(Album(album_artist="A", name="B", year=2000))
    assert library.count_albums() == 0


def test_nested_transaction(library: Library) -> None:
    with library.transaction():
        with library.transaction():
            library.insert_album(Album(album_artist="A", name="B", year=2000))
    assert library.count_albums() == 1


def test_calculate_album_logtext() -> None:
    assert calculate_album_logtext(Album(album_artist="A", name="B", year=2000)) == "A - 2000. B"
    assert calculate_album_logtext(Album(album_artist="", name="", year=0)) == (
        "[Unknown Artist] - [Unknown Album]"
    )
