"""
The library module encapsulates the SQLite database that stores the indexed albums and tracks.

A `Library` is an explicit handle over one connection. The process opens it once and passes it to
every operation that needs it; tests open an isolated in-memory library instead.

Lookups signal "no matching row" with `None` (or an empty list). Every driver failure is raised as a
`StoreError`.
"""

from __future__ import annotations

import binascii
import contextlib
import hashlib
import logging
import random
import sqlite3
import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from musli.common import VERSION, MusliError

logger = logging.getLogger(__name__)

LIBRARY_SCHEMA_PATH = Path(__file__).resolve().parent / "library.sql"

# Pass as the path to open a private, in-memory library.
MEMORY = ":memory:"


class StoreError(MusliError):
    pass


@dataclass
class Album:
    album_artist: str
    name: str
    year: int
    id: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Album:
        return Album(
            id=row["id"],
            album_artist=row["album_artist"],
            name=row["name"],
            year=row["year"],
        )


@dataclass
class Track:
    path: Path
    disc: int
    track_number: int
    album_id: int | None = None
    id: int | None = None


def calculate_album_logtext(album: Album) -> str:
    """Get a human-readable identifier for an album suitable for logging."""
    logtext = f"{album.album_artist or '[Unknown Artist]'} - "
    if album.year:
        logtext += f"{album.year}. "
    logtext += album.name or "[Unknown Album]"
    return logtext


class Library:
    def __init__(self, conn: sqlite3.Connection, path: Path | str) -> None:
        self._conn: sqlite3.Connection | None = conn
        self.path = path

    @classmethod
    def open(cls, path: Path | str) -> Library:
        """
        Open the library at `path`, creating the database file, its parent directories, and the
        schema if they do not exist yet. Opening an existing library is a no-op beyond connecting.
        """
        try:
            if str(path) != MEMORY:
                path = Path(path)
                path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(path, isolation_level=None, timeout=15.0)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys=ON")
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Failed to open library at {path}: {e}") from e

        library = cls(conn, path)
        try:
            library.maybe_rebuild_schema()
        except StoreError:
            library._conn = None
            conn.close()
            raise
        logger.debug(f"Opened library at {path}")
        return library

    def close(self) -> None:
        """Optimize the database and release the connection. Closing twice is a no-op."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            conn.execute("PRAGMA analysis_limit=400")
            conn.execute("PRAGMA optimize")
        except sqlite3.Error as e:
            raise StoreError(f"Failed to optimize library at {self.path}: {e}") from e
        finally:
            conn.close()
        logger.debug(f"Closed library at {self.path}")

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError(f"Library at {self.path} is closed")
        return self._conn

    def maybe_rebuild_schema(self) -> None:
        """
        Create the schema on first open. If the stored schema hash does not match the schema on
        disk, drop the library tables and recreate them. Otherwise, no op.
        """
        with LIBRARY_SCHEMA_PATH.open("r") as fp:
            schema = fp.read()
        schema_hash = hashlib.sha256(schema.encode()).hexdigest()

        row = self._fetchone(
            """
            SELECT EXISTS(
                SELECT * FROM sqlite_master
                WHERE type = 'table' AND name = '_schema_hash'
            )
            """
        )
        if row is not None and row[0]:
            row = self._fetchone("SELECT schema_hash, version FROM _schema_hash")
            if row and row["schema_hash"] == schema_hash:
                # Everything matches! Exit!
                return
            logger.warning(f"Library schema at {self.path} is outdated: rebuilding, re-scan to repopulate")
        elif self._fetchone("SELECT name FROM sqlite_master WHERE type = 'table'") is not None:
            logger.warning(f"Library at {self.path} has no schema version: rebuilding, re-scan to repopulate")

        try:
            self.conn.executescript(
                f"""
                BEGIN;
                DROP TABLE IF EXISTS tracks;
                DROP TABLE IF EXISTS albums;
                DROP TABLE IF EXISTS _schema_hash;
                {schema}
                CREATE TABLE _schema_hash (
                    schema_hash TEXT
                  , version TEXT
                  , PRIMARY KEY (schema_hash, version)
                );
                COMMIT;
                """
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to create library schema at {self.path}: {e}") from e
        self._execute(
            "INSERT INTO _schema_hash (schema_hash, version) VALUES (?, ?)",
            (schema_hash, VERSION),
        )

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Library]:
        """
        A simple context wrapper for a database transaction. Nested transactions are folded into the
        outermost one.
        """
        tx_log_id = binascii.b2a_hex(random.randbytes(8)).decode()
        start_time = time.time()
        conn = self.conn

        # If we're already in a transaction, don't create a nested transaction.
        if conn.in_transaction:
            logger.debug(f"Transaction {tx_log_id}. Starting nested transaction, NoOp.")
            yield self
            return

        logger.debug(f"Transaction {tx_log_id}. Starting transaction.")
        try:
            with conn:
                # Take the write lock up front; a deferred BEGIN can deadlock on lock upgrade.
                conn.execute("BEGIN IMMEDIATE")
                yield self
        except sqlite3.Error as e:
            raise StoreError(f"Library transaction failed: {e}") from e
        logger.debug(
            f"Transaction {tx_log_id}. End of transaction. Duration: {time.time() - start_time}."
        )

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StoreError(f"Library query failed: {e}") from e

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Library query failed: {e}") from e

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        try:
            return self.conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Library query failed: {e}") from e

    # Albums

    def find_album_id(self, album_artist: str, name: str, year: int) -> int | None:
        row = self._fetchone(
            "SELECT id FROM albums WHERE album_artist = ? AND name = ? AND year = ?",
            (album_artist, name, year),
        )
        return row["id"] if row else None

    def insert_album(self, album: Album) -> int:
        cursor = self._execute(
            "INSERT INTO albums (album_artist, name, year) VALUES (?, ?, ?)",
            (album.album_artist, album.name, album.year),
        )
        assert cursor.lastrowid is not None
        return cursor.lastrowid

    def get_album(self, album_id: int) -> Album | None:
        row = self._fetchone("SELECT id, album_artist, name, year FROM albums WHERE id = ?", (album_id,))
        return Album.from_row(row) if row else None

    def select_albums(
        self,
        *,
        where: str = "",
        params: Sequence[Any] = (),
        order_by: str = "id ASC",
        limit: int | None = None,
    ) -> list[Album]:
        """
        Select albums. `where` and `order_by` are SQL fragments and must come from code, never from
        user input; user values go through `params`.
        """
        query = "SELECT id, album_artist, name, year FROM albums"
        if where:
            query += f" WHERE {where}"
        query += f" ORDER BY {order_by}"
        if limit is not None:
            query += f" LIMIT {int(limit)}"
        return [Album.from_row(row) for row in self._fetchall(query, params)]

    def list_album_ids(self) -> list[int]:
        return [row["id"] for row in self._fetchall("SELECT id FROM albums")]

    def delete_empty_albums(self) -> int:
        """Delete every album that no track references. Returns the number of deleted albums."""
        cursor = self._execute(
            """
            DELETE FROM albums
            WHERE id NOT IN (SELECT DISTINCT album_id FROM tracks)
            """
        )
        return cursor.rowcount

    def count_albums(self) -> int:
        row = self._fetchone("SELECT COUNT(*) FROM albums")
        assert row is not None
        return row[0]

    # Tracks

    def find_track_id(self, path: Path) -> int | None:
        row = self._fetchone("SELECT id FROM tracks WHERE path = ?", (str(path),))
        return row["id"] if row else None

    def insert_track(self, track: Track) -> int:
        cursor = self._execute(
            "INSERT INTO tracks (album_id, disc, track_number, path) VALUES (?, ?, ?, ?)",
            (track.album_id, track.disc, track.track_number, str(track.path)),
        )
        assert cursor.lastrowid is not None
        return cursor.lastrowid

    def delete_track(self, path: Path) -> bool:
        """Delete the track at `path`. Returns whether a track was deleted."""
        cursor = self._execute("DELETE FROM tracks WHERE path = ?", (str(path),))
        return cursor.rowcount > 0

    def list_track_paths(self, album_id: int) -> list[Path]:
        """List the paths of an album's tracks in playback order: track number first, then disc."""
        rows = self._fetchall(
            """
            SELECT path FROM tracks
            WHERE album_id = ?
            ORDER BY track_number ASC, disc ASC
            """,
            (album_id,),
        )
        return [Path(row["path"]) for row in rows]

    def list_all_track_paths(self) -> list[Path]:
        return [Path(row["path"]) for row in self._fetchall("SELECT path FROM tracks")]

    def count_tracks(self) -> int:
        row = self._fetchone("SELECT COUNT(*) FROM tracks")
        assert row is not None
        return row[0]


@contextlib.contextmanager
def connect(path: Path | str) -> Iterator[Library]:
    library = Library.open(path)
    try:
        yield library
    finally:
        library.close()


def close_library(library: Library | None) -> None:
    """Close a library handle. Tolerates a handle that was never opened."""
    if library is None:
        return
    library.close()
