"""
The scan module synchronizes the library with the music directory.

A scan walks the music directory and indexes every audio file that is not yet in the library. It is
incremental and idempotent: a path that is already indexed is skipped without reading its tags, so
tag changes on indexed files are not picked up. A tidy evicts the tracks whose files no longer
exist, and then the albums that are left without tracks.

Both operations assume a single writer. They report progress through an optional callback, which is
advisory: the operation is done when the function returns.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from musli.audiotags import MetadataError, is_supported_audio_file, read_metadata
from musli.common import MusliExpectedError
from musli.library import Library, calculate_album_logtext

logger = logging.getLogger(__name__)

# Called with (processed, total, path) after each path.
ProgressCallback = Callable[[int, int, Path], None]


class MusicDirectoryNotFoundError(MusliExpectedError):
    pass


@dataclass
class ScanReport:
    added: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, MetadataError]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.skipped) + len(self.failed)


@dataclass
class TidyReport:
    checked: int = 0
    removed_tracks: list[Path] = field(default_factory=list)
    removed_albums: int = 0


def find_audio_files(root: Path) -> list[Path]:
    """
    List the supported audio files under `root`, recursively, in lexical order. Symlinks are not
    followed: only regular files inside real directories are listed.
    """
    return list(_walk(root))


def _walk(d: Path) -> Iterator[Path]:
    with os.scandir(d) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(Path(entry.path))
        elif entry.is_file(follow_symlinks=False) and is_supported_audio_file(Path(entry.name)):
            yield Path(entry.path)
        elif entry.is_symlink():
            logger.debug(f"Skipping symlink {entry.path}")


def add_path(library: Library, path: Path) -> bool:
    """
    Index a single audio file. Returns False without reading the file if the path is already in the
    library. Raises `MetadataError` if the file's tags cannot be read.
    """
    if library.find_track_id(path) is not None:
        logger.debug(f"Skipping {path}: already in library")
        return False

    album, track = read_metadata(path)

    # Resolve the album and insert the track together, so that no album is left without its track.
    with library.transaction():
        album_id = library.find_album_id(album.album_artist, album.name, album.year)
        if album_id is None:
            album_id = library.insert_album(album)
            logger.info(f"Added album {calculate_album_logtext(album)} to library")
        track.album_id = album_id
        track.id = library.insert_track(track)
    logger.debug(f"Added track {path} to album {album_id}")
    return True


def delete_track(library: Library, path: Path) -> bool:
    """Remove a track from the library by path. Returns whether the track was in the library."""
    deleted = library.delete_track(path)
    if deleted:
        logger.info(f"Removed track {path} from library")
    else:
        logger.debug(f"No-Op: Track {path} not in library")
    return deleted


def scan(
    library: Library,
    root: Path,
    *,
    on_progress: ProgressCallback | None = None,
    fail_fast: bool = True,
) -> ScanReport:
    """
    Index every new audio file under `root`.

    With `fail_fast`, the first unreadable file aborts the scan by raising its `MetadataError`.
    Otherwise unreadable files are recorded in the report and the scan continues. Store errors
    always abort. Files indexed before an abort stay indexed.
    """
    root = Path(root).expanduser().resolve()
    if not root.is_dir():
        raise MusicDirectoryNotFoundError(f"Music directory {root} does not exist")

    logger.info(f"Scanning {root}")
    paths = find_audio_files(root)
    total = len(paths)
    report = ScanReport()
    for i, path in enumerate(paths, start=1):
        try:
            if add_path(library, path):
                report.added.append(path)
            else:
                report.skipped.append(path)
        except MetadataError as e:
            if fail_fast:
                raise
            logger.warning(f"Skipping {path}: {e}")
            report.failed.append((path, e))
        if on_progress:
            on_progress(i, total, path)

    logger.info(
        f"Scanned {total} files in {root}: {len(report.added)} added, "
        f"{len(report.skipped)} already indexed, {len(report.failed)} failed"
    )
    return report


def remove_empty_albums(library: Library) -> int:
    count = library.delete_empty_albums()
    if count:
        logger.info(f"Removed {count} albums without tracks from library")
    return count


def tidy(library: Library, *, on_progress: ProgressCallback | None = None) -> TidyReport:
    """
    Evict tracks whose files no longer exist, then evict the albums left without tracks. Filesystem
    errors other than a missing file abort the tidy.
    """
    logger.info("Tidying library")
    paths = library.list_all_track_paths()
    total = len(paths)
    report = TidyReport()
    for i, path in enumerate(paths, start=1):
        try:
            os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            library.delete_track(path)
            report.removed_tracks.append(path)
            logger.info(f"Evicted missing track {path} from library")
        report.checked += 1
        if on_progress:
            on_progress(i, total, path)

    report.removed_albums = remove_empty_albums(library)
    logger.info(
        f"Tidied library: checked {report.checked} tracks, removed {len(report.removed_tracks)} "
        f"tracks and {report.removed_albums} albums"
    )
    return report
