"""
The player module launches the external media player on an album's tracks.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import click

from musli.common import MusliExpectedError, log_dir
from musli.config import Config
from musli.library import Library, calculate_album_logtext
from musli.queries import track_paths_for_album

logger = logging.getLogger(__name__)


class PlayerError(MusliExpectedError):
    pass


class AlbumDoesNotExistError(MusliExpectedError):
    pass


def build_command(exec_cmd: str, paths: Sequence[Path]) -> list[str]:
    """Split the player command and append the track paths as trailing arguments."""
    return [*shlex.split(exec_cmd), *[str(p) for p in paths]]


def play_paths(c: Config, paths: Sequence[Path]) -> None:
    """
    Launch the player on the given paths, in order.

    In debug mode, the player's output is captured into a timestamped log file. With show_stdout or
    show_stderr, that stream is echoed line by line. In both cases, we wait for the player to exit.
    Otherwise, the player is started in the background and we return immediately.
    """
    if not paths:
        raise PlayerError("No tracks to play")
    cmd = build_command(c.exec_cmd, paths)
    logger.debug(f"Launching player: {cmd}")
    try:
        if c.debug:
            log_home = log_dir()
            log_home.mkdir(parents=True, exist_ok=True)
            log_path = log_home / f"musli_{datetime.now():%Y-%m-%d_%H-%M-%S}.txt"
            logger.info(f"Writing player output to {log_path}")
            with log_path.open("w") as fp:
                returncode = subprocess.run(cmd, stdout=fp, stderr=fp).returncode
        elif c.show_stdout or c.show_stderr:
            with subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE if c.show_stdout else subprocess.DEVNULL,
                stderr=subprocess.PIPE if not c.show_stdout else subprocess.DEVNULL,
                text=True,
            ) as proc:
                stream = proc.stdout if c.show_stdout else proc.stderr
                assert stream is not None
                for line in stream:
                    click.echo(line.rstrip("\n"))
            returncode = proc.returncode
        else:
            subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
            return
    except OSError as e:
        raise PlayerError(f"Failed to launch player {cmd[0]}: {e}") from e

    if returncode != 0:
        raise PlayerError(f"Player {cmd[0]} exited with status {returncode}")


def play_album(c: Config, library: Library, album_id: int) -> None:
    album = library.get_album(album_id)
    if album is None:
        raise AlbumDoesNotExistError(f"Album {album_id} does not exist")
    paths = track_paths_for_album(library, album_id)
    if not paths:
        raise PlayerError(f"Album {calculate_album_logtext(album)} has no tracks")
    logger.info(f"Playing {calculate_album_logtext(album)}")
    play_paths(c, paths)
