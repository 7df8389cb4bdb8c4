"""
The cli module defines musli's CLI interface. It does not have any domain logic of its own. It is
dedicated to parsing, resolving arguments, and delegating to the appropriate module.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import click

from musli.common import MusliExpectedError
from musli.config import Config
from musli.library import Album, Library, calculate_album_logtext

logger = logging.getLogger(__name__)


class TrackNotInLibraryError(MusliExpectedError):
    pass


@dataclass
class Context:
    config: Config
    library: Library


def format_album(album: Album) -> str:
    return f"{album.id}\t{calculate_album_logtext(album)}"


def echo_albums(albums: list[Album]) -> None:
    for album in albums:
        click.echo(format_album(album))


def echo_progress(processed: int, total: int, path: Path) -> None:
    click.echo(f"\r{processed}/{total}", nl=False, err=True)
    if processed == total:
        click.echo(err=True)


# fmt: off
@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Emit verbose logging.")
@click.option("--config", "-c", type=click.Path(path_type=Path), help="Override the config file location.")
@click.pass_context
# fmt: on
def cli(cc: click.Context, verbose: bool, config: Path | None = None) -> None:
    """A music library indexer that plays albums in an external player."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("musli").setLevel(logging.DEBUG)
    c = Config.parse(config_path_override=config)
    library = Library.open(c.library_path)
    cc.call_on_close(library.close)
    cc.obj = Context(config=c, library=library)


# fmt: off
@cli.command()
@click.option("--keep-going", "-k", is_flag=True, help="Skip unreadable files instead of aborting the scan.")
@click.pass_obj
# fmt: on
def scan(ctx: Context, keep_going: bool) -> None:
    """Index new audio files in the music directory."""
    from musli.scan import scan as scan_library

    click.echo(f"Scanning {ctx.config.music_dir}")
    report = scan_library(
        ctx.library,
        ctx.config.music_dir,
        on_progress=echo_progress,
        fail_fast=not keep_going,
    )
    for path, err in report.failed:
        click.secho(f"Failed: {path}: {err}", fg="red")
    click.echo(
        f"Scanned {report.total} files: {len(report.added)} added, "
        f"{len(report.skipped)} already indexed, {len(report.failed)} failed"
    )


@cli.command()
@click.pass_obj
def tidy(ctx: Context) -> None:
    """Remove tracks whose files no longer exist, and albums left without tracks."""
    from musli.scan import tidy as tidy_library

    report = tidy_library(ctx.library, on_progress=echo_progress)
    click.echo(
        f"Checked {report.checked} tracks: removed {len(report.removed_tracks)} tracks "
        f"and {report.removed_albums} albums"
    )


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path), nargs=1)
@click.pass_obj
def add(ctx: Context, path: Path) -> None:
    """
    Index a single audio file. The path is resolved to an absolute path without symlinks, the same
    form scan stores, so a file reached through a symlink is indexed under its real location.
    """
    from musli.scan import add_path

    path = path.resolve()
    if add_path(ctx.library, path):
        click.echo(f"Added {path}")
    else:
        click.echo(f"Already indexed: {path}")


@cli.command()
@click.argument("path", type=click.Path(path_type=Path), nargs=1)
@click.pass_obj
def delete(ctx: Context, path: Path) -> None:
    """
    Remove a track from the library by path. The path is resolved to an absolute path without
    symlinks before the lookup, so it must point at the indexed file itself.
    """
    from musli.scan import delete_track

    path = path.resolve()
    if not delete_track(ctx.library, path):
        raise TrackNotInLibraryError(f"Track {path} is not in the library")
    click.echo(f"Removed {path}")


# fmt: off
@cli.command()
@click.option("--order", "-o", type=click.Choice(["random", "artist", "year"]), default="random", help="Album ordering.")
@click.option("--desc", "-d", is_flag=True, help="Sort in descending order (ignored for random).")
@click.pass_obj
# fmt: on
def albums(ctx: Context, order: str, desc: bool) -> None:
    """List all albums."""
    from musli.queries import albums_by_artist, albums_by_year, random_albums

    if order == "artist":
        echo_albums(albums_by_artist(ctx.library, ascending=not desc))
    elif order == "year":
        echo_albums(albums_by_year(ctx.library, ascending=not desc))
    else:
        echo_albums(random_albums(ctx.library))


@cli.command()
@click.argument("query", type=str, nargs=1)
@click.pass_obj
def search(ctx: Context, query: str) -> None:
    """Search albums by name or album artist."""
    from musli.queries import search_albums

    echo_albums(search_albums(ctx.library, query))


@cli.command()
@click.argument("years", type=str, nargs=-1)
@click.pass_obj
def years(ctx: Context, years: tuple[str, ...]) -> None:
    """List albums released in a year, or within an inclusive range of two years."""
    from musli.queries import albums_by_year_range, parse_year_query

    # Validate the argument count before splitting the arguments.
    parse_year_query(years)
    echo_albums(albums_by_year_range(ctx.library, *years))


@cli.command()
@click.argument("album_id", type=int, nargs=1)
@click.pass_obj
def tracks(ctx: Context, album_id: int) -> None:
    """Print an album's track paths in playback order."""
    from musli.queries import track_paths_for_album

    for path in track_paths_for_album(ctx.library, album_id):
        click.echo(str(path))


@cli.command()
@click.argument("album_id", type=int, nargs=1)
@click.pass_obj
def play(ctx: Context, album_id: int) -> None:
    """Play an album in the configured player."""
    from musli.player import play_album

    play_album(ctx.config, ctx.library, album_id)


@cli.command(name="random")
@click.pass_obj
def random_(ctx: Context) -> None:
    """Play a random album in the configured player."""
    from musli.player import play_album
    from musli.queries import one_random_album

    album = one_random_album(ctx.library)
    if album is None:
        click.echo("The library is empty: run `musli scan` first")
        return
    assert album.id is not None
    click.echo(format_album(album))
    play_album(ctx.config, ctx.library, album.id)
