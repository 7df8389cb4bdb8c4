import logging
from collections.abc import Iterator
from pathlib import Path

import mutagen.flac
import pytest
from click.testing import CliRunner

from musli.config import Config
from musli.library import MEMORY, Library, connect

logger = logging.getLogger(__name__)


def make_flac(path: Path, tags: dict[str, str] | None = None) -> Path:
    """
    Write a minimal FLAC file: the stream marker and a STREAMINFO block describing one second of
    16-bit stereo silence, without any audio frames. Then write `tags` as Vorbis comments.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    sample_rate = 44100
    streaminfo = (
        (4096).to_bytes(2, "big")  # min block size
        + (4096).to_bytes(2, "big")  # max block size
        + (0).to_bytes(3, "big")  # min frame size
        + (0).to_bytes(3, "big")  # max frame size
        # 20 bits sample rate, 3 bits channels - 1, 5 bits bits per sample - 1, 36 bits samples.
        + ((sample_rate << 44) | (1 << 41) | (15 << 36) | sample_rate).to_bytes(8, "big")
        + bytes(16)  # MD5 of the audio data
    )
    with path.open("wb") as fp:
        # 0x80 flags STREAMINFO (type 0) as the last metadata block.
        fp.write(b"fLaC" + bytes([0x80]) + len(streaminfo).to_bytes(3, "big") + streaminfo)
    if tags is not None:
        f = mutagen.flac.FLAC(path)
        f.add_tags()
        assert f.tags is not None
        for k, v in tags.items():
            f.tags[k] = v
        f.save()
    return path


@pytest.fixture(autouse=True)
def debug_logging() -> None:
    logging.getLogger().setLevel(logging.DEBUG)


@pytest.fixture()
def isolated_dir() -> Iterator[Path]:
    with CliRunner().isolated_filesystem():
        yield Path.cwd()


@pytest.fixture()
def config(isolated_dir: Path) -> Config:
    music_dir = isolated_dir / "music"
    music_dir.mkdir()

    data_dir = isolated_dir / "data"
    data_dir.mkdir()

    return Config(
        music_dir=music_dir,
        data_dir=data_dir,
        exec_cmd="mpv --no-video",
        show_stdout=False,
        show_stderr=False,
        debug=False,
    )


@pytest.fixture()
def library() -> Iterator[Library]:
    with connect(MEMORY) as lib:
        yield lib


@pytest.fixture()
def seeded_library(library: Library) -> Library:
    library.conn.executescript(
        """\
INSERT INTO albums
       (id, album_artist     , name                       , year)
VALUES (1 , 'The Beatles'    , 'Abbey Road'               , 1969)
     , (2 , 'The Beatles'    , 'Let It Be'                , 1970)
     , (3 , 'Pink Floyd'     , 'The Dark Side of the Moon', 1973)
     , (4 , 'Led Zeppelin'   , 'Led Zeppelin IV'          , 1971)
     , (5 , 'Fleetwood Mac'  , 'Rumours'                  , 1977)
     , (6 , 'Talking Heads'  , 'Remain in Light'          , 1980)
     , (7 , 'Queen'          , 'A Night at the Opera'     , 1975)
     , (8 , 'Various Artists', '100% Hits_Vol 1'          , 0);

INSERT INTO tracks
       (id, album_id, disc, track_number, path)
VALUES (1 , 1       , 1   , 2           , '/music/abbey road/02.flac')
     , (2 , 1       , 1   , 1           , '/music/abbey road/01.flac')
     , (3 , 1       , 1   , 3           , '/music/abbey road/03.flac')
     , (4 , 2       , 1   , 1           , '/music/let it be/01.flac')
     , (5 , 3       , 1   , 1           , '/music/dsotm/01.flac')
     , (6 , 4       , 1   , 1           , '/music/iv/01.flac')
     , (7 , 5       , 1   , 1           , '/music/rumours/01.flac')
     , (8 , 6       , 1   , 1           , '/music/remain in light/01.flac')
     , (9 , 7       , 1   , 1           , '/music/opera/01.flac')
     , (10, 8       , 1   , 1           , '/music/hits/01.flac');
        """
    )
    return library
