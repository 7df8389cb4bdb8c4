"""
The audiotags module abstracts over tag reading for the supported audio formats, exposing a single
standard interface for all audio files.

Three tag containers cover every supported format: ID3 (MP3, DSF), MP4 atoms (M4A, M4B, M4P, ALAC)
and Vorbis comments (FLAC, Ogg). The module also normalizes the tags into the album and track
candidates that the library indexes, including the fallback chain for the album year.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import mutagen
import mutagen.flac
import mutagen.id3
import mutagen.mp4
import mutagen.oggopus
import mutagen.oggvorbis

from musli.common import MusliExpectedError
from musli.library import Album, Track

logger = logging.getLogger(__name__)

SUPPORTED_AUDIO_EXTENSIONS = [
    ".mp3",
    ".m4a",
    ".m4b",
    ".m4p",
    ".alac",
    ".flac",
    ".ogg",
    ".dsf",
]

YEAR_REGEX = re.compile(r"\d{4}")

# The frames consulted, in priority order, when the primary year tag is missing. See
# https://eyed3.readthedocs.io/en/latest/compliance.html for the ID3 frames.
ID3_FALLBACK_YEAR_KEYS = [
    "TDOR",  # ID3 v2.4 original release date
    "TDRL",  # ID3 v2.4 release date
    "XDOR",  # ID3 v2.3 original release year
    "TORY",  # ID3 v2.3 original release year
]
VORBIS_FALLBACK_YEAR_KEYS = ["originaldate", "releasedate", "originalyear", "original_year"]
MP4_FALLBACK_YEAR_KEYS = [
    "----:com.apple.iTunes:ORIGINALDATE",
    "----:com.apple.iTunes:RELEASEDATE",
    "----:com.apple.iTunes:ORIGINALYEAR",
    "----:com.apple.iTunes:ORIGINAL YEAR",
]

VORBIS_TAG_TYPES = (
    mutagen.flac.VCFLACDict,
    mutagen.oggvorbis.OggVCommentDict,
    mutagen.oggopus.OggOpusVComment,
)


class MetadataError(MusliExpectedError):
    pass


def is_supported_audio_file(p: Path) -> bool:
    return p.suffix.lower() in SUPPORTED_AUDIO_EXTENSIONS


@dataclass
class AudioTags:
    album_artist: str
    album: str
    # The primary year tag. None when missing or unparseable.
    year: int | None
    tracknumber: int | None
    tracktotal: int | None
    discnumber: int | None
    disctotal: int | None
    path: Path
    # The fallback year frames present on the file, as (key, raw value) in priority order.
    fallback_dates: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def from_file(cls, p: Path) -> AudioTags:
        """Read the tags of an audio file on disk."""
        if not is_supported_audio_file(p):
            raise MetadataError(f"{p.suffix} not a supported filetype")
        try:
            m = mutagen.File(p)  # type: ignore
        except (mutagen.MutagenError, OSError) as e:  # type: ignore
            raise MetadataError(f"Failed to open file {p}: {e}") from e
        if m is None:
            raise MetadataError(f"{p} is not a supported audio file")
        if m.tags is None:
            raise MetadataError(f"No tags found in {p}")
        if isinstance(m.tags, mutagen.id3.ID3):
            return cls.from_id3(m.tags, p)
        if isinstance(m.tags, mutagen.mp4.MP4Tags):
            return cls.from_mp4(m.tags, p)
        if isinstance(m.tags, VORBIS_TAG_TYPES):
            return cls.from_vorbis(m.tags, p)
        raise MetadataError(f"Unsupported tag container {type(m.tags).__name__} in {p}")

    @classmethod
    def from_id3(cls, tags: mutagen.id3.ID3, p: Path) -> AudioTags:
        # ID3 stores trackno/discno tags as no/total. We have to parse.
        tracknumber, tracktotal = _parse_number_pair(_get_tag(tags, ["TRCK"]))
        discnumber, disctotal = _parse_number_pair(_get_tag(tags, ["TPOS"]))
        return AudioTags(
            album_artist=_get_tag(tags, ["TPE2"]) or "",
            album=_get_tag(tags, ["TALB"]) or "",
            year=parse_year(_get_tag(tags, ["TDRC", "TYER"])),
            tracknumber=tracknumber,
            tracktotal=tracktotal,
            discnumber=discnumber,
            disctotal=disctotal,
            path=p,
            fallback_dates=_get_present_tags(tags, ID3_FALLBACK_YEAR_KEYS),
        )

    @classmethod
    def from_mp4(cls, tags: mutagen.mp4.MP4Tags, p: Path) -> AudioTags:
        tracknumber, tracktotal = _get_tuple_tag(tags, "trkn")
        discnumber, disctotal = _get_tuple_tag(tags, "disk")
        return AudioTags(
            album_artist=_get_tag(tags, ["aART"]) or "",
            album=_get_tag(tags, ["\xa9alb"]) or "",
            year=parse_year(_get_tag(tags, ["\xa9day"])),
            tracknumber=tracknumber,
            tracktotal=tracktotal,
            discnumber=discnumber,
            disctotal=disctotal,
            path=p,
            fallback_dates=_get_present_tags(tags, MP4_FALLBACK_YEAR_KEYS),
        )

    @classmethod
    def from_vorbis(cls, tags: Any, p: Path) -> AudioTags:
        tracknumber, tracktotal = _parse_number_pair(_get_tag(tags, ["tracknumber"]))
        discnumber, disctotal = _parse_number_pair(_get_tag(tags, ["discnumber"]))
        # Vorbis comments usually store the totals in their own tags.
        tracktotal = tracktotal or _parse_int(_get_tag(tags, ["tracktotal", "totaltracks"]))
        disctotal = disctotal or _parse_int(_get_tag(tags, ["disctotal", "totaldiscs"]))
        return AudioTags(
            album_artist=_get_tag(tags, ["albumartist", "album artist"]) or "",
            album=_get_tag(tags, ["album"]) or "",
            year=parse_year(_get_tag(tags, ["date", "year"])),
            tracknumber=tracknumber,
            tracktotal=tracktotal,
            discnumber=discnumber,
            disctotal=disctotal,
            path=p,
            fallback_dates=_get_present_tags(tags, VORBIS_FALLBACK_YEAR_KEYS),
        )

    def resolve_year(self) -> int:
        """
        Return the primary year if set. Otherwise walk the fallback frames in priority order and
        return the first one that parses to a year. Return 0 (unknown) if none does.
        """
        if self.year:
            return self.year
        for key, value in self.fallback_dates:
            year = parse_year(value)
            if year is not None:
                logger.debug(f"Resolved year {year} from fallback frame {key} of {self.path}")
                return year
            logger.debug(f"Ignoring unparseable fallback frame {key}={value!r} of {self.path}")
        return 0

    def to_album(self) -> Album:
        return Album(album_artist=self.album_artist, name=self.album, year=self.resolve_year())

    def to_track(self) -> Track:
        return Track(
            path=self.path,
            disc=self.discnumber or 0,
            track_number=self.tracknumber or 0,
        )


def read_metadata(p: Path) -> tuple[Album, Track]:
    """Read an audio file and produce the album and track candidates to index it under."""
    tags = AudioTags.from_file(p)
    return tags.to_album(), tags.to_track()


def parse_year(value: str | None) -> int | None:
    """Parse the leading four-digit year of a date such as `1975`, `1975-06-01`, or `1975-06`."""
    if not value:
        return None
    segment = value.strip().split("-", 1)[0]
    if not YEAR_REGEX.fullmatch(segment):
        return None
    return int(segment) or None


def _parse_int(x: str | None) -> int | None:
    if x is None:
        return None
    try:
        return int(x)
    except ValueError:
        return None


def _parse_number_pair(value: str | None) -> tuple[int | None, int | None]:
    """Parse a `no/total` tag value. Either side may be missing."""
    if not value:
        return None, None
    number, _, total = value.partition("/")
    return _parse_int(number.strip()), _parse_int(total.strip() or None)


def _stringify(val: Any) -> str:
    if isinstance(val, str):
        return val
    if isinstance(val, bytes):
        try:
            return val.decode()
        except UnicodeDecodeError as e:
            raise MetadataError(f"Encountered a tag value that is not valid UTF-8: {val!r}") from e
    if isinstance(val, mutagen.id3.ID3TimeStamp):  # type: ignore
        return val.text
    raise MetadataError(f"Encountered a tag value of type {type(val)}")


def _get_tag(t: Any, keys: list[str]) -> str | None:
    """Return the first value of the first present key."""
    for k in keys:
        try:
            raw_values = t[k].text if isinstance(t, mutagen.id3.ID3) else t[k]
        except (KeyError, ValueError):
            continue
        for val in raw_values:
            return _stringify(val)
    return None


def _get_present_tags(t: Any, keys: list[str]) -> list[tuple[str, str]]:
    rval: list[tuple[str, str]] = []
    for k in keys:
        if (value := _get_tag(t, [k])) is not None:
            rval.append((k, value))
    return rval


def _get_tuple_tag(t: Any, key: str) -> tuple[int | None, int | None]:
    """MP4 stores trackno/discno as a single-element list of (no, total) int tuples."""
    try:
        raw_values = t[key]
    except KeyError:
        return None, None
    for val in raw_values:
        if not isinstance(val, tuple) or len(val) != 2:
            logger.debug(f"Ignoring malformed {key} tag value {val!r}")
            return None, None
        number, total = val
        return number or None, total or None
    return None, None
