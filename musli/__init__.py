from musli.audiotags import (
    SUPPORTED_AUDIO_EXTENSIONS,
    AudioTags,
    MetadataError,
    read_metadata,
)
from musli.common import (
    VERSION,
    MusliError,
    MusliExpectedError,
    initialize_logging,
)
from musli.config import Config
from musli.library import (
    Album,
    Library,
    StoreError,
    Track,
    calculate_album_logtext,
    close_library,
    connect,
)
from musli.player import AlbumDoesNotExistError, PlayerError, play_album, play_paths
from musli.queries import (
    InvalidQueryError,
    albums_by_artist,
    albums_by_year,
    albums_by_year_range,
    all_track_paths,
    one_random_album,
    random_albums,
    search_albums,
    track_paths_for_album,
)
from musli.scan import (
    MusicDirectoryNotFoundError,
    ScanReport,
    TidyReport,
    add_path,
    delete_track,
    scan,
    tidy,
)

__all__ = [
    # Plumbing
    "initialize_logging",
    "VERSION",
    # Errors
    "MusliError",
    "MusliExpectedError",
    "MetadataError",
    "StoreError",
    "InvalidQueryError",
    "MusicDirectoryNotFoundError",
    "AlbumDoesNotExistError",
    "PlayerError",
    # Configuration
    "Config",
    # Tagging
    "SUPPORTED_AUDIO_EXTENSIONS",
    "AudioTags",
    "read_metadata",
    # Library
    "Album",
    "Track",
    "Library",
    "connect",
    "close_library",
    "calculate_album_logtext",
    # Synchronization
    "ScanReport",
    "TidyReport",
    "scan",
    "tidy",
    "add_path",
    "delete_track",
    # Queries
    "random_albums",
    "one_random_album",
    "albums_by_artist",
    "albums_by_year",
    "albums_by_year_range",
    "search_albums",
    "track_paths_for_album",
    "all_track_paths",
    # Player
    "play_album",
    "play_paths",
]

initialize_logging(__name__)
