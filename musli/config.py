"""
The config module provides the configuration record and its parsing logic.

Every key is optional: a missing configuration file yields the defaults. Invalid values produce
detailed errors, and unrecognized keys produce a warning.
"""

from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import appdirs
import tomllib

from musli.common import MusliExpectedError

XDG_CONFIG_MUSLI = Path(appdirs.user_config_dir("musli"))
CONFIG_PATH = XDG_CONFIG_MUSLI / "config.toml"

XDG_DATA_MUSLI = Path(appdirs.user_data_dir("musli"))

DEFAULT_MUSIC_DIR = "~/Music"
DEFAULT_EXEC_CMD = "mpv"

logger = logging.getLogger(__name__)


class ConfigDecodeError(MusliExpectedError):
    pass


class InvalidConfigValueError(MusliExpectedError, ValueError):
    pass


def _expand_path(value: str) -> Path:
    return Path(os.path.expandvars(value)).expanduser()


@dataclass(frozen=True)
class Config:
    music_dir: Path
    data_dir: Path
    # The player command. Track paths are appended as trailing arguments.
    exec_cmd: str
    show_stdout: bool
    show_stderr: bool
    # Capture the player's output into a log file.
    debug: bool

    @classmethod
    def parse(cls, config_path_override: Path | None = None) -> Config:
        # As we parse, delete consumed values from the data dictionary. If any are left over at the
        # end of the config, warn that unknown config keys were found.
        cfgpath = config_path_override or CONFIG_PATH
        try:
            with cfgpath.open("rb") as fp:
                data = tomllib.load(fp)
        except FileNotFoundError:
            logger.debug(f"No configuration file found at {cfgpath}, using defaults")
            data = {}
        except tomllib.TOMLDecodeError as e:
            raise ConfigDecodeError(
                f"Failed to decode configuration file: invalid TOML: {e}"
            ) from e

        try:
            music_dir_value = data.pop("music_dir", DEFAULT_MUSIC_DIR)
            if not isinstance(music_dir_value, str):
                raise ValueError(f"Must be a string: got {type(music_dir_value)}")
            music_dir = _expand_path(music_dir_value)
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid value for music_dir in configuration file ({cfgpath}): {e}"
            ) from e

        try:
            data_dir_value = data.pop("data_dir", None)
            if data_dir_value is None:
                data_dir = XDG_DATA_MUSLI
            elif isinstance(data_dir_value, str):
                data_dir = _expand_path(data_dir_value)
            else:
                raise ValueError(f"Must be a string: got {type(data_dir_value)}")
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid value for data_dir in configuration file ({cfgpath}): {e}"
            ) from e

        try:
            exec_cmd = data.pop("exec_cmd", DEFAULT_EXEC_CMD)
            if not isinstance(exec_cmd, str):
                raise ValueError(f"Must be a string: got {type(exec_cmd)}")
            if not exec_cmd.strip():
                raise ValueError("Must not be empty")
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid value for exec_cmd in configuration file ({cfgpath}): {e}"
            ) from e

        flags: dict[str, bool] = {}
        for key in ["show_stdout", "show_stderr", "debug"]:
            value = data.pop(key, False)
            if not isinstance(value, bool):
                raise InvalidConfigValueError(
                    f"Invalid value for {key} in configuration file ({cfgpath}): must be a bool: got {type(value)}"
                )
            flags[key] = value

        if data:
            logger.warning(
                f"Unrecognized options found in configuration file: {', '.join(sorted(data))}"
            )

        return Config(
            music_dir=music_dir,
            data_dir=data_dir,
            exec_cmd=exec_cmd,
            show_stdout=flags["show_stdout"],
            show_stderr=flags["show_stderr"],
            debug=flags["debug"],
        )

    @functools.cached_property
    def library_path(self) -> Path:
        return self.data_dir / "library.db"
