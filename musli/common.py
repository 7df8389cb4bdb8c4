"""
The common module is our grab bag of shared toys: the version, the base error types, and logging
setup.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import appdirs

with (Path(__file__).parent / ".version").open("r") as fp:
    VERSION = fp.read().strip()


class MusliError(Exception):
    pass


class MusliExpectedError(MusliError):
    """These errors are printed without traceback."""

    pass


def log_dir() -> Path:
    # appdirs by default has Unix log to $XDG_CACHE_HOME, but I'd rather write logs to $XDG_STATE_HOME.
    log_home = Path(appdirs.user_state_dir("musli"))
    if appdirs.system == "darwin":
        log_home = Path(appdirs.user_log_dir("musli"))
    return log_home


__logging_initialized: set[str | None] = set()


def initialize_logging(logger_name: str | None = None) -> None:
    if logger_name in __logging_initialized:
        return
    __logging_initialized.add(logger_name)

    logger = logging.getLogger(logger_name)

    # Useful for debugging tests, since pytest captures and hides our own handlers' output.
    log_despite_testing = os.environ.get("LOG_TEST", False)

    # Add a logging handler for stdout unless we are testing. Pytest
    # captures logging output on its own, so by default, we do not attach our own.
    if "pytest" not in sys.modules or log_despite_testing:  # pragma: no cover
        logger.setLevel(logging.INFO)
        log_home = log_dir()
        log_home.mkdir(parents=True, exist_ok=True)
        log_file = log_home / "musli.log"

        simple_formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        verbose_formatter = logging.Formatter(
            "[ts=%(asctime)s.%(msecs)03d] [pid=%(process)d] [src=%(name)s:%(lineno)s] %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(simple_formatter if not log_despite_testing else verbose_formatter)
        logger.addHandler(stream_handler)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=20 * 1024 * 1024,
            backupCount=10,
        )
        file_handler.setFormatter(verbose_formatter)
        logger.addHandler(file_handler)
