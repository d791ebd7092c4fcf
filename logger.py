"""
logger.py
---------
Logging for the migration tool: every module logs under the ``anonymigrate``
logger tree via ``get_logger(__name__)``.

Console records go to stderr, leaving stdout to progress lines and analysis
reports.  Setting ``LOG_FILE`` adds a DEBUG-level file log that also records
the source location of each message, which is what you want when one batch
fails deep into a long run.  ``--log-level`` on the command line reaches
:func:`set_level`; the file log keeps logging everything.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from config import CONFIG, get_log_level

ROOT_LOGGER = "anonymigrate"
_TIMESTAMP = "%Y-%m-%dT%H:%M:%S"

_console = logging.StreamHandler(sys.stderr)


def _formatter(with_location: bool) -> logging.Formatter:
    if with_location:
        fmt = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
    else:
        fmt = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
    return logging.Formatter(fmt=fmt, datefmt=_TIMESTAMP)


def _attach_file_log(root: logging.Logger, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        root.warning("Log file '%s' unavailable, logging to console only: %s", path, exc)
        return
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(_formatter(with_location=True))
    root.addHandler(handler)


def _setup() -> None:
    root = logging.getLogger(ROOT_LOGGER)
    if _console in root.handlers:
        return
    # The logger passes everything; handlers decide what is shown where.
    root.setLevel(logging.DEBUG if CONFIG.migration.log_file else get_log_level())
    _console.setLevel(get_log_level())
    _console.setFormatter(_formatter(with_location=False))
    root.addHandler(_console)
    if CONFIG.migration.log_file:
        _attach_file_log(root, Path(CONFIG.migration.log_file))


_setup()


def get_logger(name: str) -> logging.Logger:
    """
    Logger for one module, e.g. ``anonymigrate.core.pipeline``.

    Example::

        log = get_logger(__name__)
        log.info("Destination table '%s' ready", name)
        log.debug("Batch written to '%s': %d rows", name, count)
    """
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def set_level(level_name: str) -> None:
    """Change the console verbosity; unknown names leave it unchanged."""
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        get_logger(__name__).warning(
            "Unknown log level '%s'; keeping the current level.", level_name
        )
        return
    _console.setLevel(level)
    root = logging.getLogger(ROOT_LOGGER)
    if not CONFIG.migration.log_file:
        root.setLevel(level)
