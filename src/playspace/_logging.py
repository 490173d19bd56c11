"""Logging for playspace.

The library only attaches a NullHandler to the ``playspace`` logger;
applications decide where records go. PLAYSPACE_LOG_LEVEL sets the
logger's level at import time.

What gets logged:
    DEBUG    lock waits, scratch create/remove, environment restore,
             abandoned sessions torn down by the finalizer
    INFO     "Entered playspace" / "Left playspace"
    WARNING  degraded snapshots, setup failures, child ignoring SIGTERM
    ERROR    teardown step failures, child that survived SIGKILL

Every record carries its details in ``extra`` (domain, directory, path,
error, ...). The CLI handler prints those fields after the message:

    ERROR [2026-02-25 10:02:54] playspace.resource_cleanup - Scratch directory removal failed path=/tmp/playspace-x1 error=...

CLI records go through a bounded queue drained by a daemon thread.
Teardown logs while the exclusion lock is held, and the abandoned-session
finalizer logs from inside garbage collection, so emitting a record must
never wait on stderr. flush_logging() drains the queue before exit.
"""

import contextlib
import logging
import logging.handlers
import os
import queue

import click

from playspace.constants import LOG_LEVEL_ENV_VAR

LIBRARY_LOGGER_NAME: str = "playspace"

logging.getLogger(LIBRARY_LOGGER_NAME).addHandler(logging.NullHandler())

_env_level = logging.getLevelNamesMapping().get(os.environ.get(LOG_LEVEL_ENV_VAR, "").strip().upper())
if _env_level:  # NOTSET (0) or unknown name (None) leaves the default
    logging.getLogger(LIBRARY_LOGGER_NAME).setLevel(_env_level)

_FMT = "%(levelname)s [%(asctime)s] %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Teardown of one session logs a handful of records; 256 absorbs a burst of sessions
_QUEUE_CAPACITY = 256

# extra={...} keys worth showing on a terminal, in display order
_DETAIL_KEYS = (
    "domain",
    "directory",
    "saved_directory",
    "path",
    "pid",
    "error",
    "errors",
    "open_files",
    "discarded_errors",
)

_LEVEL_STYLES: dict[int, dict[str, object]] = {
    logging.ERROR: {"fg": "red"},
    logging.WARNING: {"fg": "yellow"},
}


class _DetailFormatter(logging.Formatter):
    """Standard line plus the playspace ``extra`` fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        details = [
            f"{key}={value}" for key in _DETAIL_KEYS if (value := getattr(record, key, None)) not in (None, [], "")
        ]
        return " ".join([line, *details])


class _ClickHandler(logging.Handler):
    """Writes records to stderr with click, colored by level.

    Runs on the queue listener thread only.
    """

    def __init__(self) -> None:
        super().__init__()
        self.formatter = _DetailFormatter(fmt=_FMT, datefmt=_DATEFMT)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            style = _LEVEL_STYLES.get(record.levelno, {"dim": True})
            click.echo(click.style(self.format(record), **style), err=True)  # type: ignore[arg-type]
        except BlockingIOError:
            pass  # stderr full, drop
        except Exception:  # noqa: BLE001
            self.handleError(record)


class _NonBlockingHandler(logging.handlers.QueueHandler):
    """Queue-backed handler; a full queue drops the record."""

    def __init__(self) -> None:
        q: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=_QUEUE_CAPACITY)
        super().__init__(q)
        self._listener = logging.handlers.QueueListener(q, _ClickHandler(), respect_handler_level=False)
        self._listener.start()

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # Same process: the extra fields must survive untouched for _DetailFormatter
        return record

    def enqueue(self, record: logging.LogRecord) -> None:
        with contextlib.suppress(queue.Full):
            self.queue.put_nowait(record)

    def close(self) -> None:
        # stop() drains what is already queued
        self._listener.stop()
        super().close()


def get_logger(name: str) -> logging.Logger:
    """Get a module logger under the ``playspace`` hierarchy."""
    return logging.getLogger(name)


def configure_logging(
    *,
    level: int | str | None = None,
    quiet: bool = False,
) -> None:
    """Send playspace records to stderr (CLI entry point).

    Idempotent: the stderr handler is installed once.

    Args:
        level: Log level (e.g. logging.DEBUG, "WARNING"). Overrides
            PLAYSPACE_LOG_LEVEL.
        quiet: Only teardown failures and other errors. Takes precedence
            over level.
    """
    lib_logger = logging.getLogger(LIBRARY_LOGGER_NAME)

    if not any(isinstance(h, _NonBlockingHandler) for h in lib_logger.handlers):
        lib_logger.addHandler(_NonBlockingHandler())

    if quiet:
        lib_logger.setLevel(logging.ERROR)
    elif level is not None:
        lib_logger.setLevel(level)


def flush_logging() -> None:
    """Write out queued records and remove the stderr handler.

    The CLI calls this before exiting so that teardown failures logged
    in the last moments are not lost with the daemon thread.
    """
    lib_logger = logging.getLogger(LIBRARY_LOGGER_NAME)
    for handler in [h for h in lib_logger.handlers if isinstance(h, _NonBlockingHandler)]:
        lib_logger.removeHandler(handler)
        handler.close()
