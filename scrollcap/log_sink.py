"""
Scrollcap - Log Sink
====================

Append-only log file for one capture run, plus the helpers that decide
its name:

    command mode:  <command>_<YYYYMMDDHHMMSS>.log
    serial mode:   serial_<sanitized port>_<YYYYMMDDHHMMSS>.log

When the command is a privilege wrapper (``sudo ls`` etc.) the log is named
after the wrapped command instead.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from scrollcap.errors import LogOpenError

if TYPE_CHECKING:
    from scrollcap.units import OutputUnit

logger = logging.getLogger(__name__)

LOG_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
PRIVILEGE_WRAPPERS = ("sudo", "doas", "pkexec")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------
def run_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(LOG_TIMESTAMP_FORMAT)


def _last_segment(path: str) -> str:
    return re.split(r"[/\\]", path)[-1]


def sanitize_port_name(port: str) -> str:
    """
    Reduce a port path to something safe for a file name.

    ``/dev/ttyUSB0`` -> ``ttyUSB0``, ``\\\\.\\COM3`` -> ``COM3``.  Only
    ASCII letters, digits, ``_`` and ``-`` survive.
    """
    return _UNSAFE_CHARS.sub("", _last_segment(port))


def is_privilege_wrapper(command: str, wrappers: Iterable[str] = PRIVILEGE_WRAPPERS) -> bool:
    return _last_segment(command) in tuple(wrappers)


def command_log_name(
    command: str,
    args: Sequence[str],
    timestamp: str,
    wrappers: Iterable[str] = PRIVILEGE_WRAPPERS,
) -> str:
    base = command
    if is_privilege_wrapper(command, wrappers):
        if not args:
            raise ValueError(f"{command} needs a command to run")
        base = args[0]
    return f"{_last_segment(base)}_{timestamp}.log"


def serial_log_name(port: str, timestamp: str) -> str:
    return f"serial_{sanitize_port_name(port)}_{timestamp}.log"


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------
class LogSink:
    """
    Append-only text log.  Each unit is written as its rendered string
    followed by its terminator.  Writes are buffered; callers decide when
    to flush.
    """

    def __init__(self, path: str):
        self.path = path
        self.entries = 0
        try:
            self._file = open(path, "a", encoding="utf-8")
        except OSError as exc:
            raise LogOpenError(f"cannot open log file {path}: {exc}") from exc
        logger.info(f"Logging to {os.path.abspath(path)}")

    @property
    def closed(self) -> bool:
        return self._file.closed

    def write(self, unit: OutputUnit) -> None:
        self._file.write(unit.render() + unit.terminator)
        self.entries += 1

    def flush(self) -> None:
        self._file.flush()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
            logger.debug(f"Closed {self.path} after {self.entries} entries")

    def __enter__(self) -> LogSink:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
