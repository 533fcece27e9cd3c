"""
Scrollcap - Error Types
=======================

Fatal conditions raised by the sources and the log sink.  The command line
front-end catches ``CaptureError`` and turns it into exit status 1.
"""


class CaptureError(Exception):
    """Base class for fatal capture errors."""


class SourceOpenError(CaptureError):
    """A command could not be spawned or a serial port could not be opened."""


class LogOpenError(CaptureError):
    """The log file could not be created or opened for appending."""


class StreamDecodeError(CaptureError):
    """A line of process output is not valid UTF-8."""

    def __init__(self, line_number: int, raw: bytes, reason: str):
        self.line_number = line_number
        self.raw = raw
        super().__init__(f"line {line_number} is not valid UTF-8: {reason}")
