"""
Scrollcap - Output Units
========================

The two kinds of data the capture loop understands:

    TextLine           one newline-stripped line of process stdout
    TimestampedChunk   one non-empty serial read, lossily decoded and stamped

Both render to a string that is shown on screen and written to the log
verbatim, followed by ``terminator``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

CHUNK_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class TextLine:
    text: str

    terminator = "\n"

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class TimestampedChunk:
    """A serial read.  ``captured_at`` has second resolution."""

    text: str
    captured_at: datetime

    terminator = ""

    @classmethod
    def from_bytes(cls, data: bytes, now: Optional[datetime] = None) -> TimestampedChunk:
        now = now or datetime.now()
        return cls(
            text=data.decode("utf-8", errors="replace"),
            captured_at=now.replace(microsecond=0),
        )

    @property
    def timestamp(self) -> str:
        return self.captured_at.strftime(CHUNK_TIMESTAMP_FORMAT)

    def render(self) -> str:
        return f"\n[{self.timestamp}]\n{self.text}"


OutputUnit = Union[TextLine, TimestampedChunk]
