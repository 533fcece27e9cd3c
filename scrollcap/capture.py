"""
Scrollcap - Capture Loop
========================

One loop for every source.  For each unit that arrives:

    1. append it to the rolling history (oldest entry evicted at capacity)
    2. clear the terminal and reprint the whole history
    3. append the rendered unit to the log sink

Sources that may be killed externally (serial) set ``flush_each_unit`` so
the log is flushed after every unit; line sources are flushed once at EOF.
"""

from __future__ import annotations

import logging
import sys
from collections import deque
from dataclasses import dataclass
from typing import IO, Iterable, Iterator, Optional

from scrollcap.log_sink import LogSink
from scrollcap.units import OutputUnit

logger = logging.getLogger(__name__)

HISTORY_CAPACITY = 300
CLEAR_SCREEN = "\x1b[2J\x1b[1;1H"


# ---------------------------------------------------------------------------
# Rolling history
# ---------------------------------------------------------------------------
class RollingHistory:
    """Fixed-capacity FIFO window over the most recent units."""

    def __init__(self, capacity: int = HISTORY_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._units: deque[OutputUnit] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._units.maxlen

    def append(self, unit: OutputUnit) -> None:
        self._units.append(unit)

    def snapshot(self) -> list[OutputUnit]:
        return list(self._units)

    def __len__(self) -> int:
        return len(self._units)

    def __iter__(self) -> Iterator[OutputUnit]:
        return iter(self._units)


# ---------------------------------------------------------------------------
# Terminal renderer
# ---------------------------------------------------------------------------
class TerminalRenderer:
    """Full-screen repaint of the history, most recent unit last."""

    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream if stream is not None else sys.stdout

    def redraw(self, history: Iterable[OutputUnit]) -> None:
        parts = [CLEAR_SCREEN]
        for unit in history:
            parts.append(unit.render())
            parts.append(unit.terminator)
        self.stream.write("".join(parts))
        self.stream.flush()


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------
@dataclass
class CaptureResult:
    units: int
    history: RollingHistory


class CaptureLoop:
    def __init__(
        self,
        source: Iterable[OutputUnit],
        sink: LogSink,
        renderer: Optional[TerminalRenderer] = None,
        history: Optional[RollingHistory] = None,
    ):
        self.source = source
        self.sink = sink
        self.renderer = renderer or TerminalRenderer()
        self.history = history if history is not None else RollingHistory()
        self.flush_each_unit = getattr(source, "flush_each_unit", False)

    def run(self) -> CaptureResult:
        """Drain the source.  Errors propagate once the log has been flushed."""
        count = 0
        try:
            for unit in self.source:
                self.history.append(unit)
                self.renderer.redraw(self.history)
                self.sink.write(unit)
                if self.flush_each_unit:
                    self.sink.flush()
                count += 1
        finally:
            if not self.sink.closed:
                self.sink.flush()
        logger.info(f"Capture finished after {count} units")
        return CaptureResult(units=count, history=self.history)
