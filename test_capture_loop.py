#!/usr/bin/env python3
import io
from datetime import datetime

import pytest

from scrollcap.capture import (
    CLEAR_SCREEN,
    HISTORY_CAPACITY,
    CaptureLoop,
    RollingHistory,
    TerminalRenderer,
)
from scrollcap.log_sink import LogSink
from scrollcap.units import TextLine, TimestampedChunk


class RecordingSink:
    """Stands in for LogSink and remembers what happened, in order."""

    def __init__(self, events=None):
        self.events = events if events is not None else []
        self.closed = False

    def write(self, unit):
        self.events.append(("write", unit.render()))

    def flush(self):
        self.events.append(("flush",))


class RecordingRenderer:
    def __init__(self, events):
        self.events = events
        self.frames = []

    def redraw(self, history):
        frame = [unit.render() for unit in history]
        self.frames.append(frame)
        self.events.append(("redraw", len(frame)))


class ChunkSource:
    flush_each_unit = True

    def __init__(self, chunks):
        self.chunks = chunks

    def __iter__(self):
        return iter(self.chunks)


def test_history_is_bounded_and_keeps_newest():
    history = RollingHistory()
    for n in range(1, 306):
        history.append(TextLine(str(n)))
        assert len(history) == min(n, HISTORY_CAPACITY)
    texts = [unit.text for unit in history]
    assert texts == [str(n) for n in range(6, 306)]


def test_history_small_capacity_is_fifo():
    history = RollingHistory(capacity=2)
    for text in "abc":
        history.append(TextLine(text))
    assert [u.text for u in history.snapshot()] == ["b", "c"]
    assert history.capacity == 2


def test_renderer_clears_then_prints_history():
    stream = io.StringIO()
    TerminalRenderer(stream).redraw([TextLine("a"), TextLine("b")])
    assert stream.getvalue() == CLEAR_SCREEN + "a\nb\n"


def test_renderer_prints_chunks_without_extra_newline():
    stream = io.StringIO()
    chunk = TimestampedChunk("hi", datetime(2024, 1, 2, 3, 4, 5))
    TerminalRenderer(stream).redraw([chunk])
    assert stream.getvalue() == CLEAR_SCREEN + "\n[2024-01-02 03:04:05]\nhi"


def test_redraw_happens_before_log_write():
    events = []
    renderer = RecordingRenderer(events)
    sink = RecordingSink(events)
    CaptureLoop([TextLine("a"), TextLine("b")], sink, renderer=renderer).run()
    assert events == [
        ("redraw", 1),
        ("write", "a"),
        ("redraw", 2),
        ("write", "b"),
        ("flush",),
    ]


def test_line_source_flushes_once_at_end():
    events = []
    sink = RecordingSink(events)
    lines = [TextLine(str(n)) for n in range(10)]
    CaptureLoop(lines, sink, renderer=RecordingRenderer([])).run()
    assert events.count(("flush",)) == 1
    assert events[-1] == ("flush",)


def test_chunk_source_flushes_every_unit():
    events = []
    sink = RecordingSink(events)
    now = datetime(2024, 1, 1)
    source = ChunkSource([TimestampedChunk("x", now), TimestampedChunk("y", now)])
    CaptureLoop(source, sink, renderer=RecordingRenderer([])).run()
    writes = [i for i, e in enumerate(events) if e[0] == "write"]
    for index in writes:
        assert events[index + 1] == ("flush",)


def test_305_units_log_everything_but_screen_shows_last_300(tmp_path):
    events = []
    renderer = RecordingRenderer(events)
    path = tmp_path / "out.log"
    with LogSink(str(path)) as sink:
        result = CaptureLoop(
            [TextLine(f"line {n}") for n in range(1, 306)], sink, renderer=renderer
        ).run()

    assert result.units == 305
    assert [u.text for u in result.history] == [f"line {n}" for n in range(6, 306)]
    assert renderer.frames[-1][0] == "line 6"
    assert len(renderer.frames[-1]) == 300
    logged = path.read_text(encoding="utf-8").splitlines()
    assert logged == [f"line {n}" for n in range(1, 306)]


def test_log_is_flushed_when_source_fails(tmp_path):
    def failing_source():
        yield TextLine("kept")
        raise RuntimeError("boom")

    path = tmp_path / "out.log"
    sink = LogSink(str(path))
    try:
        CaptureLoop(failing_source(), sink, renderer=RecordingRenderer([])).run()
    except RuntimeError:
        pass
    assert path.read_text(encoding="utf-8") == "kept\n"
    sink.close()


class FailingSink(RecordingSink):
    def __init__(self, fail_on):
        super().__init__()
        self.fail_on = fail_on

    def write(self, unit):
        if self.fail_on == "write":
            raise OSError(28, "No space left on device")
        super().write(unit)

    def flush(self):
        if self.fail_on == "flush":
            raise OSError(5, "Input/output error")
        super().flush()


@pytest.mark.parametrize("fail_on", ["write", "flush"])
def test_log_errors_propagate(fail_on):
    sink = FailingSink(fail_on)
    loop = CaptureLoop([TextLine("a"), TextLine("b")], sink, renderer=RecordingRenderer([]))
    with pytest.raises(OSError):
        loop.run()


def test_chunk_flush_error_stops_after_first_unit():
    sink = FailingSink("flush")
    renderer = RecordingRenderer([])
    now = datetime(2024, 1, 1)
    source = ChunkSource([TimestampedChunk("x", now), TimestampedChunk("y", now)])
    with pytest.raises(OSError):
        CaptureLoop(source, sink, renderer=renderer).run()
    assert len(renderer.frames) == 1
