"""
Scrollcap - Process Source
==========================

Runs an external command and yields its stdout one ``TextLine`` at a time.

USAGE
-----
    with ProcessSource("ping", ["-c", "3", "localhost"]) as source:
        for line in source:
            print(line.text)

When a cancellation ``threading.Event`` is passed, a watcher thread
terminates the child once it is set; the read loop then sees EOF and the
capture ends normally with everything read so far logged.

Lines must be valid UTF-8.  Unlike the serial source there is no lossy
recovery: an undecodable line raises ``StreamDecodeError`` and ends the
capture.  Whether that asymmetry is wanted is still an open question, so it
is kept as-is.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from typing import Iterator, Optional, Sequence

from scrollcap.errors import SourceOpenError, StreamDecodeError
from scrollcap.units import TextLine

logger = logging.getLogger(__name__)


class ProcessSource:
    """Child process whose stdout is read line by line until EOF."""

    flush_each_unit = False

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        cancel: Optional[threading.Event] = None,
    ):
        self.command = command
        self.args = list(args)
        self.cancel = cancel
        self.returncode: Optional[int] = None
        self._proc: Optional[subprocess.Popen] = None
        self._watcher: Optional[threading.Thread] = None
        self._closed = threading.Event()

    # -- public API ----------------------------------------------------------
    def start(self) -> None:
        """Spawn the child with stdout piped; stdin and stderr are inherited."""
        if self._proc is not None:
            return
        try:
            self._proc = subprocess.Popen(
                [self.command, *self.args],
                stdout=subprocess.PIPE,
            )
        except OSError as exc:
            raise SourceOpenError(f"cannot run {self.command}: {exc}") from exc
        logger.info(f"Started {self.command} (pid {self._proc.pid})")
        if self.cancel is not None:
            self._closed.clear()
            self._watcher = threading.Thread(
                target=self._watch_cancel, args=(self._proc,), daemon=True
            )
            self._watcher.start()

    def close(self) -> None:
        """Close the pipe and reap the child, terminating it if still running."""
        if self._proc is None:
            return
        proc, self._proc = self._proc, None
        self._closed.set()
        if self._watcher is not None:
            self._watcher.join(timeout=2)
            self._watcher = None
        if proc.stdout:
            proc.stdout.close()
        if proc.poll() is None:
            proc.terminate()
        self.returncode = proc.wait()
        if self.returncode:
            logger.warning(f"{self.command} exited with status {self.returncode}")
        else:
            logger.info(f"{self.command} exited with status {self.returncode}")

    @property
    def is_running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def __enter__(self) -> ProcessSource:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __iter__(self) -> Iterator[TextLine]:
        if self._proc is None:
            self.start()
        for number, raw in enumerate(self._proc.stdout, start=1):
            yield TextLine(self._decode_line(number, raw))

    # -- internals -----------------------------------------------------------
    def _watch_cancel(self, proc: subprocess.Popen) -> None:
        """Terminate the child once cancelled; the reader then drains to EOF."""
        while not self._closed.is_set():
            if self.cancel.wait(timeout=0.05):
                if proc.poll() is None:
                    logger.info(f"Cancelled, terminating {self.command}")
                    proc.terminate()
                return

    @staticmethod
    def _decode_line(number: int, raw: bytes) -> str:
        if raw.endswith(b"\n"):
            raw = raw[:-1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise StreamDecodeError(number, raw, exc.reason) from exc
