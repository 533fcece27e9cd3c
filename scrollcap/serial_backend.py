"""
Scrollcap - PySerial Source
===========================

Polls a serial port with a short read timeout and yields every non-empty
read as a ``TimestampedChunk``.

USAGE
-----
    import threading
    from scrollcap.serial_backend import SerialSource

    cancel = threading.Event()
    with SerialSource("/dev/ttyUSB0", 115200, cancel) as source:
        for chunk in source:          # ends once cancel is set
            print(chunk.render())

The cancellation flag is checked before every read, so with the default
10 ms timeout the loop notices a Ctrl-C within one poll interval.  A read
only becomes a chunk after it has fully returned; nothing is dropped
mid-flight.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterator, Optional

import serial  # pyserial

from scrollcap.errors import SourceOpenError
from scrollcap.units import TimestampedChunk

logger = logging.getLogger(__name__)

DEFAULT_READ_TIMEOUT = 0.01
DEFAULT_READ_SIZE = 1000


class SerialSource:
    """Timeout-polled serial port, stopped through a shared ``threading.Event``."""

    flush_each_unit = True

    def __init__(
        self,
        port: str,
        baudrate: int,
        cancel: threading.Event,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        read_size: int = DEFAULT_READ_SIZE,
        serial_factory: Optional[Callable[..., serial.Serial]] = None,
    ):
        self.port = port
        self.baudrate = baudrate
        self.cancel = cancel
        self.read_timeout = read_timeout
        self.read_size = read_size
        self.read_errors = 0
        self._serial_factory = serial_factory
        self._ser: Optional[serial.Serial] = None

    # -- public API ----------------------------------------------------------
    def start(self) -> None:
        """Open the serial port."""
        if self._ser is not None:
            return
        try:
            factory = self._serial_factory or serial.Serial
            self._ser = factory(
                self.port, self.baudrate, timeout=self.read_timeout
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            raise SourceOpenError(f"cannot open {self.port}: {exc}") from exc
        logger.info(f"Opened {self.port} @ {self.baudrate} baud")

    def close(self) -> None:
        """Close the port if it is open."""
        if self._ser is not None:
            if self._ser.is_open:
                self._ser.close()
            self._ser = None
            logger.info(f"Closed {self.port}")

    @property
    def is_open(self) -> bool:
        return self._ser is not None and self._ser.is_open

    def __enter__(self) -> SerialSource:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __iter__(self) -> Iterator[TimestampedChunk]:
        if self._ser is None:
            self.start()
        while not self.cancel.is_set():
            data = self._read()
            if data:
                yield TimestampedChunk.from_bytes(data)
        print(f"\nClosing serial port {self.port}")

    # -- internals -----------------------------------------------------------
    def _read(self) -> bytes:
        """One bounded read.  Timeouts return b''; other errors are reported."""
        try:
            return self._ser.read(self.read_size)
        except serial.SerialException as exc:
            self.read_errors += 1
            logger.error(f"Read error on {self.port}: {exc}")
            time.sleep(self.read_timeout)
            return b""
