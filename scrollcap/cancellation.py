"""
Scrollcap - Interrupt Handling
==============================

Ctrl-C (and SIGTERM) only set the shared cancellation ``threading.Event``.
The handler never touches the history, the renderer or the log sink; the
capture loop notices the flag on its next poll and shuts down normally.
"""

from __future__ import annotations

import signal
import threading
from typing import Iterable

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_interrupt_handler(
    cancel: threading.Event,
    signals: Iterable[signal.Signals] = DEFAULT_SIGNALS,
) -> dict:
    """Route *signals* to ``cancel.set()``.  Returns the previous handlers."""

    def _handler(signum, frame):
        cancel.set()

    previous = {}
    for signum in signals:
        previous[signum] = signal.signal(signum, _handler)
    return previous


def restore_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)
