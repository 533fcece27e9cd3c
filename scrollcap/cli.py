"""
Scrollcap - Command Line
========================

    scrollcap command <cmd> [args...]   # capture a command's stdout
    scrollcap serial <port> <baud>      # capture a serial port until Ctrl-C

Global options go before the mode:

    scrollcap -v --log-dir logs serial /dev/ttyUSB0 115200

Exit status: 0 on normal end or Ctrl-C, 1 when the command, the port or the
log file cannot be used (or a process line is not valid UTF-8), 2 on usage
errors.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
from typing import Optional, Sequence

from scrollcap.cancellation import install_interrupt_handler, restore_handlers
from scrollcap.capture import CaptureLoop
from scrollcap.errors import CaptureError, LogOpenError
from scrollcap.log_sink import (
    LogSink,
    command_log_name,
    is_privilege_wrapper,
    run_timestamp,
    serial_log_name,
)
from scrollcap.process_backend import ProcessSource
from scrollcap.serial_backend import SerialSource
from scrollcap.settings import CaptureSettings, load_settings

logger = logging.getLogger("scrollcap")


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid baud rate: {text!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"baud rate must be positive: {text!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scrollcap",
        description="Show the last lines of a command or serial port and log everything to a file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Diagnostics on stderr (-v info, -vv debug).",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for the log file (default: current directory).",
    )
    parser.add_argument(
        "--settings",
        default=None,
        help="JSON settings file (default: scrollcap_settings.json if present).",
    )
    modes = parser.add_subparsers(dest="mode", metavar="MODE")
    modes.required = True

    command = modes.add_parser("command", help="Capture the stdout of a command.")
    command.add_argument("cmd", help="Command to run.")
    command.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the command.")

    serial_mode = modes.add_parser("serial", help="Capture a serial port until Ctrl-C.")
    serial_mode.add_argument("port", help="Serial port (e.g. COM3, /dev/ttyUSB0).")
    serial_mode.add_argument("baud", type=_positive_int, help="Baud rate (e.g. 115200).")
    return parser


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _open_sink(log_dir: str, name: str) -> LogSink:
    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError as exc:
        raise LogOpenError(f"cannot create log directory {log_dir}: {exc}") from exc
    return LogSink(os.path.join(log_dir, name))


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------
def run_command(
    cmd: str,
    args: Sequence[str],
    cancel: threading.Event,
    settings: CaptureSettings,
    timestamp: str,
) -> int:
    print(f"Executing command: {cmd} {list(args)}")
    source = ProcessSource(cmd, args, cancel=cancel)
    source.start()
    try:
        name = command_log_name(cmd, args, timestamp, settings.privilege_wrappers)
        with _open_sink(settings.log_dir, name) as sink:
            result = CaptureLoop(source, sink).run()
    finally:
        source.close()
    print(f"Log written to {sink.path} ({result.units} lines)")
    return 0


def run_serial(
    port: str,
    baud: int,
    cancel: threading.Event,
    settings: CaptureSettings,
    timestamp: str,
) -> int:
    source = SerialSource(
        port,
        baud,
        cancel,
        read_timeout=settings.read_timeout,
        read_size=settings.read_size,
    )
    source.start()
    try:
        with _open_sink(settings.log_dir, serial_log_name(port, timestamp)) as sink:
            print(f"Listening on {port} @ {baud} baud (Ctrl-C to stop)")
            result = CaptureLoop(source, sink).run()
    finally:
        source.close()
    print(f"Log written to {sink.path} ({result.units} chunks)")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    settings = load_settings(args.settings)
    if args.log_dir:
        settings.log_dir = args.log_dir

    if args.mode == "command" and not args.args and is_privilege_wrapper(args.cmd, settings.privilege_wrappers):
        parser.error(f"{args.cmd} needs a command to run")

    timestamp = run_timestamp()
    cancel = threading.Event()
    previous = install_interrupt_handler(cancel)
    try:
        if args.mode == "command":
            return run_command(args.cmd, args.args, cancel, settings, timestamp)
        return run_serial(args.port, args.baud, cancel, settings, timestamp)
    except CaptureError as exc:
        logger.error(str(exc))
        return 1
    except OSError as exc:
        logger.error(f"Log write failed: {exc}")
        return 1
    finally:
        restore_handlers(previous)
