#!/usr/bin/env python3
"""
Scrollcap — live capture viewer
===============================

Launch:
    python main.py command ping -c 5 localhost    # capture a command's stdout
    python main.py serial /dev/ttyUSB0 115200      # capture a serial port
    python main.py serial COM3 9600

The screen shows the last 300 lines; everything goes to a log file in the
current directory.  Press Ctrl-C to stop a serial capture.
"""

from scrollcap.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
