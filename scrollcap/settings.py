"""
Scrollcap - Settings
====================

Optional JSON settings file (``scrollcap_settings.json`` in the working
directory by default):

    {
        "log_dir": "logs",
        "read_timeout": 0.01,
        "read_size": 1000,
        "privilege_wrappers": ["sudo", "doas"]
    }

Unknown keys are ignored.  Invalid values are reported and replaced with the
defaults, so a broken settings file never prevents a capture.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from scrollcap.log_sink import PRIVILEGE_WRAPPERS
from scrollcap.serial_backend import DEFAULT_READ_SIZE, DEFAULT_READ_TIMEOUT

logger = logging.getLogger(__name__)

SETTINGS_FILE = "scrollcap_settings.json"

# The poll loop must notice cancellation within 10 ms.
MAX_READ_TIMEOUT = 0.01


@dataclass
class CaptureSettings:
    log_dir: str = "."
    read_timeout: float = DEFAULT_READ_TIMEOUT
    read_size: int = DEFAULT_READ_SIZE
    privilege_wrappers: tuple[str, ...] = field(default_factory=lambda: PRIVILEGE_WRAPPERS)


def _valid_timeout(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and 0 < value <= MAX_READ_TIMEOUT
    )


def _valid_read_size(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def load_settings(path: Optional[str] = None) -> CaptureSettings:
    """
    Load settings from JSON with validation.  A missing default file means
    defaults; a missing file given explicitly is reported, then defaults.
    """
    settings = CaptureSettings()
    explicit = path is not None
    path = path or SETTINGS_FILE
    if not os.path.exists(path):
        if explicit:
            logger.error(f"Settings file {path} not found, using defaults")
        return settings

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in {path}: {e}")
        return settings
    except OSError as e:
        logger.error(f"Failed to load settings from {path}: {e}")
        return settings

    if not isinstance(raw, dict):
        logger.error(f"Settings in {path} must be a JSON object")
        return settings

    log_dir = raw.get("log_dir", settings.log_dir)
    if isinstance(log_dir, str) and log_dir:
        settings.log_dir = log_dir
    else:
        logger.error(f"Ignoring log_dir={log_dir!r}")

    read_timeout = raw.get("read_timeout", settings.read_timeout)
    if _valid_timeout(read_timeout):
        settings.read_timeout = float(read_timeout)
    else:
        logger.error(f"Ignoring read_timeout={read_timeout!r} (must be 0 < t <= {MAX_READ_TIMEOUT})")

    read_size = raw.get("read_size", settings.read_size)
    if _valid_read_size(read_size):
        settings.read_size = read_size
    else:
        logger.error(f"Ignoring read_size={read_size!r}")

    wrappers = raw.get("privilege_wrappers", list(settings.privilege_wrappers))
    if isinstance(wrappers, list) and all(isinstance(w, str) and w for w in wrappers):
        settings.privilege_wrappers = tuple(wrappers)
    else:
        logger.error(f"Ignoring privilege_wrappers={wrappers!r}")

    logger.info(f"Settings loaded from {path}")
    return settings
