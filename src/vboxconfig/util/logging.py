"""Logging setup for the command line entry point.

The level comes from ``--log-level``, then ``$VBOXCONFIG_LOG_LEVEL``, then
INFO. Names are case-insensitive and numeric levels are accepted as-is.
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Optional

ENV_LOG_LEVEL_KEY = "VBOXCONFIG_LOG_LEVEL"
DEFAULT_LEVEL = logging.INFO
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def resolve_level(level: Optional[str] = None) -> int:
    raw = (level or os.getenv(ENV_LOG_LEVEL_KEY) or "").strip()
    if not raw:
        return DEFAULT_LEVEL
    if raw.isascii() and raw.isdigit():
        return int(raw)
    # getLevelName maps known names to ints and unknown ones to "Level <name>"
    resolved = logging.getLevelName(raw.upper())
    return resolved if isinstance(resolved, int) else DEFAULT_LEVEL


def setup_logging(level: Optional[str] = None) -> None:
    """Send vboxconfig records to stderr so stdout stays machine readable."""
    logging.basicConfig(level=resolve_level(level), format=LOG_FORMAT, stream=sys.stderr)
