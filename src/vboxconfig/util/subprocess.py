"""Safe subprocess wrappers."""
from __future__ import annotations

import logging
import subprocess
from typing import Iterable, Sequence

LOGGER = logging.getLogger(__name__)


def run(cmd: Sequence[str] | Iterable[str], **kwargs) -> subprocess.CompletedProcess:
    """Run without a shell, capturing text output, and raise on failure by default."""
    argv = list(cmd)
    kwargs.setdefault("shell", False)
    kwargs.setdefault("check", True)
    kwargs.setdefault("capture_output", True)
    kwargs.setdefault("text", True)
    LOGGER.debug("Running: %s", " ".join(argv))
    return subprocess.run(argv, **kwargs)
