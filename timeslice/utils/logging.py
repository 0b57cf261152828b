"""
Logging helpers for the engine.

Library modules only create loggers; hosts and scripts call
:func:`configure_logging` once.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO, format: Optional[str] = None) -> None:
    """
    Configure the root logger once, leaving any existing handlers alone.

    ``level`` may be a logging constant or a level name such as
    ``EngineConfig.log_level`` (``"warning"``, ``"DEBUG"`` ...); names are
    case-insensitive.
    """

    if isinstance(level, str):
        level = level.strip().upper()

    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(format or DEFAULT_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
