"""统一日志初始化（控制台）。"""

from __future__ import annotations

import logging
import os
import sys


def setup_global_logging(default_level: str = "INFO") -> None:
    # Use the explicit call-site level first; callers can still pass
    # os.getenv("LOG_LEVEL", "...") when they want env-driven behavior.
    level_name = str(default_level or "").upper() or os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    # Restore logging if a previous test/runtime called logging.disable(...).
    logging.disable(logging.NOTSET)

    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    has_stream = any(isinstance(h, logging.StreamHandler) for h in root.handlers)

    if not has_stream:
        # stdio 传输占用 stdout，日志只能走 stderr
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(formatter)
        stream.setLevel(level)
        root.addHandler(stream)
    else:
        for handler in root.handlers:
            handler.setLevel(level)
