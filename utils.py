"""公共工具函数。"""

from __future__ import annotations

import os


def as_int_env(name: str, default: int, min_value: int = 0) -> int:
    """读取并规范化整型环境变量。"""
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = default
    return max(min_value, value)


def as_float_env(name: str, default: float, min_value: float = 0.0) -> float:
    """读取并规范化浮点型环境变量。"""
    raw = os.getenv(name, str(default))
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = default
    return max(min_value, value)
