from __future__ import annotations

import math
from datetime import datetime

SOLSCAN = "https://solscan.io"

_SUFFIXES = ((1e9, "B"), (1e6, "M"), (1e3, "K"))


def format_number(num) -> str:
    if isinstance(num, bool) or not isinstance(num, (int, float)) or math.isnan(num):
        return "N/A"
    for threshold, suffix in _SUFFIXES:
        if num >= threshold:
            return f"{num / threshold:.2f}{suffix}"
    if num < 0.00001:
        return f"{num:.4e}"
    return f"{num:.5f}"


def shorten(value: str, head: int = 4, tail: int = 4) -> str:
    if len(value) <= head + tail + 2:
        return value
    return f"{value[:head]}..{value[-tail:]}"


def truncate_name(name: str, limit: int = 10) -> str:
    return f"{name[:8]}.." if len(name) > limit else name


def token_url(mint: str) -> str:
    return f"{SOLSCAN}/token/{mint}"


def tx_url(signature: str) -> str:
    return f"{SOLSCAN}/tx/{signature}"


def format_timestamp(block_time: int | None) -> str:
    if not block_time:
        return "unknown time"
    return datetime.fromtimestamp(block_time).strftime("%Y-%m-%d %H:%M:%S")
