"""
Utility functions for Binary Audit.

Provides timestamp helpers and constant-time comparison.
"""

import hmac
import time
from typing import Union


def now_ns() -> int:
    """Get current Unix timestamp in nanoseconds."""
    return time.time_ns()


def elapsed_ms(start: float) -> int:
    """Milliseconds since a time.perf_counter() reading."""
    return int((time.perf_counter() - start) * 1000)


def constant_time_compare(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    """
    Compare two strings/bytes in constant time to prevent timing attacks.
    """
    if isinstance(a, str):
        a = a.encode('utf-8')
    if isinstance(b, str):
        b = b.encode('utf-8')
    return hmac.compare_digest(a, b)
