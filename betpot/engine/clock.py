"""Time source for deadline checks."""

import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)
