"""
Clock service.

The round engine never reads the wall clock directly; it receives a
callable returning integer unix seconds so tests and host applications
can control time.
"""
import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())
