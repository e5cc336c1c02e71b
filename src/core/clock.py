"""
Wall-clock helpers.

Services that reason about ages and windows take a ``Clock`` so tests can
drive simulated time instead of sleeping.
"""

import time
from collections.abc import Callable

# Returns epoch time in milliseconds
Clock = Callable[[], float]


def epoch_ms() -> float:
    return time.time() * 1000
