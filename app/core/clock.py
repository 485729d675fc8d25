import time
from typing import Callable

# Returns the current time as integer epoch seconds; injectable so tests can move time.
Clock = Callable[[], int]


def epoch_seconds() -> int:
    return int(time.time())
