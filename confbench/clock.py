from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Callable

BOUNDARY_SECOND = 10


def next_boundary(now: dt.datetime, second: int = BOUNDARY_SECOND) -> dt.datetime:
    """Next wall-clock instant whose seconds field equals ``second``.

    Stays in the current minute while that second is still ahead, otherwise
    moves to the following minute.
    """
    boundary = now.replace(second=second, microsecond=0)
    if now.second >= second:
        boundary += dt.timedelta(minutes=1)
    return boundary


def wait_until_next_interval(
    logger: logging.Logger,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], None] = time.sleep,
) -> dt.datetime:
    now = dt.datetime.fromtimestamp(clock())
    boundary = next_boundary(now)
    logger.info("Current time %s", now.strftime("%H:%M:%S"))
    logger.info("Sleeping until %s", boundary.strftime("%H:%M:%S"))
    sleep(max((boundary - now).total_seconds(), 0.0))
    return boundary


def now_millis(clock: Callable[[], float] = time.time) -> int:
    return int(clock() * 1000)


__all__ = ["BOUNDARY_SECOND", "next_boundary", "now_millis", "wait_until_next_interval"]
