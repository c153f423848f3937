"""Timing helpers for logging operation durations."""

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional


class Timer:
    """Elapsed time of a timed operation."""

    def __init__(self):
        self.start_time = time.time()
        self.end_time: Optional[float] = None
        self.duration_ms: float = 0
        self.failed = False


@contextmanager
def timed_operation(
    name: str,
    logger: Optional[logging.Logger] = None,
    **fields,
) -> Iterator[Timer]:
    """Context manager to time an operation.

    Usage:
        with timed_operation("instance.create", logger, kind="instance") as timer:
            state = resource.create(plan)
        print(f"Took {timer.duration_ms}ms")

    Args:
        name: Operation name for logging
        logger: Optional logger instance
        **fields: Extra structured fields for the log record

    Yields:
        Timer object with duration_ms attribute
    """
    timer = Timer()

    try:
        yield timer
    except BaseException:
        timer.failed = True
        raise
    finally:
        timer.end_time = time.time()
        timer.duration_ms = (timer.end_time - timer.start_time) * 1000

        if logger:
            logger.debug(
                f"Operation '{name}' {'failed' if timer.failed else 'completed'}",
                extra={
                    "operation": name,
                    "duration_ms": round(timer.duration_ms, 2),
                    "status": "error" if timer.failed else "success",
                    **fields,
                }
            )
