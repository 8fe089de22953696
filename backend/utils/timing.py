import time
import functools
import logging

from core.config import settings

logger = logging.getLogger("harvex.timing")


def timeit(label: str = None, slow_ms: float = None):
    """Log how long an async service call took.

    Calls slower than ``slow_ms`` (default ``SLOW_CALL_MS``) are logged at
    WARNING; everything else at DEBUG. Password hashing dominates the auth
    flows, so these are the calls worth watching.
    """
    threshold = settings.SLOW_CALL_MS if slow_ms is None else slow_ms

    def _decorate(func):
        name = label or func.__qualname__

        @functools.wraps(func)
        async def _timed(*args, **kwargs):
            start = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000.0
                level = logging.WARNING if elapsed_ms >= threshold else logging.DEBUG
                logger.log(level, "[timing] %s took %.2f ms", name, elapsed_ms)

        return _timed

    return _decorate
