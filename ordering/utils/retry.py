# ordering/utils/retry.py
import logging
import time

logger = logging.getLogger(__name__)


def call_with_retries(fn, *, attempts: int = 3, backoff: float = 0.0, retry_on=(Exception,), label: str = "operation"):
    """
    Call fn() until it succeeds or attempts run out; sleeps backoff * 2**n between tries.
    Re-raises the last error.
    """
    attempts = max(1, int(attempts))
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as e:
            if attempt == attempts:
                logger.warning("%s failed after %d attempts: %s", label, attempts, e)
                raise
            delay = backoff * (2 ** (attempt - 1))
            logger.info("%s attempt %d/%d failed (%s); retrying in %.2fs", label, attempt, attempts, e, delay)
            if delay > 0:
                time.sleep(delay)
