"""
Retry with exponential backoff, plus the error classifiers used to decide what is worth retrying.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from amaron.config import (
    BACKOFF_MULTIPLIER,
    MAX_RETRIES,
    RETRY_DELAY_SEC,
    RETRYABLE_ELEMENT_ERRORS,
    RETRYABLE_NETWORK_ERRORS,
)

logger = logging.getLogger("amaron.retry")

T = TypeVar("T")


def _message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def is_transient_error(exc: BaseException) -> bool:
    """Connection resets, DNS failures, navigation timeouts, protocol errors."""
    if isinstance(exc, (PlaywrightTimeoutError, ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    message = _message(exc)
    return any(fragment in message for fragment in RETRYABLE_NETWORK_ERRORS)


def is_element_error(exc: BaseException) -> bool:
    """Selector not found, element detached or not interactable."""
    message = _message(exc)
    return any(fragment in message for fragment in RETRYABLE_ELEMENT_ERRORS)


def is_retryable_error(exc: BaseException) -> bool:
    return is_transient_error(exc) or is_element_error(exc)


def split_selectors(selector: str) -> list[str]:
    """'#a, select[name="b"]' -> ['#a', 'select[name="b"]'] (preference order)."""
    return [part.strip() for part in (selector or "").split(",") if part.strip()]


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    attempts: int = MAX_RETRIES,
    base_delay: float = RETRY_DELAY_SEC,
    backoff: float = BACKOFF_MULTIPLIER,
    retry_if: Callable[[BaseException], bool] = is_transient_error,
    operation: str = "operation",
) -> T:
    """
    Await fn() up to `attempts` times. Between attempts sleep base_delay * backoff ** (attempt - 1).
    Errors rejected by retry_if, and the last error once attempts run out, propagate unchanged.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt == attempts or not retry_if(e):
                if attempt > 1:
                    logger.warning("%s failed after %d attempts: %s", operation, attempt, _message(e))
                raise
            delay = base_delay * backoff ** (attempt - 1)
            logger.warning(
                "%s attempt %d/%d failed: %s; retrying in %.1fs",
                operation, attempt, attempts, _message(e), delay,
            )
            await asyncio.sleep(delay)
