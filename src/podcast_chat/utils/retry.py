"""Retry utilities with linear backoff.

The transcription pipeline wraps its whole read/encode/stream cycle in
`retry()`. Delays grow linearly with the attempt number (base, 2*base, ...)
and there is no jitter. Once attempts are exhausted the last exception is
re-raised unchanged, so callers only ever see the final failure.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from ..exceptions import OperationCancelledError
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry(
    operation: Callable[[], T],
    max_attempts: int = 3,
    base_delay_ms: int = 1000,
    cancel_token: Optional[CancellationToken] = None,
) -> T:
    """Call ``operation`` until it succeeds or ``max_attempts`` calls have failed.

    Args:
        operation: Callable with no arguments
        max_attempts: Total number of calls allowed (default: 3)
        base_delay_ms: Delay before the second call in milliseconds; the wait
                       before call ``n + 1`` is ``base_delay_ms * n`` (default: 1000)
        cancel_token: Optional token; cancellation is never retried and aborts
                      the wait between attempts

    Returns:
        Result of the first successful call

    Raises:
        Exception: The last exception raised by ``operation`` if every attempt failed
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 1
    while True:
        try:
            return operation()
        except OperationCancelledError:
            raise
        except Exception as e:
            if attempt >= max_attempts:
                logger.error(f"All {max_attempts} attempts failed. Last error: {e}")
                raise
            delay_seconds = base_delay_ms * attempt / 1000.0
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed: {e}. "
                f"Retrying in {delay_seconds:.1f}s..."
            )
            if cancel_token is not None:
                if cancel_token.wait(delay_seconds):
                    raise OperationCancelledError("retry") from e
            else:
                time.sleep(delay_seconds)
            attempt += 1
