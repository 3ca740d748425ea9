"""Cooperative cancellation for long-running downloads, transcriptions and chats."""

from __future__ import annotations

import threading
from typing import Optional

from ..exceptions import OperationCancelledError


class CancellationToken:
    """Thread-safe flag checked at chunk and tick boundaries.

    Example:
        >>> token = CancellationToken()
        >>> worker = threading.Thread(target=coordinator.download_episode,
        ...                           args=(episode_id,), kwargs={"cancel_token": token})
        >>> token.cancel()
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True early if cancelled meanwhile."""
        return self._event.wait(seconds)

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self._event.is_set():
            raise OperationCancelledError(operation)


def check_cancelled(token: Optional[CancellationToken], operation: str) -> None:
    """Raise OperationCancelledError when ``token`` is set; a None token never cancels."""
    if token is not None:
        token.raise_if_cancelled(operation)
