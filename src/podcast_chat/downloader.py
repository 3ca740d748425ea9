"""HTTP session management and streamed audio downloads for podcast_chat."""

from __future__ import annotations

import atexit
import logging
import threading
from pathlib import Path
from typing import Callable, cast, List, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.utils import requote_uri
from urllib3.util.retry import Retry

from .exceptions import StreamError
from .utils.cancellation import CancellationToken, check_cancelled

logger = logging.getLogger(__name__)

# Track if we've suppressed urllib3 logs (lazy initialization)
_urllib3_logs_suppressed = False

ProgressCallback = Callable[[int], None]


def _suppress_urllib3_debug_logs() -> None:
    """Keep urllib3 connection chatter out of DEBUG output."""
    global _urllib3_logs_suppressed
    if _urllib3_logs_suppressed:
        return

    root_logger = logging.getLogger()
    root_level = root_logger.level if root_logger.level else logging.INFO
    if root_level <= logging.DEBUG:
        for logger_name in ("urllib3", "urllib3.connectionpool", "urllib3.connection"):
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    _urllib3_logs_suppressed = True


DEFAULT_HTTP_BACKOFF_FACTOR = 0.5
DEFAULT_HTTP_RETRY_TOTAL = 5
DOWNLOAD_CHUNK_SIZE = 1024 * 256
HTTP_RETRY_ALLOWED_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
HTTP_RETRY_STATUS_CODES = (429, 500, 502, 503, 504)

_THREAD_LOCAL = threading.local()
_SESSION_REGISTRY: List[requests.Session] = []
_SESSION_REGISTRY_LOCK = threading.Lock()


def normalize_url(url: str) -> str:
    """Normalize URLs while preserving already-encoded segments."""
    normalized = requote_uri(url)
    if normalized != url:
        logger.debug("Normalized URL %s -> %s", url, normalized)
    return cast(str, normalized)


def _configure_http_session(session: requests.Session) -> None:
    """Attach retry-enabled HTTP adapters to a session."""

    class LoggingRetry(Retry):
        def increment(self, method=None, url=None, *args, **kwargs):  # type: ignore[override]
            new_retry = super().increment(method=method, url=url, *args, **kwargs)
            attempt = len(new_retry.history) + 1
            reason = kwargs.get("error") or kwargs.get("response")
            logger.warning(
                f"Retrying HTTP request (attempt {attempt}/{new_retry.total}) "
                f"{method or ''} {url or ''} due to {reason}"
            )
            return new_retry

    retry = LoggingRetry(
        total=DEFAULT_HTTP_RETRY_TOTAL,
        read=DEFAULT_HTTP_RETRY_TOTAL,
        connect=DEFAULT_HTTP_RETRY_TOTAL,
        status=DEFAULT_HTTP_RETRY_TOTAL,
        backoff_factor=DEFAULT_HTTP_BACKOFF_FACTOR,
        status_forcelist=HTTP_RETRY_STATUS_CODES,
        allowed_methods=HTTP_RETRY_ALLOWED_METHODS,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    logger.debug("Configured HTTP session %s with retry-enabled adapters", hex(id(session)))


def get_http_session() -> requests.Session:
    """Return the calling thread's retry-enabled session, creating it on first use."""
    _suppress_urllib3_debug_logs()

    session = getattr(_THREAD_LOCAL, "session", None)
    if session is None:
        session = requests.Session()
        _configure_http_session(session)
        setattr(_THREAD_LOCAL, "session", session)
        with _SESSION_REGISTRY_LOCK:
            _SESSION_REGISTRY.append(session)
        logger.debug("Created new thread-local HTTP session %s", hex(id(session)))
    return session


def _close_all_sessions() -> None:
    with _SESSION_REGISTRY_LOCK:
        for session in _SESSION_REGISTRY:
            try:
                session.close()
            # Best-effort cleanup; ignore shutdown errors
            except Exception:  # pragma: no cover  # nosec B110
                pass
        _SESSION_REGISTRY.clear()


atexit.register(_close_all_sessions)


def parse_content_length(value: Optional[str]) -> Optional[int]:
    """Return a positive Content-Length, or None when absent, zero or malformed."""
    try:
        total = int(value) if value else None
    except (TypeError, ValueError):
        return None
    if total is None or total <= 0:
        return None
    return total


class _PercentReporter:
    """Turn byte counts into non-decreasing integer percentages.

    Without a known total only the 0 and 100 endpoints are reported.
    """

    def __init__(self, total: Optional[int], callback: Optional[ProgressCallback]) -> None:
        self.total = total
        self.callback = callback
        self.bytes_so_far = 0
        self._last: Optional[int] = None

    def _emit(self, percent: int) -> None:
        if self.callback is None:
            return
        if self._last is not None and percent <= self._last:
            return
        self._last = percent
        self.callback(percent)

    def start(self) -> None:
        self._emit(0)

    def advance(self, nbytes: int) -> None:
        self.bytes_so_far += nbytes
        if self.total:
            self._emit(min(100, self.bytes_so_far * 100 // self.total))

    def finish(self) -> None:
        self._emit(100)


def download_to_file(
    url: str,
    out_path: Path,
    user_agent: str,
    timeout: int,
    on_progress: Optional[ProgressCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
    session: Optional[requests.Session] = None,
) -> int:
    """Stream ``url`` into ``out_path`` reporting integer percent progress.

    Progress starts at 0 before the first byte and ends at 100 once the file is
    closed. With a positive Content-Length every chunk reports
    ``floor(bytes * 100 / total)``; otherwise nothing is reported in between.
    A partially written file is left in place on failure.

    Args:
        url: Remote audio URL
        out_path: Destination file; parent directories are created
        user_agent: HTTP User-Agent header
        timeout: Connect/read timeout in seconds
        on_progress: Optional callback receiving percentages 0..100
        cancel_token: Optional cancellation token checked per chunk
        session: Optional session (defaults to the thread-local retrying session)

    Returns:
        Number of bytes written

    Raises:
        StreamError: Non-2xx response, missing body, or a broken stream
        OperationCancelledError: The token was cancelled mid-download
        OSError: The file could not be created or written
    """
    normalized_url = normalize_url(url)
    http = session or get_http_session()
    check_cancelled(cancel_token, "download")
    logger.debug("Opening HTTP connection to %s (timeout=%s)", normalized_url, timeout)
    try:
        resp = http.get(
            normalized_url, headers={"User-Agent": user_agent}, timeout=timeout, stream=True
        )
    except requests.RequestException as exc:
        raise StreamError(f"Failed to fetch {url}: {exc}") from exc

    try:
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise StreamError(
                f"Download of {url} failed with HTTP {resp.status_code}: {resp.reason}"
            ) from exc
        if resp.raw is None:
            raise StreamError(f"Response from {url} has no body")

        content_length = resp.headers.get("Content-Length")
        reporter = _PercentReporter(parse_content_length(content_length), on_progress)

        out_path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug(
            "Streaming download from %s to %s (content-length=%s, chunk-size=%s)",
            url,
            out_path,
            content_length,
            DOWNLOAD_CHUNK_SIZE,
        )

        reporter.start()
        with open(out_path, "wb") as f:
            try:
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    check_cancelled(cancel_token, "download")
                    if not chunk:
                        continue
                    f.write(chunk)
                    reporter.advance(len(chunk))
            except requests.RequestException as exc:
                raise StreamError(
                    f"Stream from {url} broke after {reporter.bytes_so_far} bytes: {exc}"
                ) from exc
        reporter.finish()
        logger.debug("Finished downloading %s (%s bytes written)", url, reporter.bytes_so_far)
        return reporter.bytes_so_far
    finally:
        resp.close()
