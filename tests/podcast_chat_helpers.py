"""Shared test constants, builders and fakes for podcast_chat tests."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from podcast_chat import config
from podcast_chat.models import ChatMessage, Episode, Transcription, TranscriptSegment

# Test constants
TEST_BASE_URL = "https://example.com"
TEST_MEDIA_URL = f"{TEST_BASE_URL}/episode.mp3"
TEST_EPISODE_ID = "3dc1b2d6-0000-4000-8000-000000000001"
TEST_EPISODE_TITLE = "Episode Title"
TEST_PODCAST_NAME = "Test Podcast"
TEST_PUBLISH_DATE = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
TEST_API_KEY = "test-api-key-123"


# Test helper functions


def create_test_episode(episode_id: str = TEST_EPISODE_ID, **overrides: Any) -> Episode:
    """Create an Episode with sensible defaults.

    Args:
        episode_id: Episode id
        **overrides: Field values to override

    Returns:
        Episode instance
    """
    fields: Dict[str, Any] = {
        "id": episode_id,
        "title": TEST_EPISODE_TITLE,
        "url": TEST_MEDIA_URL,
        "podcast_name": TEST_PODCAST_NAME,
        "publish_date": TEST_PUBLISH_DATE,
        "duration": 3600,
    }
    fields.update(overrides)
    return Episode(**fields)


def create_test_config(**overrides: Any) -> config.Config:
    """Create a Config that never touches the real home directory or 1Password."""
    fields: Dict[str, Any] = {
        "data_dir": "/tmp/podcast-chat-tests",
        "gemini_api_key": TEST_API_KEY,
        "retry_delay_ms": 0,
        "save_debug_artifacts": False,
    }
    fields.update(overrides)
    return config.Config(**fields)


def make_segment(index: int, **overrides: Any) -> Dict[str, Any]:
    """Build a valid raw segment dict as streamed by the model."""
    segment: Dict[str, Any] = {
        "timestamp": f"00:{index:02d}:00",
        "speaker": f"Speaker {index % 2 + 1}",
        "spoken_text": f"Segment number {index}",
        "topics": [f"topic-{index}"],
    }
    segment.update(overrides)
    return segment


def make_transcription(count: int = 2) -> Transcription:
    return Transcription(
        segments=[TranscriptSegment(**make_segment(i)) for i in range(count)]
    )


class FakeTranscriptionModel:
    """TranscriptionModel yielding scripted snapshot sequences, one per call.

    Each script entry is either a list of snapshots or an exception to raise.
    """

    def __init__(self, scripts: List[Any], model: str = "fake-transcriber") -> None:
        self.model = model
        self.scripts = list(scripts)
        self.calls: List[Dict[str, str]] = []

    def stream_transcription(self, audio_base64: str, mime_type: str) -> Iterator[Dict[str, Any]]:
        self.calls.append({"audio_base64": audio_base64, "mime_type": mime_type})
        script = self.scripts[min(len(self.calls), len(self.scripts)) - 1]
        if isinstance(script, BaseException):
            raise script
        for snapshot in script:
            if isinstance(snapshot, BaseException):
                raise snapshot
            yield snapshot


class FakeChatModel:
    """ChatModel yielding scripted tokens and recording the messages it received."""

    def __init__(
        self,
        tokens: Optional[List[str]] = None,
        error: Optional[BaseException] = None,
        fail_after: int = 0,
        chat_model: str = "fake-chat",
    ) -> None:
        self.chat_model = chat_model
        self.tokens = tokens if tokens is not None else ["Hello", ", ", "world"]
        self.error = error
        self.fail_after = fail_after
        self.calls: List[List[ChatMessage]] = []

    def stream_chat(self, messages: List[ChatMessage]) -> Iterator[str]:
        self.calls.append(list(messages))
        for i, token in enumerate(self.tokens):
            if self.error is not None and i == self.fail_after:
                raise self.error
            yield token
        if self.error is not None and self.fail_after >= len(self.tokens):
            raise self.error


class MockHTTPResponse:
    """Simple mock for streamed HTTP responses."""

    def __init__(
        self,
        *,
        status_code: int = 200,
        reason: str = "OK",
        headers: Optional[Dict[str, str]] = None,
        chunks: Optional[List[Any]] = None,
        json_data: Any = None,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.headers = headers or {}
        self._chunks = chunks if chunks is not None else []
        self._json_data = json_data
        self.raw = object()
        self.closed = False

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        import requests

        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} {self.reason}", response=self)

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        for chunk in self._chunks:
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk

    def json(self) -> Any:
        if self._json_data is None:
            raise ValueError("No JSON body")
        return self._json_data

    def close(self) -> None:
        self.closed = True
