"""Model provider protocol definitions.

The transcription engine and chat manager only depend on these protocols, so any
provider (Gemini, or a fake in tests) can be plugged in.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Protocol

from ..models import ChatMessage


class TranscriptionModel(Protocol):
    """Protocol for streaming structured-output transcription."""

    model: str

    def stream_transcription(self, audio_base64: str, mime_type: str) -> Iterator[Dict[str, Any]]:
        """Send base64 audio and yield cumulative partial transcripts.

        Each yielded value is the whole structured object generated so far
        (``{"segments": [...]}``), not a delta. The trailing segment is often
        incomplete.

        Args:
            audio_base64: Base64-encoded audio bytes
            mime_type: MIME type of the audio (e.g., "audio/mpeg")

        Yields:
            Cumulative partial objects

        Raises:
            ModelError: If the provider call fails
            AuthError: If the provider rejects the API key
            RateLimitError: If the provider rate limits the request
        """
        ...


class ChatModel(Protocol):
    """Protocol for streaming chat completions."""

    chat_model: str

    def stream_chat(self, messages: List[ChatMessage]) -> Iterator[str]:
        """Yield incremental text tokens answering ``messages``.

        The first message is the system prompt; the rest alternate user/assistant
        turns and end with the user's latest message.
        """
        ...
