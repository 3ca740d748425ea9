"""Gemini provider for streaming transcription and transcript-grounded chat.

A single GeminiProvider implements both TranscriptionModel (native multimodal
audio understanding with a JSON response schema) and ChatModel (plain text
streaming). Both capabilities share one configured SDK client.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Iterator, List, Optional, TypedDict

import google.generativeai as genai
import jiter

from ...exceptions import AuthError, ModelError, PodcastChatError, RateLimitError
from ...models import ChatMessage

logger = logging.getLogger(__name__)

TRANSCRIPTION_PROMPT = (
    "Transcribe this podcast episode. Split it into segments at every change of speaker "
    "or topic. For each segment give the start timestamp as HH:MM:SS, a speaker label "
    "(a name when it is stated, otherwise 'Speaker 1', 'Speaker 2', ...), the exact "
    "spoken text, and a few short topic keywords."
)


class SegmentSchema(TypedDict):
    timestamp: str
    speaker: str
    spoken_text: str
    topics: List[str]


class TranscriptionSchema(TypedDict):
    segments: List[SegmentSchema]


class PartialJsonAccumulator:
    """Rebuild cumulative partial objects from a stream of JSON text chunks.

    Incomplete strings are dropped rather than truncated, so a field only appears
    once its value has been fully generated.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, text: str) -> Optional[Dict[str, Any]]:
        """Append ``text`` and return the object parsed so far, or None if unparseable yet."""
        self._buffer.extend(text.encode("utf-8"))
        if not bytes(self._buffer).strip():
            return None
        try:
            value = jiter.from_json(bytes(self._buffer), partial_mode=True)
        except ValueError:
            return None
        return value if isinstance(value, dict) else None


def _looks_like_rate_limit(message: str) -> bool:
    lowered = message.lower()
    return (
        "429" in message
        or "quota" in lowered
        or "rate limit" in lowered
        or "resource exhausted" in lowered
    )


def _translate_error(exc: Exception, capability: str) -> PodcastChatError:
    """Map a Gemini SDK failure onto the podcast_chat taxonomy."""
    provider = f"GeminiProvider/{capability}"
    error_msg = str(exc)
    lowered = error_msg.lower()
    if "api key" in lowered or "authentication" in lowered or "permission" in lowered:
        return AuthError(
            message=f"Gemini authentication failed: {exc}",
            suggestion="Check your GEMINI_API_KEY environment variable or config setting",
        )
    if _looks_like_rate_limit(error_msg):
        return RateLimitError(
            message=f"Gemini rate limit exceeded (429): {exc}",
            suggestion="Wait a few minutes and retry, or check your API quota",
        )
    if "invalid" in lowered and "model" in lowered:
        return ModelError(
            message=f"Gemini invalid model: {exc}",
            provider=provider,
            suggestion="Check gemini_transcription_model / gemini_chat_model configuration",
        )
    return ModelError(message=f"Gemini {capability.lower()} failed: {exc}", provider=provider)


class GeminiProvider:
    """Unified Gemini provider implementing TranscriptionModel and ChatModel."""

    def __init__(
        self,
        api_key: str,
        model: str,
        chat_model: str,
        max_output_tokens: int,
    ) -> None:
        """Configure the Gemini SDK.

        Args:
            api_key: Gemini API key
            model: Model used for transcription
            chat_model: Model used for chat
            max_output_tokens: Output token budget for transcription

        Raises:
            AuthError: If no API key is given
        """
        if not api_key:
            raise AuthError(
                "Gemini API key required",
                suggestion="Set GEMINI_API_KEY or store the key in 1Password",
            )

        root_logger = logging.getLogger()
        root_level = root_logger.level if root_logger.level else logging.INFO
        if root_level <= logging.DEBUG:
            for logger_name in ("google.generativeai", "google.api_core"):
                logging.getLogger(logger_name).setLevel(logging.WARNING)

        genai.configure(api_key=api_key)
        self.model = model
        self.chat_model = chat_model
        self.max_output_tokens = max_output_tokens

    # ============================================================================
    # TranscriptionModel
    # ============================================================================

    def stream_transcription(self, audio_base64: str, mime_type: str) -> Iterator[Dict[str, Any]]:
        """Yield cumulative partial transcripts for base64 audio."""
        logger.debug("Opening Gemini transcription stream (model: %s)", self.model)
        accumulator = PartialJsonAccumulator()
        try:
            generative_model = genai.GenerativeModel(self.model)
            response = generative_model.generate_content(
                [
                    # Inline blobs take raw bytes
                    {"mime_type": mime_type, "data": base64.b64decode(audio_base64)},
                    TRANSCRIPTION_PROMPT,
                ],
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json",
                    response_schema=TranscriptionSchema,
                    max_output_tokens=self.max_output_tokens,
                ),
                stream=True,
            )
            for chunk in response:
                if not chunk.parts:
                    continue
                partial = accumulator.feed(chunk.text)
                if partial is not None:
                    yield partial
        except PodcastChatError:
            raise
        except Exception as exc:
            logger.error("Gemini API error in transcription: %s", exc)
            raise _translate_error(exc, "Transcription") from exc

    # ============================================================================
    # ChatModel
    # ============================================================================

    def stream_chat(self, messages: List[ChatMessage]) -> Iterator[str]:
        """Yield text tokens; system messages become the system instruction."""
        system_text = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [m.content]}
            for m in messages
            if m.role != "system"
        ]
        logger.debug(
            "Opening Gemini chat stream (model: %s, turns: %d)", self.chat_model, len(contents)
        )
        try:
            generative_model = genai.GenerativeModel(
                self.chat_model, system_instruction=system_text or None
            )
            response = generative_model.generate_content(contents, stream=True)
            for chunk in response:
                if not chunk.parts:
                    continue
                if chunk.text:
                    yield chunk.text
        except PodcastChatError:
            raise
        except Exception as exc:
            logger.error("Gemini API error in chat: %s", exc)
            raise _translate_error(exc, "Chat") from exc
