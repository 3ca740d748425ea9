"""Transcript-grounded chat with streamed replies.

A turn appends the user message under the episode's lock, forwards the model's
tokens as they arrive and, once the stream has drained, inserts the assistant
turn right after its own user message. No lock is held while tokens are being
yielded, so an abandoned generator can be closed from any thread. A turn that
fails or is abandoned part-way removes its own user message and nothing else.
"""

from __future__ import annotations

import json
import logging
from typing import Iterator, List, Optional

from ..exceptions import ModelError, PodcastChatError
from ..models import ChatMessage, Transcription
from ..providers.base import ChatModel
from ..utils.cancellation import CancellationToken, check_cancelled
from .sessions import ChatSessionStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_TEMPLATE = """You are a helpful assistant answering questions about a podcast episode.
Ground every answer in the transcript below. When you refer to something said in the
episode, cite the timestamp of the segment it comes from, e.g. [00:12:34]. If the
transcript does not contain the answer, say so instead of guessing.

The transcript is a JSON list of segments with timestamp, speaker, spoken_text and topics:

{transcript}"""


def build_system_prompt(transcription: Transcription) -> str:
    segments = [segment.model_dump() for segment in transcription.segments]
    return SYSTEM_PROMPT_TEMPLATE.format(
        transcript=json.dumps(segments, ensure_ascii=False, indent=2)
    )


class ChatSessionManager:
    """Run chat turns against a ChatModel using per-episode histories."""

    def __init__(self, model: ChatModel, sessions: Optional[ChatSessionStore] = None) -> None:
        self.model = model
        self.sessions = sessions or ChatSessionStore()

    def build_messages(
        self, transcription: Transcription, history: List[ChatMessage]
    ) -> List[ChatMessage]:
        """Return ``[system, *history]`` for one model call."""
        return [ChatMessage(role="system", content=build_system_prompt(transcription))] + list(
            history
        )

    def stream_reply(
        self,
        episode_id: str,
        transcription: Transcription,
        message: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Iterator[str]:
        """Yield the assistant's reply token by token.

        The user message joins the history when the turn starts and the reply is
        inserted right after it once the stream drains. On any error, cancellation
        or early ``close()`` of this generator that user message is removed again
        and the error propagates.

        Raises:
            ModelError: If the model fails with an untyped error
            OperationCancelledError: If ``cancel_token`` is triggered mid-stream
        """
        question = ChatMessage(role="user", content=message)
        with self.sessions.locks.hold(episode_id):
            self.sessions.append(episode_id, question)
            history = self.sessions.history(episode_id)

        parts: List[str] = []
        try:
            check_cancelled(cancel_token, "chat")
            messages = self.build_messages(transcription, history)
            logger.debug("Chat turn for %s (%d messages)", episode_id, len(messages))
            for token in self.model.stream_chat(messages):
                check_cancelled(cancel_token, "chat")
                parts.append(token)
                yield token
        except PodcastChatError:
            self.sessions.remove(episode_id, question)
            raise
        except GeneratorExit:
            self.sessions.remove(episode_id, question)
            logger.debug("Chat stream for %s closed before completion", episode_id)
            raise
        except Exception as exc:
            self.sessions.remove(episode_id, question)
            raise ModelError(f"Chat failed: {exc}", provider="ChatModel") from exc

        answer = ChatMessage(role="assistant", content="".join(parts))
        with self.sessions.locks.hold(episode_id):
            if not self.sessions.insert_after(episode_id, question, answer):
                logger.debug("History for %s was cleared during the turn", episode_id)

    def reply(
        self,
        episode_id: str,
        transcription: Transcription,
        message: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Drain ``stream_reply`` and return the full reply text."""
        return "".join(self.stream_reply(episode_id, transcription, message, cancel_token))
