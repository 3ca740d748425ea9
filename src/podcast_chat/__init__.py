"""Podcast Chat - Download, transcribe and chat with your podcast episodes.

This package syncs listened and starred episodes from Pocket Casts, downloads
episode audio, transcribes it with a streaming Gemini call and answers questions
grounded in the transcript.

Programmatic API Example:
    >>> import podcast_chat
    >>>
    >>> cfg = podcast_chat.Config(data_dir="~/.podcast-cli")
    >>> coordinator = podcast_chat.EpisodeCoordinator.from_config(cfg)
    >>> coordinator.sync_episodes()
    >>> lookup = coordinator.find_episode_by_partial_id("3dc1b2d6")
    >>> if isinstance(lookup, podcast_chat.EpisodeFound):
    ...     coordinator.transcribe_episode(lookup.episode.id)
    ...     for token in coordinator.chat_with_episode(lookup.episode.id, "What was said about AI?"):
    ...         print(token, end="")
"""

from __future__ import annotations

from .config import Config, load_config_file
from .coordinator import EpisodeCoordinator
from .exceptions import PodcastChatError
from .logging_setup import apply_log_level
from .models import (
    ChatMessage,
    Episode,
    EpisodeAmbiguous,
    EpisodeFound,
    EpisodeNotFound,
    Transcription,
    TranscriptionProgress,
    TranscriptionStatus,
    TranscriptSegment,
)
from .utils.cancellation import CancellationToken

__all__ = [
    "CancellationToken",
    "ChatMessage",
    "Config",
    "Episode",
    "EpisodeAmbiguous",
    "EpisodeCoordinator",
    "EpisodeFound",
    "EpisodeNotFound",
    "PodcastChatError",
    "Transcription",
    "TranscriptionProgress",
    "TranscriptionStatus",
    "TranscriptSegment",
    "apply_log_level",
    "load_config_file",
    "__version__",
]

__version__ = "0.1.0"
