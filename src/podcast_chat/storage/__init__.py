"""Persistence for episodes, transcription records, assets and raw sync payloads."""

from .base import EpisodeStore, merge_episode, RawDataKind
from .filesystem import FileSystemStorage
from .memory import InMemoryStorage

__all__ = ["EpisodeStore", "FileSystemStorage", "InMemoryStorage", "merge_episode", "RawDataKind"]
