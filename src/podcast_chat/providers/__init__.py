"""Model providers and the protocols the pipeline depends on."""

from .base import ChatModel, TranscriptionModel

__all__ = ["ChatModel", "TranscriptionModel"]
