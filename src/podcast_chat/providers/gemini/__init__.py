"""Gemini provider for streaming transcription and chat."""

from .gemini_provider import GeminiProvider, PartialJsonAccumulator

__all__ = ["GeminiProvider", "PartialJsonAccumulator"]
