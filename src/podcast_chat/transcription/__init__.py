"""Streaming transcription engine and segment validation."""

from .engine import MIME_TYPES, TranscriptionEngine, mime_type_for
from .segments import SegmentAccumulator, filter_valid_segments, is_valid_segment

__all__ = [
    "MIME_TYPES",
    "SegmentAccumulator",
    "TranscriptionEngine",
    "filter_valid_segments",
    "is_valid_segment",
    "mime_type_for",
]
