"""Segment validation for cumulative partial transcripts.

A streaming model re-sends the whole transcript on every tick and the last
segment is usually still being generated. Only segments whose four fields are
present and non-trivial are kept; the accumulator compares successive snapshots
and reports the segments that became valid since the previous tick.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..models import Transcription, TranscriptSegment

logger = logging.getLogger(__name__)


def _non_blank(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def is_valid_segment(segment: Any) -> bool:
    """Return True when spoken_text, speaker and timestamp are non-blank and topics is
    a non-empty list."""
    if not isinstance(segment, Mapping):
        return False
    topics = segment.get("topics")
    return (
        _non_blank(segment.get("spoken_text"))
        and _non_blank(segment.get("speaker"))
        and _non_blank(segment.get("timestamp"))
        and isinstance(topics, list)
        and len(topics) > 0
    )


def filter_valid_segments(snapshot: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Return the valid segments of a partial transcript in order."""
    if not snapshot:
        return []
    segments = snapshot.get("segments")
    if not isinstance(segments, list):
        return []
    valid: List[Dict[str, Any]] = []
    for segment in segments:
        if is_valid_segment(segment):
            valid.append(dict(segment))
        else:
            logger.debug("Filtered out invalid segment: %s", segment)
    return valid


class SegmentAccumulator:
    """Track the valid segments across a stream of cumulative snapshots.

    Attributes:
        snapshots_seen: Number of partial objects fed in
        last_valid_count: Valid segment count at the last reported increase
    """

    def __init__(self) -> None:
        self.snapshots_seen = 0
        self.last_valid_count = 0
        self._valid: List[Dict[str, Any]] = []
        self._filtered_last = 0

    def update(self, snapshot: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Absorb a snapshot and return the segments that became valid on this tick.

        The returned list is empty when the valid count did not grow.
        """
        self.snapshots_seen += 1
        valid = filter_valid_segments(snapshot)
        raw = snapshot.get("segments") if isinstance(snapshot, Mapping) else None
        self._filtered_last = (len(raw) if isinstance(raw, list) else 0) - len(valid)
        self._valid = valid
        if len(valid) <= self.last_valid_count:
            return []
        new_segments = valid[self.last_valid_count :]
        self.last_valid_count = len(valid)
        return new_segments

    @property
    def valid_count(self) -> int:
        return len(self._valid)

    @property
    def filtered_count(self) -> int:
        """Invalid segments dropped from the latest snapshot."""
        return self._filtered_last

    def result(self) -> Transcription:
        """Build the transcript from the latest snapshot's valid segments, values as streamed."""
        return Transcription(
            segments=[
                TranscriptSegment(
                    timestamp=s["timestamp"],
                    speaker=s["speaker"],
                    spoken_text=s["spoken_text"],
                    topics=list(s["topics"]),
                )
                for s in self._valid
            ]
        )
