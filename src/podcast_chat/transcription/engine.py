"""Streaming transcription of local audio files.

TranscriptionEngine sends the whole audio file to a TranscriptionModel, follows
the cumulative partial transcripts it streams back and reports progress whenever
more segments become valid. The read/encode/stream cycle is retried as a unit.
Episode-level runs persist a TranscriptionStatus before the model is called and
update it to completed or failed afterwards.
"""

from __future__ import annotations

import base64
import logging
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from ..exceptions import EmptyResultError, StreamError, UnsupportedFormatError
from ..models import (
    Episode,
    Transcription,
    TranscriptionMetadata,
    TranscriptionProgress,
    TranscriptionStatus,
)
from ..providers.base import TranscriptionModel
from ..storage.base import EpisodeStore
from ..utils.cancellation import CancellationToken, check_cancelled
from ..utils.debug_artifacts import DebugArtifactWriter
from ..utils.retry import retry
from .segments import SegmentAccumulator

logger = logging.getLogger(__name__)

MIME_TYPES: Dict[str, str] = {
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
}

ProgressCallback = Callable[[TranscriptionProgress], None]


def mime_type_for(path: Path) -> str:
    """Return the audio MIME type for ``path`` based on its extension.

    Raises:
        UnsupportedFormatError: If the extension is not a supported audio format
    """
    suffix = Path(path).suffix.lower()
    mime_type = MIME_TYPES.get(suffix)
    if mime_type is None:
        raise UnsupportedFormatError(
            f"Unsupported audio format: {suffix or '<none>'} ({path})",
            suggestion=f"Supported extensions: {', '.join(sorted(MIME_TYPES))}",
        )
    return mime_type


class TranscriptionEngine:
    """Drive a TranscriptionModel over local audio files."""

    def __init__(
        self,
        model: TranscriptionModel,
        store: EpisodeStore,
        retry_attempts: int = 3,
        retry_delay_ms: int = 1000,
        debug_writer: Optional[DebugArtifactWriter] = None,
    ) -> None:
        self.model = model
        self.store = store
        self.retry_attempts = retry_attempts
        self.retry_delay_ms = retry_delay_ms
        self.debug_writer = debug_writer or DebugArtifactWriter(None)

    mime_type_for = staticmethod(mime_type_for)

    def transcribe_file(
        self,
        path: Path,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        transcription_id: Optional[str] = None,
    ) -> Transcription:
        """Transcribe one audio file.

        Args:
            path: Local audio file
            on_progress: Called each time the number of valid segments grows
            cancel_token: Checked between stream ticks and between attempts
            transcription_id: Prefix for debug artifacts (defaults to the file stem)

        Returns:
            Transcript holding only the valid segments

        Raises:
            UnsupportedFormatError: If the extension is unsupported (never retried)
            StreamError: If the model stream yields nothing on the final attempt
            EmptyResultError: If no segment is valid on the final attempt
        """
        path = Path(path)
        mime_type = mime_type_for(path)
        artifact_id = transcription_id or path.stem
        attempts = {"count": 0}

        def attempt() -> Transcription:
            attempts["count"] += 1
            return self._run_attempt(
                path, mime_type, artifact_id, attempts["count"], on_progress, cancel_token
            )

        return retry(
            attempt,
            max_attempts=self.retry_attempts,
            base_delay_ms=self.retry_delay_ms,
            cancel_token=cancel_token,
        )

    def _run_attempt(
        self,
        path: Path,
        mime_type: str,
        artifact_id: str,
        attempt: int,
        on_progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> Transcription:
        check_cancelled(cancel_token, "transcription")
        # Whole file in memory; size is bounded only by the model's inline limit
        audio_bytes = path.read_bytes()
        audio_b64 = base64.b64encode(audio_bytes).decode("ascii")
        logger.debug(
            "Transcription attempt %d for %s (%s, %d bytes)",
            attempt,
            path.name,
            mime_type,
            len(audio_bytes),
        )
        self.debug_writer.save(
            artifact_id,
            {
                "path": str(path),
                "mime_type": mime_type,
                "size_bytes": len(audio_bytes),
                "attempt": attempt,
                "model": self.model.model,
            },
            "file_info",
        )

        accumulator = SegmentAccumulator()
        last_snapshot = None
        start_time = time.time()
        try:
            for snapshot in self.model.stream_transcription(audio_b64, mime_type):
                check_cancelled(cancel_token, "transcription")
                last_snapshot = snapshot
                new_segments = accumulator.update(snapshot)
                if new_segments:
                    logger.debug(
                        "Transcription progress: %d valid segments (+%d)",
                        accumulator.last_valid_count,
                        len(new_segments),
                    )
                    self.debug_writer.save(
                        artifact_id,
                        {
                            "attempt": attempt,
                            "snapshots": accumulator.snapshots_seen,
                            "valid_segments": accumulator.last_valid_count,
                            "filtered_segments": accumulator.filtered_count,
                        },
                        "stream_progress",
                    )
                    if on_progress is not None:
                        on_progress(
                            TranscriptionProgress(
                                segment_count=accumulator.last_valid_count,
                                new_segments=[s["spoken_text"] for s in new_segments],
                            )
                        )
        except Exception as exc:
            self.debug_writer.save(
                artifact_id,
                {
                    "attempt": attempt,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "snapshots": accumulator.snapshots_seen,
                    "last_snapshot": last_snapshot,
                },
                "stream_error",
            )
            raise

        elapsed = time.time() - start_time
        self.debug_writer.save(
            artifact_id,
            {"attempt": attempt, "elapsed_seconds": elapsed, "final_object": last_snapshot},
            "final_object",
        )

        if last_snapshot is None:
            raise StreamError("stream produced nothing")
        transcription = accumulator.result()
        if not transcription.segments:
            raise EmptyResultError(
                f"No valid segments in transcription of {path.name}",
                suggestion="The audio may be silent or the model output was truncated",
            )
        logger.info(
            "Transcribed %s: %d segments, %d words in %.1fs",
            path.name,
            len(transcription.segments),
            transcription.word_count,
            elapsed,
        )
        return transcription

    def transcribe_episode(
        self,
        episode: Episode,
        audio_path: Path,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        duration: Optional[int] = None,
    ) -> TranscriptionStatus:
        """Transcribe an episode's audio and persist every state transition.

        The processing record is saved before the model is called; the
        completed or failed record replaces it afterwards.

        Raises:
            PodcastChatError: The final transcription error, unchanged, after the
                              failed status has been persisted. Interrupts
                              (KeyboardInterrupt, SystemExit) are recorded the same way.
        """
        status = TranscriptionStatus(
            episode_id=episode.id,
            model=self.model.model,
            metadata=TranscriptionMetadata(
                duration=duration if duration is not None else episode.duration
            ),
        )
        self.store.save_transcription(status)
        logger.info("Transcribing episode %s (%s)", episode.id, episode.title)

        try:
            transcription = self.transcribe_file(
                audio_path,
                on_progress=on_progress,
                cancel_token=cancel_token,
                transcription_id=status.id,
            )
        except BaseException as exc:
            status.mark_failed(str(exc) or type(exc).__name__)
            self.store.save_transcription(status)
            logger.error("Transcription failed for episode %s: %s", episode.id, exc)
            raise

        status.mark_completed(transcription)
        self.store.save_transcription(status)
        return status

