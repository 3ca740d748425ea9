from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .exceptions import ValidationError

TranscriptionState = Literal["processing", "completed", "failed"]
ChatRole = Literal["system", "user", "assistant"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _CamelRecord(BaseModel):
    """Base for persisted records whose JSON documents use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Episode(_CamelRecord):
    """A podcast episode as stored locally.

    Created at sync time from the remote episode API and afterwards only mutated
    through partial updates (download and transcription flags, notes).

    Attributes:
        id: Remote episode uuid.
        title: Episode title.
        url: Remote audio URL. May be empty when the remote API has none.
        podcast_name: Title of the podcast the episode belongs to.
        publish_date: Publication date.
        duration: Duration in seconds.
        is_starred: Starred on the remote service.
        is_listened: Played to completion on the remote service.
        progress: Listening progress between 0 and 1.
        last_listened_at: When the episode was last played, if known.
        is_downloaded: Audio asset has been downloaded.
        has_transcript: A completed transcription exists.
        notes: Free-form user notes.
        description: Show notes.
        synced_at: Last time the record was refreshed from the remote API.
    """

    id: str = Field(min_length=1)
    title: str
    url: str = ""
    podcast_name: str = ""
    publish_date: datetime
    duration: int = Field(default=0, ge=0)
    is_starred: bool = False
    is_listened: bool = False
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    last_listened_at: Optional[datetime] = None
    is_downloaded: bool = False
    has_transcript: bool = False
    notes: Optional[str] = None
    description: Optional[str] = None
    synced_at: datetime = Field(default_factory=utcnow)


class TranscriptSegment(BaseModel):
    """One timestamped utterance tagged with a speaker and topic keywords."""

    timestamp: str
    speaker: str
    spoken_text: str
    topics: List[str]


class Transcription(BaseModel):
    segments: List[TranscriptSegment] = Field(default_factory=list)

    @property
    def word_count(self) -> int:
        return sum(len(segment.spoken_text.split()) for segment in self.segments)


class TranscriptionMetadata(_CamelRecord):
    duration: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


class TranscriptionStatus(_CamelRecord):
    """Persisted state of one transcription run for an episode.

    The only legal transitions are processing -> completed and
    processing -> failed. A forced re-run creates a new record instead of
    moving a terminal one back to processing.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    episode_id: str
    status: TranscriptionState = "processing"
    model: str
    transcription: Optional[Transcription] = None
    metadata: TranscriptionMetadata = Field(default_factory=TranscriptionMetadata)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    def _require_processing(self, target: str) -> None:
        if self.status != "processing":
            raise ValidationError(
                f"Illegal transcription transition {self.status} -> {target} "
                f"for episode {self.episode_id}"
            )

    def mark_completed(self, transcription: Transcription) -> None:
        self._require_processing("completed")
        now = utcnow()
        self.status = "completed"
        self.transcription = transcription
        self.metadata.updated_at = now
        self.metadata.completed_at = now

    def mark_failed(self, error: str) -> None:
        self._require_processing("failed")
        self.status = "failed"
        self.metadata.updated_at = utcnow()
        self.metadata.error = error


@dataclass(frozen=True)
class ChatMessage:
    role: ChatRole
    content: str


@dataclass(frozen=True)
class TranscriptionProgress:
    """Reported whenever the number of valid streamed segments grows.

    Attributes:
        segment_count: Total valid segments so far.
        new_segments: spoken_text of the segments that became valid on this tick.
        timestamp: When the tick was observed.
    """

    segment_count: int
    new_segments: List[str]
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class EpisodeFound:
    episode: Episode


@dataclass(frozen=True)
class EpisodeAmbiguous:
    prefix: str
    matches: List[Episode]


@dataclass(frozen=True)
class EpisodeNotFound:
    prefix: str


EpisodeLookup = Union[EpisodeFound, EpisodeAmbiguous, EpisodeNotFound]
