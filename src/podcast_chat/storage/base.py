"""Storage protocol for episodes, transcription records and assets.

Implementations:
- FileSystemStorage: one JSON document per record under a data directory
- InMemoryStorage: dictionaries, with assets still written below a root directory
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError
from ..models import Episode, TranscriptionStatus

RawDataKind = Literal["listened", "starred"]


class EpisodeStore(Protocol):
    """Persistence contract used by the coordinator and the sync service."""

    def save_episode(self, episode: Episode) -> None: ...

    def get_episode(self, episode_id: str) -> Optional[Episode]:
        """Return the stored episode, or None when no record exists."""
        ...

    def list_episodes(self) -> List[Episode]: ...

    def update_episode(self, episode_id: str, changes: Dict[str, Any]) -> Episode:
        """Merge ``changes`` (field name -> value) into the stored record.

        Raises:
            NotFoundError: No episode with this id is stored
            ValidationError: The merged record is invalid
        """
        ...

    def save_transcription(self, status: TranscriptionStatus) -> None: ...

    def get_transcription(self, episode_id: str) -> Optional[TranscriptionStatus]: ...

    def asset_path(self, episode_id: str, name: str) -> Path: ...

    def save_raw(self, kind: RawDataKind, payload: List[Dict[str, Any]]) -> None: ...


def merge_episode(episode: Episode, changes: Dict[str, Any]) -> Episode:
    """Return ``episode`` with ``changes`` applied and re-validated.

    Raises:
        ValidationError: Unknown field names or values the Episode model rejects
    """
    unknown = set(changes) - set(Episode.model_fields)
    if unknown:
        raise ValidationError(f"Unknown episode fields: {sorted(unknown)}")
    try:
        return Episode.model_validate({**episode.model_dump(), **changes})
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid update for episode {episode.id}: {exc}") from exc
