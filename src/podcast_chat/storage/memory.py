from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import NotFoundError
from ..models import Episode, TranscriptionStatus
from .base import merge_episode, RawDataKind
from .filesystem import ASSETS_SUBDIR, validate_path_component


class InMemoryStorage:
    """EpisodeStore kept in dictionaries; records are copied on the way in and out.

    Asset bytes still need a real file for the downloader, so asset paths live under
    ``asset_root``.
    """

    def __init__(self, asset_root: Path, episodes: Optional[List[Episode]] = None) -> None:
        self.asset_root = Path(asset_root)
        self._episodes: Dict[str, Episode] = {}
        self._transcriptions: Dict[str, TranscriptionStatus] = {}
        self._raw: Dict[str, List[Dict[str, Any]]] = {}
        for episode in episodes or []:
            self.save_episode(episode)

    def save_episode(self, episode: Episode) -> None:
        self._episodes[episode.id] = episode.model_copy(deep=True)

    def get_episode(self, episode_id: str) -> Optional[Episode]:
        episode = self._episodes.get(episode_id)
        return episode.model_copy(deep=True) if episode else None

    def list_episodes(self) -> List[Episode]:
        return [e.model_copy(deep=True) for e in self._episodes.values()]

    def update_episode(self, episode_id: str, changes: Dict[str, Any]) -> Episode:
        episode = self._episodes.get(episode_id)
        if episode is None:
            raise NotFoundError(f"Episode not found: {episode_id}")
        updated = merge_episode(episode, changes)
        self._episodes[episode_id] = updated
        return updated.model_copy(deep=True)

    def save_transcription(self, status: TranscriptionStatus) -> None:
        self._transcriptions[status.episode_id] = status.model_copy(deep=True)

    def get_transcription(self, episode_id: str) -> Optional[TranscriptionStatus]:
        status = self._transcriptions.get(episode_id)
        return status.model_copy(deep=True) if status else None

    def asset_path(self, episode_id: str, name: str) -> Path:
        return (
            self.asset_root
            / ASSETS_SUBDIR
            / validate_path_component(episode_id, "episode id")
            / validate_path_component(name, "asset name")
        )

    def save_raw(self, kind: RawDataKind, payload: List[Dict[str, Any]]) -> None:
        self._raw[kind] = copy.deepcopy(payload)

    def get_raw(self, kind: RawDataKind) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._raw.get(kind, []))
