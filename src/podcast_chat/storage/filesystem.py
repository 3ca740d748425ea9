"""JSON-document storage rooted at a data directory.

Layout::

    <root>/episodes/<episode_id>.json
    <root>/transcriptions/<episode_id>.json
    <root>/assets/<episode_id>/<name>
    <root>/raw/<listened|starred>.json
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import NotFoundError, ValidationError
from ..models import Episode, TranscriptionStatus
from .base import merge_episode, RawDataKind

logger = logging.getLogger(__name__)

EPISODES_SUBDIR = "episodes"
TRANSCRIPTIONS_SUBDIR = "transcriptions"
ASSETS_SUBDIR = "assets"
RAW_SUBDIR = "raw"


def validate_path_component(value: str, what: str) -> str:
    """Reject ids and names that would escape their directory."""
    if not value or value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
        raise ValidationError(f"Invalid {what}: {value!r}")
    return value


def _write_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` via a temp file so readers never see half a document."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class FileSystemStorage:
    """EpisodeStore backed by one JSON file per record."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser()
        self.episodes_dir = self.root / EPISODES_SUBDIR
        self.transcriptions_dir = self.root / TRANSCRIPTIONS_SUBDIR
        self.assets_dir = self.root / ASSETS_SUBDIR
        self.raw_dir = self.root / RAW_SUBDIR

    def _episode_path(self, episode_id: str) -> Path:
        return self.episodes_dir / f"{validate_path_component(episode_id, 'episode id')}.json"

    def _transcription_path(self, episode_id: str) -> Path:
        return (
            self.transcriptions_dir / f"{validate_path_component(episode_id, 'episode id')}.json"
        )

    # Episodes

    def save_episode(self, episode: Episode) -> None:
        path = self._episode_path(episode.id)
        _write_atomic(path, episode.model_dump_json(by_alias=True, indent=2))
        logger.debug("Saved episode %s to %s", episode.id, path)

    def get_episode(self, episode_id: str) -> Optional[Episode]:
        path = self._episode_path(episode_id)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return Episode.model_validate_json(text)
        except PydanticValidationError as exc:
            raise ValidationError(f"Corrupt episode record {path}: {exc}") from exc

    def list_episodes(self) -> List[Episode]:
        if not self.episodes_dir.is_dir():
            return []
        episodes: List[Episode] = []
        for path in sorted(self.episodes_dir.glob("*.json")):
            try:
                episodes.append(Episode.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, PydanticValidationError) as exc:
                logger.warning("Failed to load episode from %s: %s", path.name, exc)
        return episodes

    def update_episode(self, episode_id: str, changes: Dict[str, Any]) -> Episode:
        episode = self.get_episode(episode_id)
        if episode is None:
            raise NotFoundError(f"Episode not found: {episode_id}")
        updated = merge_episode(episode, changes)
        self.save_episode(updated)
        return updated

    # Transcriptions

    def save_transcription(self, status: TranscriptionStatus) -> None:
        path = self._transcription_path(status.episode_id)
        _write_atomic(path, status.model_dump_json(by_alias=True, indent=2))
        logger.debug(
            "Saved transcription %s (%s) for episode %s", status.id, status.status, status.episode_id
        )

    def get_transcription(self, episode_id: str) -> Optional[TranscriptionStatus]:
        path = self._transcription_path(episode_id)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return TranscriptionStatus.model_validate_json(text)
        except PydanticValidationError as exc:
            raise ValidationError(f"Corrupt transcription record {path}: {exc}") from exc

    # Assets and raw sync payloads

    def asset_path(self, episode_id: str, name: str) -> Path:
        return (
            self.assets_dir
            / validate_path_component(episode_id, "episode id")
            / validate_path_component(name, "asset name")
        )

    def list_assets(self, episode_id: str) -> List[str]:
        directory = self.assets_dir / validate_path_component(episode_id, "episode id")
        if not directory.is_dir():
            return []
        return sorted(p.name for p in directory.iterdir() if p.is_file())

    def save_raw(self, kind: RawDataKind, payload: List[Dict[str, Any]]) -> None:
        _write_atomic(self.raw_dir / f"{kind}.json", json.dumps(payload, indent=2))

    def get_raw(self, kind: RawDataKind) -> List[Dict[str, Any]]:
        path = self.raw_dir / f"{kind}.json"
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Corrupt raw {kind} data in {path}: {exc}") from exc
        return data if isinstance(data, list) else []
