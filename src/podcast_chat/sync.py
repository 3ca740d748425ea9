"""Refresh local episode records from Pocket Casts."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional

from .credentials import OnePasswordCredentialStore
from .models import Episode, utcnow
from .pocketcasts import PocketCastsClient, RemoteEpisode, parse_remote_episodes, to_episode
from .storage.base import EpisodeStore
from .utils.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)

DEFAULT_SYNC_WORKERS = 4
LOCAL_STATE_FIELDS = ("is_downloaded", "has_transcript", "notes")


def _convert_all(remotes: List[RemoteEpisode], max_workers: int) -> List[Episode]:
    """Convert remote episodes in parallel while keeping their order."""
    if not remotes:
        return []
    results: Dict[int, Episode] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_index = {
            executor.submit(to_episode, remote): i for i, remote in enumerate(remotes)
        }
        for future in as_completed(future_to_index):
            results[future_to_index[future]] = future.result()
    return [results[i] for i in range(len(remotes))]


def merge_listened_and_starred(listened: List[Episode], starred: List[Episode]) -> List[Episode]:
    """Listened order first, flagged as starred where applicable, then starred-only episodes."""
    starred_ids = {e.id for e in starred}
    listened_ids = set()
    merged: List[Episode] = []
    for episode in listened:
        listened_ids.add(episode.id)
        if episode.id in starred_ids and not episode.is_starred:
            episode = episode.model_copy(update={"is_starred": True})
        merged.append(episode)
    for episode in starred:
        if episode.id not in listened_ids:
            merged.append(episode.model_copy(update={"is_starred": True}))
    return merged


class EpisodeSyncService:
    """Pull listened and starred episodes and merge them into the store."""

    def __init__(
        self,
        client: PocketCastsClient,
        credentials: OnePasswordCredentialStore,
        store: EpisodeStore,
        max_workers: int = DEFAULT_SYNC_WORKERS,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self.client = client
        self.credentials = credentials
        self.store = store
        self.max_workers = max_workers
        self.locks = locks or KeyedLock()

    def _preserve_local_state(self, episode: Episode) -> Episode:
        existing: Optional[Episode] = self.store.get_episode(episode.id)
        update: Dict[str, Any] = {"synced_at": utcnow()}
        if existing is not None:
            for name in LOCAL_STATE_FIELDS:
                update[name] = getattr(existing, name)
            if not episode.description and existing.description:
                update["description"] = existing.description
        return episode.model_copy(update=update)

    def sync_episodes(self) -> List[Episode]:
        """Log in, fetch listened then starred episodes, and save the merged list.

        Raises:
            CredentialsError: If the credential store cannot supply a login
            AuthError: If Pocket Casts rejects the login
            ApiError: If a remote call fails
        """
        start_time = time.time()
        creds = self.credentials.get_credentials()
        self.client.login(creds.email, creds.password)

        listened_raw = self.client.get_listened_episodes_raw()
        self.store.save_raw("listened", listened_raw)
        starred_raw = self.client.get_starred_episodes_raw()
        self.store.save_raw("starred", starred_raw)

        listened = _convert_all(parse_remote_episodes(listened_raw), self.max_workers)
        starred = _convert_all(parse_remote_episodes(starred_raw), self.max_workers)

        episodes: List[Episode] = []
        for merged in merge_listened_and_starred(listened, starred):
            # Local flags are re-read under the lock downloads and transcriptions hold
            with self.locks.hold(merged.id):
                episode = self._preserve_local_state(merged)
                self.store.save_episode(episode)
            episodes.append(episode)

        logger.info(
            "Synced %d episodes (%d listened, %d starred) in %.1fs",
            len(episodes),
            len(listened),
            len(starred),
            time.time() - start_time,
        )
        return episodes
