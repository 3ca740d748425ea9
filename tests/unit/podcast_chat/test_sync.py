#!/usr/bin/env python3
"""Tests for the Pocket Casts episode sync."""

import sys
import threading
from pathlib import Path
from unittest.mock import Mock

import pytest

tests_dir = Path(__file__).resolve().parents[2]
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from podcast_chat_helpers import create_test_episode  # noqa: E402

from podcast_chat.coordinator import EpisodeCoordinator  # noqa: E402
from podcast_chat.credentials import Credentials  # noqa: E402
from podcast_chat.exceptions import AuthError, CredentialsError  # noqa: E402
from podcast_chat.storage import InMemoryStorage  # noqa: E402
from podcast_chat.sync import EpisodeSyncService, merge_listened_and_starred  # noqa: E402

pytestmark = [pytest.mark.unit]


def remote(uuid, **overrides):
    payload = {
        "uuid": uuid,
        "title": f"Episode {uuid}",
        "url": f"https://cdn.example.com/{uuid}.mp3",
        "published": "2024-03-01T08:00:00Z",
        "duration": 600,
        "podcastTitle": "A Podcast",
        "playingStatus": 3,
        "playedUpTo": 600,
    }
    payload.update(overrides)
    return payload


def make_service(store, listened, starred):
    client = Mock()
    client.get_listened_episodes_raw.return_value = listened
    client.get_starred_episodes_raw.return_value = starred
    credentials = Mock()
    credentials.get_credentials.return_value = Credentials("me@example.com", "secret")
    return EpisodeSyncService(client, credentials, store, max_workers=2), client


@pytest.mark.critical_path
class TestSyncEpisodes:
    def test_listened_then_starred_only(self, memory_store):
        service, client = make_service(
            memory_store,
            listened=[remote("a"), remote("b"), remote("c")],
            starred=[remote("b", starred=True), remote("d", starred=True, playingStatus=1)],
        )

        episodes = service.sync_episodes()

        client.login.assert_called_once_with("me@example.com", "secret")
        assert [e.id for e in episodes] == ["a", "b", "c", "d"]
        assert [e.is_starred for e in episodes] == [False, True, False, True]
        assert not episodes[3].is_listened
        assert sorted(e.id for e in memory_store.list_episodes()) == ["a", "b", "c", "d"]

    def test_raw_payloads_saved(self, memory_store):
        service, _ = make_service(memory_store, [remote("a")], [remote("b", starred=True)])
        service.sync_episodes()

        assert memory_store.get_raw("listened")[0]["uuid"] == "a"
        assert memory_store.get_raw("starred")[0]["uuid"] == "b"

    def test_local_state_is_preserved(self, memory_store):
        memory_store.save_episode(
            create_test_episode(
                "a",
                is_downloaded=True,
                has_transcript=True,
                notes="great bit at 10m",
                description="Show notes",
            )
        )
        service, _ = make_service(memory_store, [remote("a", title="Renamed")], [])

        (episode,) = service.sync_episodes()

        assert episode.title == "Renamed"
        assert episode.is_downloaded
        assert episode.has_transcript
        assert episode.notes == "great bit at 10m"
        assert episode.description == "Show notes"
        assert memory_store.get_episode("a").has_transcript

    def test_empty_remote(self, memory_store):
        service, _ = make_service(memory_store, [], [])
        assert service.sync_episodes() == []

    def test_credentials_failure_stops_sync(self, memory_store):
        service, client = make_service(memory_store, [remote("a")], [])
        service.credentials.get_credentials.side_effect = CredentialsError(
            "failed to retrieve credentials"
        )

        with pytest.raises(CredentialsError):
            service.sync_episodes()
        client.login.assert_not_called()

    def test_login_failure_saves_nothing(self, memory_store):
        service, client = make_service(memory_store, [remote("a")], [])
        client.login.side_effect = AuthError("Invalid credentials or session expired")

        with pytest.raises(AuthError):
            service.sync_episodes()
        assert memory_store.list_episodes() == []
        assert memory_store.get_raw("listened") == []


class TestMergeListenedAndStarred:
    def test_duplicates_collapse(self):
        listened = [create_test_episode("a"), create_test_episode("b")]
        starred = [create_test_episode("b", is_starred=True)]

        merged = merge_listened_and_starred(listened, starred)

        assert [e.id for e in merged] == ["a", "b"]
        assert merged[1].is_starred
        assert not listened[1].is_starred


class _UpdateDuringReadStorage(InMemoryStorage):
    """Runs ``on_first_read`` right after the first episode read."""

    on_first_read = None

    def get_episode(self, episode_id):
        episode = super().get_episode(episode_id)
        hook, self.on_first_read = self.on_first_read, None
        if hook is not None:
            hook(episode_id)
        return episode


@pytest.mark.critical_path
class TestSyncWithConcurrentUpdates:
    def test_flag_set_during_sync_is_not_overwritten(self, tmp_path):
        store = _UpdateDuringReadStorage(tmp_path, episodes=[create_test_episode("a")])
        service, _ = make_service(store, [remote("a")], [])
        coordinator = EpisodeCoordinator(
            store=store, engine=Mock(), chat=Mock(), sync_service=service
        )
        updater = threading.Thread(
            target=coordinator.update_episode, args=("a",), kwargs={"is_downloaded": True}
        )

        def start_download_finishing(episode_id):
            updater.start()
            # The update waits for the episode lock held by the sync
            updater.join(0.2)

        store.on_first_read = start_download_finishing

        service.sync_episodes()
        updater.join(2.0)

        assert not updater.is_alive()
        assert store.get_episode("a").is_downloaded

    def test_coordinator_shares_sync_locks(self, memory_store):
        service, _ = make_service(memory_store, [], [])
        coordinator = EpisodeCoordinator(
            store=memory_store, engine=Mock(), chat=Mock(), sync_service=service
        )
        assert coordinator._locks is service.locks
