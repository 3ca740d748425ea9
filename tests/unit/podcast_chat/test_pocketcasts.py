#!/usr/bin/env python3
"""Tests for the Pocket Casts API client."""

import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

tests_dir = Path(__file__).resolve().parents[2]
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from podcast_chat_helpers import MockHTTPResponse  # noqa: E402

from podcast_chat.exceptions import (  # noqa: E402
    ApiError,
    AuthError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from podcast_chat.pocketcasts import (  # noqa: E402
    parse_remote_episodes,
    PocketCastsClient,
    RemoteEpisode,
    to_episode,
)

pytestmark = [pytest.mark.unit]

BASE_URL = "https://api.example.com"


def remote_payload(uuid="ep-1", **overrides):
    payload = {
        "uuid": uuid,
        "title": "An Episode",
        "url": "https://cdn.example.com/ep.mp3",
        "published": "2024-03-01T08:00:00Z",
        "duration": 3600,
        "fileSize": 1234,
        "podcastUuid": "pod-1",
        "podcastTitle": "A Podcast",
        "status": "played",
        "playingStatus": 3,
        "starred": False,
        "playedUpTo": 1800,
    }
    payload.update(overrides)
    return payload


def json_response(data, status_code=200, reason="OK"):
    return MockHTTPResponse(
        status_code=status_code,
        reason=reason,
        headers={"Content-Type": "application/json; charset=utf-8"},
        json_data=data,
    )


def logged_in_client(*responses):
    session = Mock()
    session.post.side_effect = [json_response({"token": "tok", "email": "me@example.com"})] + list(
        responses
    )
    client = PocketCastsClient(base_url=BASE_URL, timeout=5, session=session)
    client.login("me@example.com", "secret")
    return client, session


class TestLogin:
    def test_login_posts_webplayer_scope_and_stores_token(self):
        client, session = logged_in_client(json_response({"episodes": []}))

        assert client.logged_in
        login_call = session.post.call_args_list[0]
        assert login_call.args[0] == f"{BASE_URL}/user/login"
        assert login_call.kwargs["json"] == {
            "email": "me@example.com",
            "password": "secret",
            "scope": "webplayer",
        }
        assert "Authorization" not in login_call.kwargs["headers"]

        client.get_listened_episodes()
        history_call = session.post.call_args_list[1]
        assert history_call.args[0] == f"{BASE_URL}/user/history"
        assert history_call.kwargs["headers"]["Authorization"] == "Bearer tok"

    def test_login_without_token(self):
        session = Mock()
        session.post.return_value = json_response({"email": "me@example.com"})
        client = PocketCastsClient(base_url=BASE_URL, session=session)

        with pytest.raises(AuthError, match="No authentication token"):
            client.login("me@example.com", "secret")

    def test_calls_before_login_raise_auth_error(self):
        session = Mock()
        client = PocketCastsClient(base_url=BASE_URL, session=session)

        with pytest.raises(AuthError):
            client.get_starred_episodes()
        session.post.assert_not_called()


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status, error_cls, kind",
        [
            (401, AuthError, "auth-expired"),
            (403, ForbiddenError, "forbidden"),
            (404, NotFoundError, "not-found"),
            (429, RateLimitError, "rate-limited"),
        ],
    )
    def test_status_codes(self, status, error_cls, kind):
        client, _ = logged_in_client(json_response({}, status_code=status, reason="Nope"))

        with pytest.raises(error_cls) as exc_info:
            client.get_listened_episodes()
        assert exc_info.value.kind == kind

    def test_other_status_uses_json_message(self):
        client, _ = logged_in_client(
            json_response({"message": "Server on fire"}, status_code=500, reason="Server Error")
        )

        with pytest.raises(ApiError, match="Server on fire") as exc_info:
            client.get_starred_episodes()
        assert exc_info.value.status_code == 500

    def test_other_status_without_json_uses_status_text(self):
        client, _ = logged_in_client(
            MockHTTPResponse(
                status_code=502, reason="Bad Gateway", headers={"Content-Type": "text/html"}
            )
        )

        with pytest.raises(ApiError, match="Bad Gateway"):
            client.get_starred_episodes()

    def test_connection_failure(self):
        session = Mock()
        session.post.side_effect = requests.ConnectionError("dns failure")
        client = PocketCastsClient(base_url=BASE_URL, session=session)

        with pytest.raises(ApiError, match="Could not connect"):
            client.login("me@example.com", "secret")


class TestEpisodes:
    def test_episodes_are_validated(self):
        client, _ = logged_in_client(
            json_response({"episodes": [remote_payload("a"), remote_payload("b")]})
        )

        episodes = client.get_listened_episodes()

        assert [e.uuid for e in episodes] == ["a", "b"]
        assert episodes[0].podcast_title == "A Podcast"
        assert episodes[0].played_up_to == 1800

    def test_missing_episodes_key_is_empty(self):
        client, _ = logged_in_client(json_response({}))
        assert client.get_starred_episodes() == []

    def test_invalid_episode_raises_validation_error(self):
        with pytest.raises(ValidationError):
            parse_remote_episodes([{"uuid": "a"}])


class TestToEpisode:
    def test_conversion(self):
        episode = to_episode(RemoteEpisode.model_validate(remote_payload(starred=True)))

        assert episode.id == "ep-1"
        assert episode.podcast_name == "A Podcast"
        assert episode.url == "https://cdn.example.com/ep.mp3"
        assert episode.publish_date == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
        assert episode.progress == 0.5
        assert episode.is_listened
        assert episode.is_starred
        assert not episode.is_downloaded

    def test_in_progress_episode_is_not_listened(self):
        episode = to_episode(RemoteEpisode.model_validate(remote_payload(playingStatus=2)))
        assert not episode.is_listened

    def test_zero_duration_and_missing_url(self):
        episode = to_episode(
            RemoteEpisode.model_validate(remote_payload(duration=0, url=None, playedUpTo=30))
        )
        assert episode.progress == 0.0
        assert episode.url == ""

    def test_progress_is_clamped(self):
        episode = to_episode(RemoteEpisode.model_validate(remote_payload(playedUpTo=4000)))
        assert episode.progress == 1.0
