"""Client for the Pocket Casts web player API.

Only the three calls the sync needs are implemented: login, listening history
and starred episodes. Every call is a JSON POST authenticated with the bearer
token returned by login.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from . import config_constants
from .exceptions import (
    ApiError,
    AuthError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from .models import Episode

logger = logging.getLogger(__name__)

PLAYING_STATUS_COMPLETED = 3
LOGIN_SCOPE = "webplayer"

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "Cache-Control": "no-cache",
}


class RemoteEpisode(BaseModel):
    """Episode as returned by ``/user/history`` and ``/user/starred``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    uuid: str = Field(min_length=1)
    title: str
    url: Optional[str] = None
    published: datetime
    duration: float = 0
    file_size: int = 0
    podcast_uuid: str = ""
    podcast_title: str = ""
    playing_status: int = 0
    starred: bool = False
    played_up_to: float = 0


def to_episode(remote: RemoteEpisode) -> Episode:
    """Convert a remote episode into a local Episode with default local state."""
    if remote.duration > 0:
        progress = min(1.0, max(0.0, remote.played_up_to / remote.duration))
    else:
        progress = 0.0
    return Episode(
        id=remote.uuid,
        title=remote.title,
        url=remote.url or "",
        podcast_name=remote.podcast_title,
        publish_date=remote.published,
        duration=max(0, int(remote.duration)),
        is_starred=remote.starred,
        is_listened=remote.playing_status == PLAYING_STATUS_COMPLETED,
        progress=progress,
    )


def _error_message(response: requests.Response) -> str:
    """Extract the ``message`` field of a JSON error body, else the status text."""
    content_type = response.headers.get("Content-Type", "")
    if "application/json" in content_type:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
    return response.reason or f"HTTP {response.status_code}"


class PocketCastsClient:
    """Thin JSON client for the Pocket Casts API.

    Example:
        >>> client = PocketCastsClient()
        >>> client.login("me@example.com", "secret")
        >>> episodes = client.get_listened_episodes()
    """

    def __init__(
        self,
        base_url: str = config_constants.DEFAULT_POCKETCASTS_BASE_URL,
        timeout: int = config_constants.DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None

    @property
    def logged_in(self) -> bool:
        return self._token is not None

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if self._token is None and endpoint != "/user/login":
            raise AuthError("Not logged in to Pocket Casts", suggestion="Call login() first")

        headers = dict(DEFAULT_HEADERS)
        if self._token is not None:
            headers["Authorization"] = f"Bearer {self._token}"

        url = f"{self.base_url}{endpoint}"
        logger.debug("POST %s", url)
        try:
            response = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ApiError(
                f"Could not connect to Pocket Casts: {exc}",
                suggestion="Check your internet connection",
            ) from exc

        status = response.status_code
        if status == 401:
            raise AuthError("Invalid credentials or session expired")
        if status == 403:
            raise ForbiddenError("Access denied. Please check your account permissions.")
        if status == 404:
            raise NotFoundError(f"Resource not found: {endpoint}")
        if status == 429:
            raise RateLimitError("Too many requests. Please try again later.")
        if not response.ok:
            raise ApiError(f"API error: {_error_message(response)}", status_code=status)

        try:
            data = response.json()
        except ValueError as exc:
            raise ApiError(f"Invalid JSON from {endpoint}", status_code=status) from exc
        if not isinstance(data, dict):
            raise ApiError(f"Unexpected response shape from {endpoint}", status_code=status)
        return data

    def login(self, email: str, password: str) -> None:
        """Authenticate and keep the bearer token for later calls.

        Raises:
            AuthError: If the credentials are rejected or no token is returned
        """
        data = self._post(
            "/user/login", {"email": email, "password": password, "scope": LOGIN_SCOPE}
        )
        token = data.get("token")
        if not token:
            raise AuthError("No authentication token received")
        self._token = str(token)
        logger.info("Logged in to Pocket Casts")

    def _fetch_raw(self, endpoint: str) -> List[Dict[str, Any]]:
        episodes = self._post(endpoint, {}).get("episodes") or []
        if not isinstance(episodes, list):
            raise ApiError(f"Unexpected episodes payload from {endpoint}")
        return [e for e in episodes if isinstance(e, dict)]

    def get_listened_episodes_raw(self) -> List[Dict[str, Any]]:
        return self._fetch_raw("/user/history")

    def get_starred_episodes_raw(self) -> List[Dict[str, Any]]:
        return self._fetch_raw("/user/starred")

    def get_listened_episodes(self) -> List[RemoteEpisode]:
        return parse_remote_episodes(self.get_listened_episodes_raw())

    def get_starred_episodes(self) -> List[RemoteEpisode]:
        return parse_remote_episodes(self.get_starred_episodes_raw())


def parse_remote_episodes(payload: List[Dict[str, Any]]) -> List[RemoteEpisode]:
    """Validate raw episode dicts.

    Raises:
        ValidationError: If any episode does not match the expected shape
    """
    try:
        return [RemoteEpisode.model_validate(item) for item in payload]
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid episode in Pocket Casts response: {exc}") from exc
