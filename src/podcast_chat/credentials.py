"""Secrets from the 1Password CLI (``op``)."""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from . import config_constants
from .exceptions import CredentialsError

logger = logging.getLogger(__name__)

OP_TIMEOUT_SECONDS = 30
API_KEY_FIELD_LABELS = ("credential", "api key", "password")


@dataclass(frozen=True)
class Credentials:
    email: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(email={self.email!r}, password='***')"


def _field_value(fields: List[Dict[str, Any]], labels: Iterable[str]) -> str:
    by_label = {str(f.get("label", "")).lower(): f.get("value") for f in fields}
    for label in labels:
        value = by_label.get(label)
        if value:
            return str(value)
    raise KeyError(f"none of the fields {list(labels)} present")


class OnePasswordCredentialStore:
    """Read the Pocket Casts login and the Gemini API key from 1Password items."""

    def __init__(
        self,
        login_item: str = config_constants.DEFAULT_ONEPASSWORD_ITEM,
        api_key_item: str = config_constants.DEFAULT_ONEPASSWORD_API_KEY_ITEM,
        op_binary: str = "op",
    ) -> None:
        self.login_item = login_item
        self.api_key_item = api_key_item
        self.op_binary = op_binary

    def _get_item(self, item: str) -> List[Dict[str, Any]]:
        logger.debug("Reading 1Password item %r", item)
        result = subprocess.run(
            [self.op_binary, "item", "get", item, "--format", "json"],
            capture_output=True,
            text=True,
            check=True,
            timeout=OP_TIMEOUT_SECONDS,
        )
        data = json.loads(result.stdout)
        fields = data["fields"]
        if not isinstance(fields, list):
            raise TypeError("item fields is not a list")
        return fields

    def get_credentials(self) -> Credentials:
        """Return the Pocket Casts email and password.

        Raises:
            CredentialsError: If ``op`` is missing, fails, or the item lacks a field
        """
        try:
            fields = self._get_item(self.login_item)
            return Credentials(
                email=_field_value(fields, ("username", "email")),
                password=_field_value(fields, ("password",)),
            )
        except (OSError, subprocess.SubprocessError, ValueError, KeyError, TypeError) as exc:
            logger.debug("1Password lookup for %r failed: %s", self.login_item, exc)
            raise CredentialsError(
                "failed to retrieve credentials",
                suggestion=f"Sign in with 'op signin' and check the '{self.login_item}' item",
            ) from exc

    def get_api_key(self) -> str:
        """Return the Gemini API key.

        Raises:
            CredentialsError: If ``op`` is missing, fails, or the item has no key field
        """
        try:
            return _field_value(self._get_item(self.api_key_item), API_KEY_FIELD_LABELS)
        except (OSError, subprocess.SubprocessError, ValueError, KeyError, TypeError) as exc:
            logger.debug("1Password lookup for %r failed: %s", self.api_key_item, exc)
            raise CredentialsError(
                "failed to retrieve credentials",
                suggestion=f"Sign in with 'op signin' and check the '{self.api_key_item}' item",
            ) from exc
