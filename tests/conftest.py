"""Shared fixtures for podcast_chat tests.

Constants, builders and fake providers live in podcast_chat_helpers so test
modules can import them directly.
"""

from pathlib import Path

import pytest

from podcast_chat.storage import InMemoryStorage


@pytest.fixture
def memory_store(tmp_path: Path) -> InMemoryStorage:
    return InMemoryStorage(tmp_path)


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "episode.mp3"
    path.write_bytes(b"fake audio data")
    return path
