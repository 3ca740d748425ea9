from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import config_constants


def _is_test_environment() -> bool:
    """Check if we're running in a test environment."""
    import sys

    if "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ:
        return True
    if os.environ.get("TESTING", "").lower() in ("1", "true", "yes"):
        return True
    return False


# Tests should use Config objects with explicit values or environment variables,
# never a developer's .env file
if not _is_test_environment():
    try:
        load_dotenv(override=False)
    except (PermissionError, OSError):
        pass

DEFAULT_LOG_LEVEL = config_constants.DEFAULT_LOG_LEVEL
DEFAULT_TIMEOUT_SECONDS = config_constants.DEFAULT_TIMEOUT_SECONDS
DEFAULT_USER_AGENT = config_constants.DEFAULT_USER_AGENT
DEFAULT_DATA_DIR = config_constants.DEFAULT_DATA_DIR
DEFAULT_RETRY_ATTEMPTS = config_constants.DEFAULT_RETRY_ATTEMPTS
DEFAULT_RETRY_DELAY_MS = config_constants.DEFAULT_RETRY_DELAY_MS
MIN_TIMEOUT_SECONDS = config_constants.MIN_TIMEOUT_SECONDS
VALID_LOG_LEVELS = config_constants.VALID_LOG_LEVELS


def _get_default_gemini_transcription_model() -> str:
    """Get default Gemini transcription model based on environment.

    Returns:
        Test default if in test environment, production default otherwise.
    """
    if _is_test_environment():
        return config_constants.TEST_DEFAULT_GEMINI_TRANSCRIPTION_MODEL
    return config_constants.DEFAULT_GEMINI_TRANSCRIPTION_MODEL


def _get_default_gemini_chat_model() -> str:
    """Get default Gemini chat model based on environment."""
    if _is_test_environment():
        return config_constants.TEST_DEFAULT_GEMINI_CHAT_MODEL
    return config_constants.DEFAULT_GEMINI_CHAT_MODEL


def _env_or_value(value: Any, env_name: str) -> Optional[str]:
    """Return the explicit value when set, else the stripped environment variable."""
    if value is not None and str(value).strip():
        return str(value).strip()
    env_value = os.getenv(env_name)
    if env_value and env_value.strip():
        return env_value.strip()
    return None


class Config(BaseModel):
    """Configuration model for the podcast chat pipeline.

    Configuration can be created programmatically or loaded from JSON/YAML files
    using `load_config_file()`. The model is frozen after creation.

    Attributes:
        data_dir: Root directory for episodes, transcriptions, assets and raw sync data.
            Can be set via PODCAST_CHAT_DATA_DIR.
        gemini_api_key: Gemini API key (GEMINI_API_KEY). When absent the coordinator
            asks the credential store for one.
        gemini_transcription_model: Model used for streaming transcription.
        gemini_chat_model: Model used for transcript-grounded chat.
        max_output_tokens: Output token budget for the transcription call.
        retry_attempts: Attempts made by the Retry Executor around transcription.
        retry_delay_ms: Base delay of the linear backoff (delay = base * attempt).
        timeout: HTTP timeout in seconds for downloads and the remote episode API.
        user_agent: HTTP User-Agent header for audio downloads.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional log file path (LOG_FILE).
        json_logs: Emit structured JSON log lines.
        save_debug_artifacts: Write intermediate streaming payloads for diagnostics.
        debug_dir: Directory for debug artifacts. Defaults to <data_dir>/debug/transcriptions.
        onepassword_item: 1Password item holding the Pocket Casts login.
        onepassword_api_key_item: 1Password item holding the Gemini API key.
        pocketcasts_base_url: Base URL of the remote episode API.

    Example:
        >>> from podcast_chat import Config, load_config_file
        >>> cfg = Config(**load_config_file("config.yaml"))
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    data_dir: str = Field(default=None, alias="data_dir", validate_default=True)
    gemini_api_key: Optional[str] = Field(
        default=None, alias="gemini_api_key", validate_default=True, repr=False
    )
    gemini_transcription_model: str = Field(
        default_factory=_get_default_gemini_transcription_model,
        alias="gemini_transcription_model",
    )
    gemini_chat_model: str = Field(
        default_factory=_get_default_gemini_chat_model, alias="gemini_chat_model"
    )
    max_output_tokens: int = Field(
        default=config_constants.DEFAULT_MAX_OUTPUT_TOKENS, alias="max_output_tokens", gt=0
    )
    retry_attempts: int = Field(default=DEFAULT_RETRY_ATTEMPTS, alias="retry_attempts")
    retry_delay_ms: int = Field(default=DEFAULT_RETRY_DELAY_MS, alias="retry_delay_ms")
    timeout: int = Field(default=DEFAULT_TIMEOUT_SECONDS, alias="timeout")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="user_agent")
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, alias="log_level")
    log_file: Optional[str] = Field(default=None, alias="log_file", validate_default=True)
    json_logs: bool = Field(default=False, alias="json_logs")
    save_debug_artifacts: bool = Field(default=True, alias="save_debug_artifacts")
    debug_dir: Optional[str] = Field(default=None, alias="debug_dir")
    onepassword_item: str = Field(
        default=config_constants.DEFAULT_ONEPASSWORD_ITEM, alias="onepassword_item"
    )
    onepassword_api_key_item: str = Field(
        default=config_constants.DEFAULT_ONEPASSWORD_API_KEY_ITEM,
        alias="onepassword_api_key_item",
    )
    pocketcasts_base_url: str = Field(
        default=config_constants.DEFAULT_POCKETCASTS_BASE_URL, alias="pocketcasts_base_url"
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def _load_data_dir_from_env(cls, value: Any) -> str:
        """Load data directory from environment variable if not provided."""
        return _env_or_value(value, "PODCAST_CHAT_DATA_DIR") or DEFAULT_DATA_DIR

    @field_validator("data_dir", mode="after")
    @classmethod
    def _expand_data_dir(cls, value: str) -> str:
        return str(Path(value).expanduser())

    @field_validator("gemini_api_key", mode="before")
    @classmethod
    def _load_gemini_api_key_from_env(cls, value: Any) -> Optional[str]:
        """Load Gemini API key from environment variable if not provided."""
        return _env_or_value(value, "GEMINI_API_KEY")

    @field_validator("log_file", mode="before")
    @classmethod
    def _load_log_file_from_env(cls, value: Any) -> Optional[str]:
        """Load log file path from environment variable if not provided."""
        return _env_or_value(value, "LOG_FILE")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        """Normalize log level value."""
        if value is None:
            return DEFAULT_LOG_LEVEL
        return str(value).strip().upper() or DEFAULT_LOG_LEVEL

    @field_validator("log_level", mode="after")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        """Validate log level is one of the valid levels."""
        if value not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got: {value}")
        return value

    @field_validator("user_agent", mode="before")
    @classmethod
    def _coerce_user_agent(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_USER_AGENT
        return str(value).strip() or DEFAULT_USER_AGENT

    @field_validator("timeout", mode="before")
    @classmethod
    def _ensure_timeout(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_TIMEOUT_SECONDS
        try:
            timeout = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("timeout must be an integer") from exc
        return max(MIN_TIMEOUT_SECONDS, timeout)

    @field_validator("retry_attempts", mode="before")
    @classmethod
    def _ensure_retry_attempts(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_RETRY_ATTEMPTS
        try:
            attempts = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("retry_attempts must be an integer") from exc
        if attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        return attempts

    @field_validator("retry_delay_ms", mode="before")
    @classmethod
    def _ensure_retry_delay(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_RETRY_DELAY_MS
        try:
            delay = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("retry_delay_ms must be an integer") from exc
        if delay < 0:
            raise ValueError("retry_delay_ms must be non-negative")
        return delay

    @field_validator("pocketcasts_base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def effective_debug_dir(self) -> Path:
        """Directory that receives transcription debug artifacts."""
        if self.debug_dir:
            return Path(self.debug_dir).expanduser()
        return Path(self.data_dir) / config_constants.DEBUG_SUBDIR


def load_config_file(path: str) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    The file format is auto-detected from the extension (`.json`, `.yaml`, `.yml`).
    The returned dictionary can be unpacked into the `Config` constructor.

    Args:
        path: Path to configuration file. Supports tilde expansion.

    Returns:
        Dictionary of configuration values keyed by `Config` field names or aliases.

    Raises:
        ValueError: If the path is empty, missing, unreadable, of an unsupported type,
            fails to parse, or does not contain a mapping at the top level.
    """
    if not path:
        raise ValueError("Config path cannot be empty")

    cfg_path = Path(path).expanduser()
    try:
        resolved = cfg_path.resolve()
    except (OSError, RuntimeError) as exc:
        raise ValueError(f"Invalid config path: {path} ({exc})") from exc

    if not resolved.exists():
        raise ValueError(f"Config file not found: {resolved}")

    suffix = resolved.suffix.lower()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read config file {resolved}: {exc}") from exc

    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config file {resolved}: {exc}") from exc
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:  # type: ignore[attr-defined]
            raise ValueError(f"Invalid YAML config file {resolved}: {exc}") from exc
    else:
        raise ValueError(f"Unsupported config file type: {resolved.suffix}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping/object at the top level")

    return data
