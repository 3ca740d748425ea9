"""Configuration constants for podcast_chat.

All constants are re-exported from config.py for convenience.
"""

# General defaults
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TIMEOUT_SECONDS = 30
MIN_TIMEOUT_SECONDS = 1
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/119.0 Safari/537.36"
)
DEFAULT_DATA_DIR = "~/.podcast-cli"
DEBUG_SUBDIR = "debug/transcriptions"

# Retry Executor defaults (linear backoff: delay = base * attempt)
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_MS = 1000

# Gemini model defaults
DEFAULT_GEMINI_TRANSCRIPTION_MODEL = "gemini-2.5-pro"
DEFAULT_GEMINI_CHAT_MODEL = "gemini-2.5-flash"
TEST_DEFAULT_GEMINI_TRANSCRIPTION_MODEL = "gemini-2.0-flash"
TEST_DEFAULT_GEMINI_CHAT_MODEL = "gemini-2.0-flash"
DEFAULT_MAX_OUTPUT_TOKENS = 65536

# Remote episode API
DEFAULT_POCKETCASTS_BASE_URL = "https://api.pocketcasts.com"

# 1Password item names
DEFAULT_ONEPASSWORD_ITEM = "pocketcasts.com"
DEFAULT_ONEPASSWORD_API_KEY_ITEM = "Google AI Studio"

# Storage
AUDIO_ASSET_NAME = "audio.mp3"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
