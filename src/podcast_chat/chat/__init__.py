"""Chat sessions grounded in episode transcripts."""

from .manager import ChatSessionManager, build_system_prompt
from .sessions import ChatSessionStore

__all__ = ["ChatSessionManager", "ChatSessionStore", "build_system_prompt"]
