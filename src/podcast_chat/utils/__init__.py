"""Utility helpers shared across podcast_chat."""
