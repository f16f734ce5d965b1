"""
Session Module - Manages ephemeral reading sessions.

A session represents one read-through of a gamebook:
- Created when a reader starts
- Owns an Engine and the events it emits
- Destroyed when the reader ends it or it goes stale

Sessions are EPHEMERAL:
- No persistence to database
- Progress survives only through save strings (and optional autosave slots)
"""

from .manager import SessionManager, Session, SessionState

__all__ = [
    "SessionManager",
    "Session",
    "SessionState",
]
