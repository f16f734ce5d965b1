"""
Session Manager - Creates and manages play sessions.

LIFECYCLE:
1. Client creates a session -> a fresh Engine is built and initialized
2. During play:
   - Client reads state and available choices
   - Client makes choices; the engine applies effects and transitions
   - Every change event is appended to the session's event log
3. Client may save (save string) and load it back into any session that
   runs the same content version
4. Session ends -> engine and event log are dropped

PERSISTENCE RULES:
- Sessions are in-memory only
- The only persistence is the save string handed back to the client,
  plus optional autosave slots when a save directory is configured
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable
import logging
import time
import uuid

from ..content_schema.loader import ContentSource
from ..engine_core.engine import Engine, EngineOptions
from ..engine_core.events import StateChangeEvent
from ..engine_core.save_manager import SaveManager
from ..engine_core.state import GameState

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """State of a play session."""
    ACTIVE = "active"
    ENDED = "ended"
    ABANDONED = "abandoned"


@dataclass
class Session:
    """
    An ephemeral play session.

    Contains:
    - The Engine (and through it the live GameState)
    - The change-event log collected from the engine
    - Session metadata
    """
    session_id: str
    engine: Engine
    created_at: float
    state: SessionState = SessionState.ACTIVE
    last_active: float = 0.0
    events: list[StateChangeEvent] = field(default_factory=list)
    max_events: int = 500

    _unsubscribe: Callable[[], None] | None = None

    def record(self, event: StateChangeEvent):
        self.events.append(event)
        if len(self.events) > self.max_events:
            del self.events[: len(self.events) - self.max_events]

    def drain_events(self) -> list[StateChangeEvent]:
        """Return and clear the pending event log."""
        events = self.events.copy()
        self.events.clear()
        return events

    def touch(self):
        self.last_active = time.time()

    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE


class SessionManager:
    """
    Manages play sessions over one body of content.

    No persistence - sessions are in-memory only.
    """

    def __init__(
        self,
        content_path: str | Path | None = None,
        content_source: ContentSource | None = None,
        save_dir: str | Path | None = None,
        disable_autosave: bool = False,
        clock: Callable[[], int] | None = None,
    ):
        self.content_path = content_path
        self.content_source = content_source
        self.save_dir = save_dir
        self.disable_autosave = disable_autosave
        self.clock = clock
        self._sessions: dict[str, Session] = {}

    def create_session(self, initial_state: GameState | None = None) -> Session:
        """
        Create and initialize a new session.

        Raises ContentError if the content cannot be loaded.
        """
        session_id = str(uuid.uuid4())
        save_manager = None
        if self.save_dir is not None:
            save_manager = SaveManager(Path(self.save_dir) / session_id)

        engine = Engine(EngineOptions(
            content_path=self.content_path,
            content_source=self.content_source,
            initial_state=initial_state,
            save_manager=save_manager,
            disable_autosave=self.disable_autosave,
            clock=self.clock,
        ))

        now = time.time()
        session = Session(session_id=session_id, engine=engine, created_at=now, last_active=now)
        session._unsubscribe = engine.subscribe(session.record)
        engine.initialize()

        self._sessions[session_id] = session
        logger.debug("Created session %s at %s", session_id, engine.current_scene.id)
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        session = self._sessions.get(session_id)
        if session:
            session.touch()
        return session

    def end_session(self, session_id: str, reason: str = "completed") -> bool:
        """
        End a session and clean up.

        The session is removed from memory.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.state = SessionState.ENDED if reason == "completed" else SessionState.ABANDONED
        if session._unsubscribe:
            session._unsubscribe()
        session.events.clear()
        return True

    def list_active_sessions(self) -> list[str]:
        """List IDs of active sessions."""
        return [
            sid for sid, session in self._sessions.items()
            if session.is_active()
        ]

    def cleanup_stale_sessions(self, max_age_seconds: int = 3600) -> int:
        """
        End sessions idle for longer than max_age_seconds.

        Called periodically to free memory.
        """
        current_time = time.time()
        stale = [
            session_id for session_id, session in self._sessions.items()
            if current_time - session.last_active > max_age_seconds
        ]
        for session_id in stale:
            self.end_session(session_id, reason="stale")
        return len(stale)
