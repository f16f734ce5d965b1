"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to engine calls
2. Manages sessions
3. Maps engine and content failures to structured errors
4. Formats responses for reader clients

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging

from .schemas import (
    # Requests
    CreateSessionRequest,
    LoadRequest,
    # Responses
    SessionResponse,
    GameStateResponse,
    ChoicesResponse,
    MakeChoiceResponse,
    SaveResponse,
    ErrorResponse,
    # Shared
    SceneInfo,
    HistoryInfo,
    ChoiceInfo,
    ChangeInfo,
    # Enums
    ChoiceStatus,
    ErrorCode,
)
from ..content_schema.validation import ContentError
from ..engine_core.engine import AvailableChoice
from ..engine_core.errors import ChoiceUnavailableError, EngineError, LoadInProgressError, SaveError
from ..engine_core.events import StateChangeEvent
from ..engine_core.state import GameState
from ..session import SessionManager, Session

logger = logging.getLogger(__name__)


@dataclass
class APIService:
    """
    Main API service for reader clients.

    Usage:
        service = APIService(SessionManager(content_path="content"))

        # Create session
        session_response = service.create_session(CreateSessionRequest())

        # Read and choose
        choices = service.get_choices(session_response.session_id)
        result = service.make_choice(session_response.session_id, 0)
    """
    session_manager: SessionManager = field(default_factory=SessionManager)

    def create_session(self, request: CreateSessionRequest) -> SessionResponse | ErrorResponse:
        """
        Create a new reading session positioned at the starting scene.
        """
        initial_state = None
        if request.flags or request.stats or request.inventory or request.factions or request.starting_scene:
            initial_state = GameState(
                content_version="",
                current_scene_id=request.starting_scene or "",
                stats=dict(request.stats),
                flags=set(request.flags),
                inventory={item: count for item, count in request.inventory.items() if count > 0},
                factions=dict(request.factions),
            )

        try:
            session = self.session_manager.create_session(initial_state=initial_state)
        except ContentError as e:
            return _content_error(e)
        except EngineError as e:
            return _engine_error(e)

        return self._session_to_response(session)

    def get_session(self, session_id: str) -> SessionResponse | ErrorResponse:
        """
        Get session status.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)
        return self._session_to_response(session)

    def get_game_state(self, session_id: str) -> GameStateResponse | ErrorResponse:
        """
        Get the current reading state.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)
        return self._build_game_state(session)

    def get_choices(self, session_id: str) -> ChoicesResponse | ErrorResponse:
        """
        Get the choices of the current scene.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)

        engine = session.engine
        choices = [self._convert_choice(option) for option in engine.get_available_choices()]
        session.drain_events()
        return ChoicesResponse(
            session_id=session_id,
            scene_id=engine.current_scene.id,
            choices=choices,
        )

    def make_choice(self, session_id: str, index: int) -> MakeChoiceResponse | ErrorResponse:
        """
        Take a choice and return the scene it led to.

        The change list holds every event emitted while the choice resolved.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)

        engine = session.engine
        session.drain_events()
        try:
            result = engine.make_choice(index)
        except ChoiceUnavailableError as e:
            return ErrorResponse(
                error=e.message,
                error_code=ErrorCode.CHOICE_UNAVAILABLE,
                details=e.details,
            )
        except ContentError as e:
            return _content_error(e)
        except EngineError as e:
            return ErrorResponse(
                error=e.message,
                error_code=ErrorCode.INVALID_CHOICE,
                details=e.details,
            )

        changes = [self._convert_change(event) for event in session.drain_events()]
        choices = [self._convert_choice(option) for option in engine.get_available_choices()]
        session.drain_events()
        return MakeChoiceResponse(
            session_id=session_id,
            index=result.index,
            label=result.label,
            outcome=result.outcome.value,
            from_scene=result.from_scene,
            current_scene=self._convert_scene(session),
            choices=choices,
            changes=changes,
        )

    def save(self, session_id: str) -> SaveResponse | ErrorResponse:
        """
        Serialize the session's state to a save string.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)
        return SaveResponse(
            session_id=session_id,
            content_version=session.engine.content_version,
            save_data=session.engine.save(),
        )

    def load(self, session_id: str, request: LoadRequest) -> GameStateResponse | ErrorResponse:
        """
        Replace the session's state with a save string.

        A rejected save leaves the session where it was.
        """
        session = self.session_manager.get_session(session_id)
        if not session:
            return _session_not_found(session_id)

        try:
            session.engine.load(request.save_data)
        except LoadInProgressError as e:
            return ErrorResponse(error=e.message, error_code=ErrorCode.LOAD_IN_PROGRESS)
        except SaveError as e:
            return ErrorResponse(
                error=e.message,
                error_code=ErrorCode.SAVE_ERROR,
                details={"kind": e.kind.value, **e.details},
            )
        except ContentError as e:
            return _content_error(e)

        return self._build_game_state(session)

    def end_session(self, session_id: str, reason: str = "completed") -> bool:
        """
        End a reading session.
        """
        return self.session_manager.end_session(session_id, reason)

    def list_sessions(self) -> list[str]:
        """
        List active session IDs.
        """
        return self.session_manager.list_active_sessions()

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _session_to_response(self, session: Session) -> SessionResponse:
        """Convert Session to SessionResponse."""
        return SessionResponse(
            session_id=session.session_id,
            content_version=session.engine.content_version,
            current_scene=self._convert_scene(session),
            created_at=session.created_at,
        )

    def _build_game_state(self, session: Session) -> GameStateResponse:
        """Build complete state response."""
        state = session.engine.get_state()
        return GameStateResponse(
            session_id=session.session_id,
            content_version=state.content_version,
            current_scene=self._convert_scene(session),
            stats=state.stats,
            flags=sorted(state.flags),
            inventory=state.inventory,
            factions=state.factions,
            history=[
                HistoryInfo(
                    scene_id=entry.scene_id,
                    visited_count=entry.visited_count,
                    choice_label=entry.choice_label,
                    timestamp=entry.timestamp,
                )
                for entry in state.history
            ],
        )

    def _convert_scene(self, session: Session) -> SceneInfo:
        engine = session.engine
        scene = engine.current_scene
        return SceneInfo(
            scene_id=scene.id,
            title=scene.title,
            text=scene.text,
            location=scene.location,
            art=scene.art,
            music=scene.music,
            is_ending=scene.ending or engine.loader.manifest.is_ending(scene.id),
            ending_id=scene.ending_id,
        )

    def _convert_choice(self, option: AvailableChoice) -> ChoiceInfo:
        return ChoiceInfo(
            index=option.index,
            label=option.label,
            status=ChoiceStatus(option.state.value),
            disabled_hint=option.disabled_hint,
        )

    def _convert_change(self, event: StateChangeEvent) -> ChangeInfo:
        return ChangeInfo(
            change_type=event.change_type.value,
            path=event.path,
            old_value=event.old_value,
            new_value=event.new_value,
            render_scope=event.render_scope.value,
            urgency=event.urgency.value,
        )


def _session_not_found(session_id: str) -> ErrorResponse:
    return ErrorResponse(
        error="Session not found",
        error_code=ErrorCode.SESSION_NOT_FOUND,
        details={"session_id": session_id},
    )


def _content_error(error: ContentError) -> ErrorResponse:
    logger.error("Content error: %s", error)
    return ErrorResponse(
        error=error.message,
        error_code=ErrorCode.CONTENT_ERROR,
        details=error.to_dict(),
    )


def _engine_error(error: EngineError) -> ErrorResponse:
    logger.error("Engine error: %s", error)
    return ErrorResponse(
        error=error.message,
        error_code=ErrorCode.INTERNAL_ERROR,
        details=error.details,
    )
