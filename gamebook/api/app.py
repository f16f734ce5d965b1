"""
FastAPI Application - REST API for reader clients.

Endpoints:
    GET    /api/v1/health                         Health check
    POST   /api/v1/sessions                       Create reading session
    GET    /api/v1/sessions                       List active sessions
    GET    /api/v1/sessions/{id}                  Get session status
    DELETE /api/v1/sessions/{id}                  End session
    GET    /api/v1/sessions/{id}/state            Get reading state
    GET    /api/v1/sessions/{id}/choices          Get available choices
    POST   /api/v1/sessions/{id}/choices/{index}  Make a choice
    GET    /api/v1/sessions/{id}/save             Get a save string
    POST   /api/v1/sessions/{id}/load             Load a save string

Every session runs against the content directory named by
GAMEBOOK_CONTENT_PATH. All responses are JSON with explicit Pydantic schemas.
"""

from typing import Annotated, Optional, Union
import os

# Environment configuration
GAMEBOOK_ENV = os.getenv("GAMEBOOK_ENV", "development")
GAMEBOOK_CONTENT_PATH = os.getenv("GAMEBOOK_CONTENT_PATH", "./content")
GAMEBOOK_SAVE_DIR = os.getenv("GAMEBOOK_SAVE_DIR", None)
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

API_VERSION = "1.0.0"

ERROR_STATUS = {
    "SESSION_NOT_FOUND": 404,
    "CHOICE_UNAVAILABLE": 409,
    "INVALID_CHOICE": 400,
    "CONTENT_ERROR": 500,
    "SAVE_ERROR": 400,
    "LOAD_IN_PROGRESS": 409,
    "VALIDATION_ERROR": 422,
    "INTERNAL_ERROR": 500,
}


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Query
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from .service import APIService
    from .schemas import (
        # Request models
        CreateSessionRequest,
        LoadRequest,
        # Response models
        SessionResponse,
        GameStateResponse,
        ChoicesResponse,
        MakeChoiceResponse,
        SaveResponse,
        ErrorResponse,
        SessionListResponse,
        EndSessionResponse,
        HealthResponse,
        # Enums
        ErrorCode,
    )
    from ..session import SessionManager

    app = FastAPI(
        title="Gamebook Engine API",
        description="""
Deterministic gamebook runtime - read scenes, take choices, save and load.

## Reading Flow

1. `POST /sessions` enters the starting scene
2. `GET /sessions/{id}/choices` lists choices as `enabled`, `disabled` or `risky`
3. `POST /sessions/{id}/choices/{index}` applies the choice and returns the new scene
4. `GET /save` and `POST /load` round-trip the state as a save string

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `CHOICE_UNAVAILABLE` | Choice conditions not met |
| `INVALID_CHOICE` | Choice index out of range |
| `CONTENT_ERROR` | Scene or manifest could not be loaded |
| `SAVE_ERROR` | Save data rejected |
| `LOAD_IN_PROGRESS` | Another load is running |
        """,
        version=API_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Service instance
    api_service = service or APIService(
        session_manager=SessionManager(
            content_path=GAMEBOOK_CONTENT_PATH,
            save_dir=GAMEBOOK_SAVE_DIR,
        )
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def error_from(response: ErrorResponse) -> JSONResponse:
        code = ErrorCode(response.error_code)
        return make_error_response(
            code,
            response.error,
            status_code=ERROR_STATUS.get(code.value, 400),
            details=response.details,
        )

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        responses={500: {"model": ErrorResponse, "description": "Content could not be loaded"}},
        tags=["Sessions"],
        summary="Create a new reading session",
    )
    async def create_session(
        request: Optional[CreateSessionRequest] = None,
    ) -> Union[SessionResponse, JSONResponse]:
        """
        Create a new reading session.

        The optional body seeds flags, stats, inventory and factions, and may
        override the starting scene.
        """
        response = api_service.create_session(request or CreateSessionRequest())
        if hasattr(response, "error"):
            return error_from(response)
        return response

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        """List all active session IDs."""
        sessions = api_service.list_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get session status",
    )
    async def get_session(session_id: str) -> Union[SessionResponse, JSONResponse]:
        """Get the current scene of a reading session."""
        response = api_service.get_session(session_id)
        if hasattr(response, "error"):
            return error_from(response)
        return response

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a reading session",
    )
    async def end_session(
        session_id: str,
        reason: Annotated[str, Query(description="Reason for ending")] = "completed",
    ) -> EndSessionResponse:
        """End a reading session and release resources."""
        success = api_service.end_session(session_id, reason)
        return EndSessionResponse(success=success, session_id=session_id)

    # =========================================================================
    # Reading Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/sessions/{session_id}/state",
        response_model=GameStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Reading"],
        summary="Get reading state",
    )
    async def get_game_state(session_id: str) -> Union[GameStateResponse, JSONResponse]:
        """Stats, flags, inventory, factions, history and the current scene."""
        response = api_service.get_game_state(session_id)
        if hasattr(response, "error"):
            return error_from(response)
        return response

    @app.get(
        "/api/v1/sessions/{session_id}/choices",
        response_model=ChoicesResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Reading"],
        summary="Get available choices",
    )
    async def get_choices(session_id: str) -> Union[ChoicesResponse, JSONResponse]:
        """Every choice of the current scene with its status."""
        response = api_service.get_choices(session_id)
        if hasattr(response, "error"):
            return error_from(response)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/choices/{index}",
        response_model=MakeChoiceResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Choice index out of range"},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse, "description": "Choice conditions not met"},
        },
        tags=["Reading"],
        summary="Make a choice",
    )
    async def make_choice(session_id: str, index: int) -> Union[MakeChoiceResponse, JSONResponse]:
        """
        Take a choice on the current scene.

        Returns the scene it led to, its choices, and every state change
        the choice caused.
        """
        response = api_service.make_choice(session_id, index)
        if hasattr(response, "error"):
            return error_from(response)
        return response

    # =========================================================================
    # Save / Load Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/sessions/{session_id}/save",
        response_model=SaveResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Saves"],
        summary="Get a save string",
    )
    async def save_session(session_id: str) -> Union[SaveResponse, JSONResponse]:
        """Serialize the current state. Load it back with POST /load."""
        response = api_service.save(session_id)
        if hasattr(response, "error"):
            return error_from(response)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/load",
        response_model=GameStateResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid or incompatible save"},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse, "description": "Another load is running"},
        },
        tags=["Saves"],
        summary="Load a save string",
    )
    async def load_session(
        session_id: str,
        request: LoadRequest,
    ) -> Union[GameStateResponse, JSONResponse]:
        """
        Replace the session's state with a save string.

        Saves from another engine or content version are rejected with
        SAVE_ERROR and the session is left unchanged.
        """
        response = api_service.load(session_id, request)
        if hasattr(response, "error"):
            return error_from(response)
        return response

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/api/v1/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="gamebook-engine",
            version=API_VERSION,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Gamebook Engine API",
            "version": API_VERSION,
            "environment": GAMEBOOK_ENV,
            "docs": "/api/docs",
            "health": "/api/v1/health",
        }

    return app


# For running directly: uvicorn gamebook.api.app:app
app = None
try:
    app = create_app()
except ImportError:
    # FastAPI not installed
    pass
