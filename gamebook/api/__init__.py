"""
API Module - Reader client interface.

Exposes the engine via REST API.
A client:
1. Creates a reading session
2. Reads the current scene and its choices
3. Takes choices and receives the resulting state changes
4. Saves and loads its progress as a save string

All state is session-scoped. No persistent user accounts required.
"""

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
    ChoiceInfo,
    ChangeInfo,
    HistoryInfo,
    # Enums
    ChoiceStatus,
    ErrorCode,
)
from .service import APIService
from .app import create_app

__all__ = [
    # Requests
    "CreateSessionRequest",
    "LoadRequest",
    # Responses
    "SessionResponse",
    "GameStateResponse",
    "ChoicesResponse",
    "MakeChoiceResponse",
    "SaveResponse",
    "ErrorResponse",
    # Shared
    "SceneInfo",
    "ChoiceInfo",
    "ChangeInfo",
    "HistoryInfo",
    # Enums
    "ChoiceStatus",
    "ErrorCode",
    # Service
    "APIService",
    "create_app",
]
