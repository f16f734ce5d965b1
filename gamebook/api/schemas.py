"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between a reader client and the engine.
All responses include explicit types for OpenAPI schema generation.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or has expired
- CHOICE_UNAVAILABLE: Choice exists but its conditions are not met
- INVALID_CHOICE: Choice index is out of range
- CONTENT_ERROR: A scene or the manifest could not be loaded
- SAVE_ERROR: Save data rejected (invalid data, version mismatch)
- LOAD_IN_PROGRESS: Another load is running on the session
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    CHOICE_UNAVAILABLE = "CHOICE_UNAVAILABLE"
    INVALID_CHOICE = "INVALID_CHOICE"
    CONTENT_ERROR = "CONTENT_ERROR"
    SAVE_ERROR = "SAVE_ERROR"
    LOAD_IN_PROGRESS = "LOAD_IN_PROGRESS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ChoiceStatus(str, Enum):
    """How a choice is offered to the reader."""
    ENABLED = "enabled"
    DISABLED = "disabled"
    RISKY = "risky"


# =============================================================================
# Shared Models
# =============================================================================

class SceneInfo(BaseModel):
    """The scene currently on screen."""
    scene_id: str
    title: str
    text: str
    location: Optional[str] = None
    art: Optional[str] = None
    music: Optional[str] = None
    is_ending: bool = False
    ending_id: Optional[str] = None

    model_config = {"from_attributes": True}


class HistoryInfo(BaseModel):
    """One visited scene."""
    scene_id: str
    visited_count: int = 1
    choice_label: Optional[str] = None
    timestamp: int = 0

    model_config = {"from_attributes": True}


class ChoiceInfo(BaseModel):
    """A choice on the current scene."""
    index: int
    label: str
    status: ChoiceStatus
    disabled_hint: Optional[str] = None


class ChangeInfo(BaseModel):
    """A state change emitted by the engine."""
    change_type: str
    path: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    render_scope: str
    urgency: str


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to create a new reading session."""
    flags: list[str] = Field(default_factory=list, description="Flags set at start")
    stats: dict[str, float] = Field(default_factory=dict, description="Starting stat values")
    inventory: dict[str, int] = Field(default_factory=dict, description="Starting item counts")
    factions: dict[str, float] = Field(default_factory=dict, description="Starting faction levels")
    starting_scene: Optional[str] = Field(None, description="Override the manifest's starting scene")


class LoadRequest(BaseModel):
    """Request to restore a session from a save string."""
    save_data: str = Field(..., description="Save string previously returned by /save")


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class SessionResponse(BaseModel):
    """Response containing session information."""
    session_id: str
    content_version: str
    current_scene: SceneInfo
    created_at: float = 0.0
    api_version: str = "v1"


class GameStateResponse(BaseModel):
    """Complete reading state for display."""
    session_id: str
    content_version: str
    current_scene: SceneInfo
    stats: dict[str, float] = Field(default_factory=dict)
    flags: list[str] = Field(default_factory=list)
    inventory: dict[str, int] = Field(default_factory=dict)
    factions: dict[str, float] = Field(default_factory=dict)
    history: list[HistoryInfo] = Field(default_factory=list)
    api_version: str = "v1"


class ChoicesResponse(BaseModel):
    """Choices on the current scene."""
    session_id: str
    scene_id: str
    choices: list[ChoiceInfo] = Field(default_factory=list)
    api_version: str = "v1"


class MakeChoiceResponse(BaseModel):
    """Result of taking a choice."""
    session_id: str
    index: int
    label: str
    outcome: str = Field(description="simple, success or failure")
    from_scene: str
    current_scene: SceneInfo
    choices: list[ChoiceInfo] = Field(default_factory=list)
    changes: list[ChangeInfo] = Field(default_factory=list)
    api_version: str = "v1"


class SaveResponse(BaseModel):
    """Save string for the session's current state."""
    session_id: str
    content_version: str
    save_data: str
    api_version: str = "v1"


class SessionListResponse(BaseModel):
    """Response listing active sessions."""
    sessions: list[str]
    count: int


class EndSessionResponse(BaseModel):
    """Response after ending a session."""
    success: bool
    session_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
