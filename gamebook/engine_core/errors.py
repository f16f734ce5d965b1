"""
Engine Errors - Runtime failures raised by the engine and save manager.

Content problems are ContentError (see content_schema.validation).
"""

from __future__ import annotations
from enum import Enum
from typing import Any


class EngineError(Exception):
    """Base class for runtime engine failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ChoiceUnavailableError(EngineError):
    """The selected choice exists but its conditions are not met."""

    def __init__(self, index: int, label: str, hint: str | None = None):
        self.index = index
        self.label = label
        self.hint = hint
        message = f'Choice {index} ("{label}") is not available'
        if hint:
            message += f": {hint}"
        super().__init__(message, {"index": index, "label": label, "hint": hint})


class LoadInProgressError(EngineError):
    """A load was requested while another load is still running."""

    def __init__(self):
        super().__init__("A load is already in progress")


class SaveErrorKind(Enum):
    """Closed taxonomy of persistence failures."""
    QUOTA_EXCEEDED = "quota-exceeded"
    PRIVACY_MODE = "privacy-mode"
    INVALID_DATA = "invalid-data"
    VERSION_MISMATCH = "version-mismatch"
    STORAGE_UNAVAILABLE = "storage-unavailable"
    UNKNOWN = "unknown"


class SaveError(EngineError):
    """A save or load failed."""

    def __init__(self, kind: SaveErrorKind, message: str, details: dict[str, Any] | None = None):
        self.kind = kind
        super().__init__(message, details)
