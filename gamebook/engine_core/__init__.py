"""
Engine Core - Deterministic narrative state management.

The engine is the runtime that:
1. Loads content through a SceneLoader
2. Owns the live GameState
3. Classifies the current scene's choices
4. Applies effects and walks scene transitions
5. Saves and restores state
"""

from .state import ENGINE_VERSION, GameState, SceneHistoryEntry
from .events import StateChangeEvent, ChangeType, RenderScope, Urgency, CheckpointType
from .errors import EngineError, ChoiceUnavailableError, LoadInProgressError, SaveError, SaveErrorKind
from .condition_evaluator import ConditionEvaluator
from .effect_applier import EffectApplier
from .engine import (
    Engine,
    EngineOptions,
    EngineStatus,
    AvailableChoice,
    ChoiceState,
    ChoiceOutcome,
    ChoiceResult,
)
from .save_manager import SaveManager, SaveSlotInfo

__all__ = [
    "ENGINE_VERSION",
    "GameState",
    "SceneHistoryEntry",
    "StateChangeEvent",
    "ChangeType",
    "RenderScope",
    "Urgency",
    "CheckpointType",
    "EngineError",
    "ChoiceUnavailableError",
    "LoadInProgressError",
    "SaveError",
    "SaveErrorKind",
    "ConditionEvaluator",
    "EffectApplier",
    "Engine",
    "EngineOptions",
    "EngineStatus",
    "AvailableChoice",
    "ChoiceState",
    "ChoiceOutcome",
    "ChoiceResult",
    "SaveManager",
    "SaveSlotInfo",
]
