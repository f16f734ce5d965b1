"""
State Change Events - What observers receive when the engine changes state.

Each event carries the touched path with old and new values, plus two UI
hints: which part of a display should refresh (render_scope) and how soon
(urgency). Checkpoints mark moments a replay or autosave may anchor to.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class ChangeType(Enum):
    SCENE_LOADED = "scene-loaded"
    CONDITION_EVALUATED = "condition-evaluated"
    EFFECT_APPLIED = "effect-applied"
    STATE_CHANGED = "state-changed"


class RenderScope(Enum):
    SCENE = "scene"
    CHOICES = "choices"
    INVENTORY = "inventory"
    STATUS = "status"
    ALL = "all"


class Urgency(Enum):
    IMMEDIATE = "immediate"
    LOW = "low"


class CheckpointType(Enum):
    SCENE_TRANSITION = "scene-transition"
    CHOICE = "choice"
    EFFECT = "effect"
    ACT_TRANSITION = "act-transition"
    ENDING = "ending"


@dataclass
class StateChangeEvent:
    """A single observable change."""
    change_type: ChangeType
    path: str
    old_value: Any
    new_value: Any
    timestamp: int
    render_scope: RenderScope = RenderScope.ALL
    urgency: Urgency = Urgency.IMMEDIATE
    checkpoint: CheckpointType | None = None

    @property
    def is_noop(self) -> bool:
        return self.path == "none"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.change_type.value,
            "path": self.path,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "timestamp": self.timestamp,
            "renderScope": self.render_scope.value,
            "urgency": self.urgency.value,
            "checkpoint": self.checkpoint.value if self.checkpoint else None,
        }


StateChangeHandler = Callable[[StateChangeEvent], None]
