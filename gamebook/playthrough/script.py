"""
Playthrough Scripts - Pydantic models for scripted runs and their results.

Scripts are authored as camelCase JSON:

    {
        "meta": {"name": "good_ending"},
        "startingState": {"flags": ["intro_done"], "stats": {"courage": 2}},
        "steps": [
            {"sequence": 1, "action": "start"},
            {"sequence": 2, "action": "choose", "choiceIndex": 0,
             "expectedScene": "sc_1_0_002",
             "assertions": {"flagsSet": ["path_direct"]}}
        ],
        "endingCriteria": {"sceneId": "sc_3_4_999"},
        "softlockDetection": {"maxSceneRevisits": 3}
    }

Every model accepts both the camelCase aliases and the snake_case field
names, and dumps camelCase with model_dump(by_alias=True).
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Script
# =============================================================================

class PlaythroughMeta(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    author: Optional[str] = None
    version: Optional[str] = None


class StartingState(CamelModel):
    """Seed state. Inventory may be a list of ids (count 1 each) or a mapping."""
    flags: list[str] = Field(default_factory=list)
    inventory: dict[str, int] = Field(default_factory=dict)
    stats: dict[str, float] = Field(default_factory=dict)
    factions: dict[str, float] = Field(default_factory=dict)
    current_scene: Optional[str] = None

    @field_validator("inventory", mode="before")
    @classmethod
    def _inventory_list(cls, value: Any) -> Any:
        if isinstance(value, list):
            counts: dict[str, int] = {}
            for item in value:
                counts[item] = counts.get(item, 0) + 1
            return counts
        return value


class StateAssertions(CamelModel):
    flags_set: list[str] = Field(default_factory=list)
    flags_cleared: list[str] = Field(default_factory=list)
    inventory_contains: list[str] = Field(default_factory=list)
    inventory_excludes: list[str] = Field(default_factory=list)
    stats: dict[str, float] = Field(default_factory=dict)
    current_scene: Optional[str] = None
    visited_count: dict[str, int] = Field(default_factory=dict)
    choices_available: Optional[int] = Field(None, description="Exact number of selectable choices")


class StepBase(CamelModel):
    sequence: Optional[int] = None
    description: Optional[str] = None


class StartStep(StepBase):
    action: Literal["start"]


class ChooseStep(StepBase):
    action: Literal["choose"]
    choice_index: int
    expected_scene: Optional[str] = None
    assertions: Optional[StateAssertions] = None


class CheckpointStep(StepBase):
    action: Literal["checkpoint"]
    assertions: StateAssertions = Field(default_factory=StateAssertions)
    save_snapshot: Optional[str] = None


class SaveSnapshotStep(StepBase):
    action: Literal["save_snapshot"]
    snapshot_name: str


class LoadSnapshotStep(StepBase):
    action: Literal["load_snapshot"]
    snapshot_name: str
    assertions: Optional[StateAssertions] = None


PlaythroughStep = Annotated[
    Union[StartStep, ChooseStep, CheckpointStep, SaveSnapshotStep, LoadSnapshotStep],
    Field(discriminator="action"),
]


class EndingCriteria(CamelModel):
    scene_id: str
    flags_required: list[str] = Field(default_factory=list)
    inventory_required: list[str] = Field(default_factory=list)
    stats_required: dict[str, float] = Field(default_factory=dict, description="Minimum values")


class SoftlockConfig(CamelModel):
    enabled: bool = True
    max_scene_revisits: int = 3
    max_steps_without_progress: int = 15
    exempt_scenes: list[str] = Field(default_factory=list)
    fail_on_detection: bool = True
    continue_on_detection: bool = False

    @property
    def stops_run(self) -> bool:
        return self.fail_on_detection and not self.continue_on_detection


class PlaythroughScript(CamelModel):
    meta: PlaythroughMeta
    starting_state: Optional[StartingState] = None
    steps: list[PlaythroughStep] = Field(min_length=1)
    ending_criteria: Optional[EndingCriteria] = None
    softlock_detection: SoftlockConfig = Field(default_factory=SoftlockConfig)


# =============================================================================
# Results
# =============================================================================

class PlaythroughStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SOFTLOCKED = "softlocked"


class SoftlockReason(str, Enum):
    NO_CHOICES = "no_choices"
    REVISIT_THRESHOLD = "revisit_threshold"
    PROGRESS_THRESHOLD = "progress_threshold"


class SoftlockReport(CamelModel):
    softlocked: bool = False
    reason: Optional[SoftlockReason] = None
    scene_id: Optional[str] = None
    step: Optional[int] = None
    visit_count: Optional[int] = None
    steps_without_progress: Optional[int] = None


class StepFailure(CamelModel):
    step: int
    reason: str
    expected: Optional[str] = None
    actual: Optional[str] = None


class StateSnapshot(CamelModel):
    timestamp: str
    playthrough: str
    step: int
    name: str
    engine_version: int
    content_version: str
    state: dict[str, Any]


class PlaythroughResult(CamelModel):
    playthrough: str
    status: PlaythroughStatus
    steps: int = 0
    duration_ms: int = 0
    snapshots: list[str] = Field(default_factory=list)
    visited_scenes: list[str] = Field(default_factory=list)
    failure: Optional[StepFailure] = None
    softlock: Optional[SoftlockReport] = None

    @property
    def passed(self) -> bool:
        return self.status == PlaythroughStatus.PASSED


class PlaythroughSummary(CamelModel):
    total: int
    passed: int
    failed: int
    duration_ms: int
    results: list[PlaythroughResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: list[PlaythroughResult], duration_ms: int = 0) -> "PlaythroughSummary":
        passed = sum(1 for r in results if r.passed)
        return cls(
            total=len(results),
            passed=passed,
            failed=len(results) - passed,
            duration_ms=duration_ms,
            results=results,
        )


class CoverageReport(CamelModel):
    total_scenes: int
    covered_scenes: int
    coverage_percent: int
    uncovered_scenes: list[str] = Field(default_factory=list)
