"""
Scene DSL - Canonical content types for scenes, choices, conditions and effects.

Everything in this module is the *runtime* shape of authored content. Raw JSON
never reaches the engine directly: the normalizer maps authoring aliases onto
these types first, so the evaluator, applier and validators only ever see one
spelling of each construct.

Key design decisions:
- Conditions and effects are tagged unions: one dataclass per variant
- Unknown authored types survive as UnknownCondition / UnknownEffect so the
  runtime can fail closed (conditions) or no-op (effects)
- A Choice holds exactly one route object, so "simple" and "attemptable"
  can never be mixed on the same choice
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Iterator, Union


# Fixed faction identifiers. Stat checks against these ids are faction checks.
FACTION_IDS: tuple[str, ...] = ("preservationist", "revisionist", "exiter", "independent")

FACTION_MIN = 0
FACTION_MAX = 10


def is_faction_id(name: str) -> bool:
    """Case-insensitive faction id check."""
    return str(name).lower() in FACTION_IDS


class ConditionType(Enum):
    """Canonical condition tags."""
    STAT = "stat"
    FLAG = "flag"
    ITEM = "item"
    FACTION = "faction"
    AND = "and"
    OR = "or"
    NOT = "not"


class ComparisonOperator(Enum):
    """Operators for stat conditions."""
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"
    GT = "gt"
    LT = "lt"

    def compare(self, left: float, right: float) -> bool:
        if self is ComparisonOperator.GTE:
            return left >= right
        if self is ComparisonOperator.LTE:
            return left <= right
        if self is ComparisonOperator.EQ:
            return left == right
        if self is ComparisonOperator.GT:
            return left > right
        return left < right


class EffectType(Enum):
    """Canonical effect tags (hyphenated)."""
    SET_STAT = "set-stat"
    MODIFY_STAT = "modify-stat"
    SET_FLAG = "set-flag"
    CLEAR_FLAG = "clear-flag"
    ADD_ITEM = "add-item"
    REMOVE_ITEM = "remove-item"
    GOTO = "goto"
    MODIFY_FACTION = "modify-faction"


# =============================================================================
# Conditions
# =============================================================================

@dataclass
class StatCondition:
    """Compare a stat (missing = 0) against a value."""
    stat: str
    operator: ComparisonOperator = ComparisonOperator.GTE
    value: float = 0
    attemptable: bool = False

    kind: ClassVar[ConditionType] = ConditionType.STAT


@dataclass
class FlagCondition:
    """True when the flag is set."""
    flag: str
    attemptable: bool = False

    kind: ClassVar[ConditionType] = ConditionType.FLAG


@dataclass
class ItemCondition:
    """True when the inventory holds at least `count` of the item."""
    item: str
    count: int = 1
    attemptable: bool = False

    kind: ClassVar[ConditionType] = ConditionType.ITEM


@dataclass
class FactionCondition:
    """True when the faction standing is at least `level`."""
    faction: str
    level: float = 0
    attemptable: bool = False

    kind: ClassVar[ConditionType] = ConditionType.FACTION


@dataclass
class AndCondition:
    conditions: list[Condition] = field(default_factory=list)

    kind: ClassVar[ConditionType] = ConditionType.AND


@dataclass
class OrCondition:
    conditions: list[Condition] = field(default_factory=list)

    kind: ClassVar[ConditionType] = ConditionType.OR


@dataclass
class NotCondition:
    """Negation. Only well-formed with exactly one nested condition."""
    conditions: list[Condition] = field(default_factory=list)

    kind: ClassVar[ConditionType] = ConditionType.NOT


@dataclass
class UnknownCondition:
    """An authored condition type the engine does not recognize."""
    type_name: str
    raw: dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[ConditionType | None] = None


Condition = Union[
    StatCondition,
    FlagCondition,
    ItemCondition,
    FactionCondition,
    AndCondition,
    OrCondition,
    NotCondition,
    UnknownCondition,
]

LEAF_CONDITIONS = (StatCondition, FlagCondition, ItemCondition, FactionCondition)
COMPOSITE_CONDITIONS = (AndCondition, OrCondition, NotCondition)


def iter_conditions(conditions: list[Condition]) -> Iterator[Condition]:
    """Depth-first walk over a condition list, composites included."""
    for condition in conditions:
        yield condition
        if isinstance(condition, COMPOSITE_CONDITIONS):
            yield from iter_conditions(condition.conditions)


# =============================================================================
# Effects
# =============================================================================

@dataclass
class SetStat:
    stat: str
    value: float

    kind: ClassVar[EffectType] = EffectType.SET_STAT


@dataclass
class ModifyStat:
    stat: str
    value: float

    kind: ClassVar[EffectType] = EffectType.MODIFY_STAT


@dataclass
class SetFlag:
    flag: str

    kind: ClassVar[EffectType] = EffectType.SET_FLAG


@dataclass
class ClearFlag:
    flag: str

    kind: ClassVar[EffectType] = EffectType.CLEAR_FLAG


@dataclass
class AddItem:
    item: str
    count: int = 1

    kind: ClassVar[EffectType] = EffectType.ADD_ITEM


@dataclass
class RemoveItem:
    item: str
    count: int = 1

    kind: ClassVar[EffectType] = EffectType.REMOVE_ITEM


@dataclass
class Goto:
    """Request a transition. The applier only reports it."""
    scene_id: str

    kind: ClassVar[EffectType] = EffectType.GOTO


@dataclass
class ModifyFaction:
    faction: str
    amount: float = 1

    kind: ClassVar[EffectType] = EffectType.MODIFY_FACTION


@dataclass
class UnknownEffect:
    type_name: str
    raw: dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[EffectType | None] = None


Effect = Union[
    SetStat,
    ModifyStat,
    SetFlag,
    ClearFlag,
    AddItem,
    RemoveItem,
    Goto,
    ModifyFaction,
    UnknownEffect,
]


def goto_targets(effects: list[Effect]) -> list[str]:
    """Scene ids named by goto effects, in order."""
    return [e.scene_id for e in effects if isinstance(e, Goto)]


# =============================================================================
# Choices
# =============================================================================

@dataclass
class Branch:
    """One outcome of an attemptable choice."""
    to: str
    effects: list[Effect] = field(default_factory=list)


@dataclass
class SimpleRoute:
    to: str


@dataclass
class AttemptableRoute:
    """Success/failure pair. The branch taken depends on the choice's conditions."""
    on_success: Branch
    on_failure: Branch


ChoiceRoute = Union[SimpleRoute, AttemptableRoute]


@dataclass
class Choice:
    """
    A player option on a scene.

    `effects` apply only on the simple path; an attemptable choice applies
    the effects of whichever branch was taken.
    """
    label: str
    route: ChoiceRoute
    conditions: list[Condition] = field(default_factory=list)
    effects: list[Effect] = field(default_factory=list)
    disabled_hint: str | None = None

    @property
    def is_attemptable(self) -> bool:
        return isinstance(self.route, AttemptableRoute)

    @property
    def to(self) -> str | None:
        """Destination of a simple choice, None for attemptable ones."""
        if isinstance(self.route, SimpleRoute):
            return self.route.to
        return None

    def targets(self) -> list[str]:
        """Every scene this choice can lead to, goto redirects included."""
        if isinstance(self.route, AttemptableRoute):
            result = [self.route.on_success.to, self.route.on_failure.to]
            result += goto_targets(self.route.on_success.effects)
            result += goto_targets(self.route.on_failure.effects)
        else:
            result = [self.route.to]
        result += goto_targets(self.effects)
        return result

    def all_effects(self) -> list[Effect]:
        effects = list(self.effects)
        if isinstance(self.route, AttemptableRoute):
            effects += self.route.on_success.effects
            effects += self.route.on_failure.effects
        return effects


# =============================================================================
# Scenes & Manifest
# =============================================================================

@dataclass
class SceneData:
    """A normalized scene."""
    id: str
    title: str
    text: str
    effects: list[Effect] = field(default_factory=list)
    choices: list[Choice] = field(default_factory=list)
    required_flags: list[str] = field(default_factory=list)
    required_items: list[str] = field(default_factory=list)
    ending: bool = False
    ending_id: str | None = None

    # Presentation passthrough
    location: str | None = None
    art: str | None = None
    music: str | None = None
    sfx: str | None = None

    def outgoing_targets(self) -> list[str]:
        """Targets of choices plus goto effects run on entry."""
        targets = goto_targets(self.effects)
        for choice in self.choices:
            targets += choice.targets()
        return targets

    def all_effects(self) -> list[Effect]:
        effects = list(self.effects)
        for choice in self.choices:
            effects += choice.all_effects()
        return effects

    def all_conditions(self) -> list[Condition]:
        conditions: list[Condition] = []
        for choice in self.choices:
            conditions += list(iter_conditions(choice.conditions))
        return conditions


@dataclass
class SceneIndexEntry:
    """Manifest-level metadata for a scene id."""
    title: str = ""
    location: str | None = None
    act: int | None = None
    hub: int | None = None
    status: str = "pending"
    ending: bool = False
    ending_id: str | None = None


@dataclass
class Hub:
    id: str
    title: str = ""
    convergence_scene: str | None = None
    branch_paths: list[str] = field(default_factory=list)


@dataclass
class Act:
    id: str
    title: str = ""
    theme: str = ""
    hubs: list[Hub] = field(default_factory=list)


@dataclass
class EndingRequirements:
    """Requirements for an ending. Parsed for tooling; the engine never checks them."""
    faction: str | None = None
    faction_level: float | None = None
    editor_state: str | None = None
    final_choice: str | None = None


@dataclass
class Ending:
    id: str
    scene_id: str
    title: str = ""
    description: str = ""
    tier: str = ""
    requirements: EndingRequirements = field(default_factory=EndingRequirements)


@dataclass
class Manifest:
    """Content manifest: scene index, starting scene and content version."""
    title: str
    content_version: str
    starting_scene: str
    scene_index: dict[str, SceneIndexEntry] = field(default_factory=dict)
    acts: list[Act] = field(default_factory=list)
    endings: list[Ending] = field(default_factory=list)
    source: str = ""
    version: str = ""

    def has_scene(self, scene_id: str) -> bool:
        return scene_id in self.scene_index

    def is_ending(self, scene_id: str) -> bool:
        entry = self.scene_index.get(scene_id)
        if entry is not None and entry.ending:
            return True
        return any(e.scene_id == scene_id for e in self.endings)
