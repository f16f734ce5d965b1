"""
Condition Evaluator - Decides whether a condition holds for a state.

Pure: evaluation never mutates the state, and the same state and condition
always produce the same answer.

Semantics:
- stat: missing stat reads as 0, compared with the condition's operator
- flag: flag is set
- item: inventory count >= count (default 1)
- faction: faction standing >= level (missing faction reads as 0)
- and: all nested hold (empty -> true)
- or: any nested holds (empty -> false)
- not: negates exactly one nested condition; any other arity -> false
- anything unrecognized -> false
"""

from __future__ import annotations
from typing import TYPE_CHECKING

from ..content_schema.scene_dsl import (
    AndCondition,
    Condition,
    FactionCondition,
    FlagCondition,
    ItemCondition,
    NotCondition,
    OrCondition,
    StatCondition,
    iter_conditions,
)

if TYPE_CHECKING:
    from .state import GameState


class ConditionEvaluator:
    """
    Evaluates conditions against a GameState.

    Stateless; one instance can be shared.
    """

    def evaluate(self, condition: Condition, state: GameState) -> bool:
        if isinstance(condition, StatCondition):
            current = state.stats.get(condition.stat, 0)
            return condition.operator.compare(current, condition.value)

        if isinstance(condition, FlagCondition):
            return condition.flag in state.flags

        if isinstance(condition, ItemCondition):
            return state.inventory.get(condition.item, 0) >= condition.count

        if isinstance(condition, FactionCondition):
            return state.factions.get(condition.faction, 0) >= condition.level

        if isinstance(condition, AndCondition):
            return all(self.evaluate(c, state) for c in condition.conditions)

        if isinstance(condition, OrCondition):
            return any(self.evaluate(c, state) for c in condition.conditions)

        if isinstance(condition, NotCondition):
            if len(condition.conditions) != 1:
                return False
            return not self.evaluate(condition.conditions[0], state)

        return False

    def evaluate_all(self, conditions: list[Condition] | None, state: GameState) -> bool:
        """AND over a list. An empty or missing list passes."""
        if not conditions:
            return True
        return all(self.evaluate(c, state) for c in conditions)


def references_stat(stat: str, condition: Condition) -> bool:
    """True if the condition (or anything nested in it) reads the stat."""
    return any(
        isinstance(c, StatCondition) and c.stat == stat
        for c in iter_conditions([condition])
    )


def references_flag(flag: str, condition: Condition) -> bool:
    return any(
        isinstance(c, FlagCondition) and c.flag == flag
        for c in iter_conditions([condition])
    )


def references_item(item: str, condition: Condition) -> bool:
    return any(
        isinstance(c, ItemCondition) and c.item == item
        for c in iter_conditions([condition])
    )
