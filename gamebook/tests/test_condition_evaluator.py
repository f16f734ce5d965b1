"""
Tests for the condition evaluator.

Tests:
- Leaf conditions (stat, flag, item, faction)
- Composites (and, or, not) and their empty/arity edge cases
- Unknown conditions fail safe
- Purity
"""

import pytest

from ..content_schema.scene_dsl import (
    AndCondition,
    ComparisonOperator,
    FactionCondition,
    FlagCondition,
    ItemCondition,
    NotCondition,
    OrCondition,
    StatCondition,
    UnknownCondition,
)
from ..engine_core.condition_evaluator import ConditionEvaluator, references_flag, references_stat
from ..engine_core.state import GameState


@pytest.fixture
def evaluator() -> ConditionEvaluator:
    return ConditionEvaluator()


@pytest.fixture
def state() -> GameState:
    return GameState(
        content_version="1.0.0",
        current_scene_id="sc_1_0_001",
        stats={"courage": 3, "insight": 1},
        flags={"met_editor"},
        inventory={"booth_key": 1, "candle": 3},
        factions={"revisionist": 4},
    )


class TestLeafConditions:
    """Tests for stat, flag, item and faction checks."""

    @pytest.mark.parametrize("operator,value,expected", [
        (ComparisonOperator.GTE, 3, True),
        (ComparisonOperator.GTE, 4, False),
        (ComparisonOperator.LTE, 3, True),
        (ComparisonOperator.EQ, 3, True),
        (ComparisonOperator.GT, 3, False),
        (ComparisonOperator.LT, 4, True),
    ])
    def test_stat_operators(self, evaluator, state, operator, value, expected):
        """Every operator compares the current value against the threshold."""
        condition = StatCondition(stat="courage", operator=operator, value=value)
        assert evaluator.evaluate(condition, state) is expected

    def test_missing_stat_reads_as_zero(self, evaluator, state):
        """A stat that was never set compares as 0."""
        assert evaluator.evaluate(StatCondition(stat="fear", operator=ComparisonOperator.EQ, value=0), state)
        assert not evaluator.evaluate(StatCondition(stat="fear", value=1), state)

    def test_flag(self, evaluator, state):
        """Flag conditions hold only for set flags."""
        assert evaluator.evaluate(FlagCondition(flag="met_editor"), state)
        assert not evaluator.evaluate(FlagCondition(flag="path_direct"), state)

    def test_item_count(self, evaluator, state):
        """Item conditions require at least `count` of the item."""
        assert evaluator.evaluate(ItemCondition(item="candle", count=3), state)
        assert not evaluator.evaluate(ItemCondition(item="candle", count=4), state)
        assert not evaluator.evaluate(ItemCondition(item="rope"), state)

    def test_faction_level(self, evaluator, state):
        """Faction conditions compare standing >= level."""
        assert evaluator.evaluate(FactionCondition(faction="revisionist", level=4), state)
        assert not evaluator.evaluate(FactionCondition(faction="revisionist", level=5), state)
        assert evaluator.evaluate(FactionCondition(faction="exiter", level=0), state)


class TestCompositeConditions:
    """Tests for and/or/not."""

    def test_and(self, evaluator, state):
        """AND holds when every nested condition holds."""
        condition = AndCondition(conditions=[FlagCondition(flag="met_editor"), ItemCondition(item="booth_key")])
        assert evaluator.evaluate(condition, state)
        condition.conditions.append(FlagCondition(flag="missing"))
        assert not evaluator.evaluate(condition, state)

    def test_or(self, evaluator, state):
        """OR holds when any nested condition holds."""
        condition = OrCondition(conditions=[FlagCondition(flag="missing"), ItemCondition(item="candle")])
        assert evaluator.evaluate(condition, state)

    def test_empty_and_is_true_empty_or_is_false(self, evaluator, state):
        """Empty AND is vacuously true, empty OR is false."""
        assert evaluator.evaluate(AndCondition(conditions=[]), state)
        assert not evaluator.evaluate(OrCondition(conditions=[]), state)

    def test_not(self, evaluator, state):
        """NOT negates its single nested condition."""
        assert evaluator.evaluate(NotCondition(conditions=[FlagCondition(flag="missing")]), state)
        assert not evaluator.evaluate(NotCondition(conditions=[FlagCondition(flag="met_editor")]), state)

    def test_not_with_wrong_arity_is_false(self, evaluator, state):
        """NOT over zero or several conditions never holds."""
        assert not evaluator.evaluate(NotCondition(conditions=[]), state)
        two = [FlagCondition(flag="a"), FlagCondition(flag="b")]
        assert not evaluator.evaluate(NotCondition(conditions=two), state)

    def test_nested(self, evaluator, state):
        """Composites nest arbitrarily."""
        condition = AndCondition(conditions=[
            OrCondition(conditions=[FlagCondition(flag="x"), StatCondition(stat="courage", value=2)]),
            NotCondition(conditions=[ItemCondition(item="rope")]),
        ])
        assert evaluator.evaluate(condition, state)


class TestEvaluatorSafety:
    """Fail-safe and purity guarantees."""

    def test_unknown_condition_is_false(self, evaluator, state):
        """Unrecognized condition types evaluate to false."""
        condition = UnknownCondition(type_name="moon_phase", raw={"type": "moon_phase"})
        assert not evaluator.evaluate(condition, state)

    def test_evaluate_all_empty_passes(self, evaluator, state):
        """An empty or missing condition list passes."""
        assert evaluator.evaluate_all([], state)
        assert evaluator.evaluate_all(None, state)

    def test_evaluate_all_is_conjunction(self, evaluator, state):
        """A condition list is an implicit AND."""
        conditions = [FlagCondition(flag="met_editor"), FlagCondition(flag="missing")]
        assert not evaluator.evaluate_all(conditions, state)

    def test_evaluation_does_not_mutate_state(self, evaluator, state):
        """Evaluating leaves the state untouched."""
        before = state.to_dict()
        evaluator.evaluate(StatCondition(stat="unset_stat", value=1), state)
        evaluator.evaluate(ItemCondition(item="rope"), state)
        evaluator.evaluate(FactionCondition(faction="exiter", level=2), state)
        assert state.to_dict() == before

    def test_repeatable(self, evaluator, state):
        """The same condition on the same state always gives the same answer."""
        condition = StatCondition(stat="courage", value=2)
        assert len({evaluator.evaluate(condition, state) for _ in range(5)}) == 1

    def test_reference_helpers(self):
        """Reference helpers look through nesting."""
        condition = NotCondition(conditions=[AndCondition(conditions=[
            StatCondition(stat="courage", value=1), FlagCondition(flag="met_editor"),
        ])])
        assert references_stat("courage", condition)
        assert references_flag("met_editor", condition)
        assert not references_flag("other", condition)
