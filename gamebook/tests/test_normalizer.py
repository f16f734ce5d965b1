"""
Tests for content normalization.

Tests:
- Condition and effect aliases
- Choice route resolution (simple vs attemptable)
- Scene field aliases
- Manifest parsing
- Structural errors
"""

import pytest

from ..content_schema.normalizer import ContentNormalizer, normalize_manifest, normalize_scene
from ..content_schema.scene_dsl import (
    AddItem,
    AttemptableRoute,
    ComparisonOperator,
    FactionCondition,
    FlagCondition,
    Goto,
    ItemCondition,
    ModifyFaction,
    NotCondition,
    SetFlag,
    SimpleRoute,
    StatCondition,
    UnknownCondition,
    UnknownEffect,
)
from ..content_schema.validation import ContentError, ContentErrorKind
from .conftest import make_manifest


@pytest.fixture
def normalizer() -> ContentNormalizer:
    return ContentNormalizer()


class TestConditionNormalization:
    """Tests for condition aliases."""

    def test_single_object_becomes_list(self, normalizer):
        """A bare condition object is wrapped in a list."""
        conditions = normalizer.conditions({"type": "flag", "flag": "met_editor"})
        assert conditions == [FlagCondition(flag="met_editor")]

    def test_none_becomes_empty_list(self, normalizer):
        """Missing conditions normalize to an empty list."""
        assert normalizer.conditions(None) == []

    def test_has_item_alias(self, normalizer):
        """has_item and count map onto the item condition."""
        condition = normalizer.condition({"type": "has_item", "item": "candle", "count": 2})
        assert condition == ItemCondition(item="candle", count=2)

    def test_item_count_defaults_to_one(self, normalizer):
        """An item condition without a count needs one item."""
        assert normalizer.condition({"type": "item", "item": "rope"}).count == 1

    def test_stat_operator_aliases(self, normalizer):
        """op/operator accept symbolic and word forms."""
        condition = normalizer.condition({"type": "stat_check", "stat": "courage", "op": ">", "value": 1})
        assert isinstance(condition, StatCondition)
        assert condition.operator == ComparisonOperator.GT
        assert normalizer.condition({"type": "stat", "stat": "x"}).operator == ComparisonOperator.GTE

    def test_invalid_operator_raises(self, normalizer):
        """Unrecognized operators are content errors."""
        with pytest.raises(ContentError):
            normalizer.condition({"type": "stat", "stat": "courage", "operator": "approx"})

    def test_boolean_value_rejected(self, normalizer):
        """Booleans are not numbers."""
        with pytest.raises(ContentError):
            normalizer.condition({"type": "stat", "stat": "courage", "value": True})

    def test_stat_check_on_faction_becomes_faction(self, normalizer):
        """A stat check naming a faction is a faction check."""
        condition = normalizer.condition({"type": "stat", "stat": "Revisionist", "value": 3})
        assert condition == FactionCondition(faction="revisionist", level=3)

    def test_faction_level_aliases(self, normalizer):
        """factionLevel is read for faction conditions."""
        condition = normalizer.condition({"type": "faction", "faction": "exiter", "factionLevel": 5})
        assert condition.level == 5

    def test_unknown_faction_warns(self, normalizer):
        """Unknown faction ids are kept with a warning."""
        normalizer.condition({"type": "faction", "faction": "loyalist", "level": 1})
        assert any("loyalist" in w for w in normalizer.warnings)

    def test_flag_not_set_becomes_not(self, normalizer):
        """A flag check with NOT_SET wraps the flag in NOT."""
        condition = normalizer.condition({"type": "flag", "flag": "met_editor", "operator": "NOT_SET"})
        assert condition == NotCondition(conditions=[FlagCondition(flag="met_editor")])

    def test_composite_uppercase(self, normalizer):
        """AND/OR/NOT are accepted in any case."""
        condition = normalizer.condition({
            "type": "OR",
            "conditions": [{"type": "flag", "flag": "a"}, {"type": "flag", "flag": "b"}],
        })
        assert len(condition.conditions) == 2

    def test_unknown_condition_warns(self, normalizer):
        """Unknown condition types survive as UnknownCondition with a warning."""
        condition = normalizer.condition({"type": "moon_phase", "phase": "full"})
        assert isinstance(condition, UnknownCondition)
        assert condition.type_name == "moon_phase"
        assert normalizer.warnings

    def test_missing_type_raises(self, normalizer):
        """Conditions need a type."""
        with pytest.raises(ContentError):
            normalizer.condition({"flag": "a"})


class TestEffectNormalization:
    """Tests for effect aliases."""

    def test_underscore_aliases(self, normalizer):
        """Underscore effect types map to their hyphen forms."""
        assert normalizer.effect({"type": "set_flag", "flag": "a"}) == SetFlag(flag="a")
        assert normalizer.effect({"type": "add_item", "item": "rope"}) == AddItem(item="rope", count=1)

    def test_modify_faction_value_alias(self, normalizer):
        """modify-faction accepts value for amount and lowercases the faction."""
        effect = normalizer.effect({"type": "modify-faction", "faction": "Exiter", "value": -2})
        assert effect == ModifyFaction(faction="exiter", amount=-2)

    def test_goto(self, normalizer):
        """goto reads sceneId."""
        assert normalizer.effect({"type": "goto", "sceneId": "sc_1_0_900"}) == Goto(scene_id="sc_1_0_900")

    def test_goto_without_target_raises(self, normalizer):
        """goto needs a target."""
        with pytest.raises(ContentError):
            normalizer.effect({"type": "goto"})

    def test_set_stat_requires_value(self, normalizer):
        """set-stat without a value is a content error."""
        with pytest.raises(ContentError):
            normalizer.effect({"type": "set-stat", "stat": "courage"})

    def test_unknown_effect_warns(self, normalizer):
        """Unknown effect types survive as UnknownEffect with a warning."""
        effect = normalizer.effect({"type": "play-sound", "sound": "thunder"})
        assert isinstance(effect, UnknownEffect)
        assert normalizer.warnings


class TestChoiceNormalization:
    """Tests for route resolution."""

    def test_simple_choice(self, normalizer):
        """A choice with `to` has a simple route."""
        choice = normalizer.choice({"label": "Go", "to": "sc_1_0_002", "onChoose": [{"type": "set-flag", "flag": "a"}]})
        assert isinstance(choice.route, SimpleRoute)
        assert choice.to == "sc_1_0_002"
        assert choice.effects == [SetFlag(flag="a")]

    def test_attemptable_choice(self, normalizer):
        """onSuccess + onFailure make an attemptable route."""
        choice = normalizer.choice({
            "label": "Climb",
            "conditions": [{"type": "stat", "stat": "courage", "value": 2, "attemptable": True}],
            "onSuccess": {"to": "sc_1_0_004"},
            "onFailure": {"to": "sc_1_0_005"},
        })
        assert isinstance(choice.route, AttemptableRoute)
        assert choice.is_attemptable
        assert choice.targets() == ["sc_1_0_004", "sc_1_0_005"]

    def test_attemptable_missing_branch_raises(self, normalizer):
        """Only one branch is a content error naming the missing one."""
        with pytest.raises(ContentError, match="onFailure"):
            normalizer.choice({"label": "Climb", "onSuccess": {"to": "sc_1_0_004"}})

    def test_missing_target_raises(self, normalizer):
        """A choice with neither `to` nor branches is rejected."""
        with pytest.raises(ContentError, match="Missing target scene"):
            normalizer.choice({"label": "Nowhere"})

    def test_attemptable_with_to_warns(self, normalizer):
        """A redundant `to` on an attemptable choice is ignored with a warning."""
        choice = normalizer.choice({
            "label": "Climb",
            "to": "sc_1_0_002",
            "onSuccess": {"to": "sc_1_0_004"},
            "onFailure": {"to": "sc_1_0_005"},
        })
        assert isinstance(choice.route, AttemptableRoute)
        assert any("'to'" in w for w in normalizer.warnings)

    def test_attemptable_choice_effects_dropped(self, normalizer):
        """Choice-level effects on attemptable choices are dropped."""
        choice = normalizer.choice({
            "label": "Climb",
            "effects": [{"type": "set-flag", "flag": "tried"}],
            "onSuccess": {"to": "sc_1_0_004"},
            "onFailure": {"to": "sc_1_0_005"},
        })
        assert choice.effects == []
        assert normalizer.warnings

    def test_attemptable_marker_stripped_on_simple_choice(self, normalizer):
        """The attemptable marker means nothing on a simple choice."""
        choice = normalizer.choice({
            "label": "Go",
            "to": "sc_1_0_002",
            "conditions": [{"type": "flag", "flag": "a", "attemptable": True}],
        })
        assert not choice.conditions[0].attemptable
        assert normalizer.warnings

    def test_unmarked_attemptable_conditions_get_marked(self, normalizer):
        """Conditions on an attemptable choice are marked when none are."""
        choice = normalizer.choice({
            "label": "Climb",
            "conditions": [{"type": "stat", "stat": "courage", "value": 2}],
            "onSuccess": {"to": "sc_1_0_004"},
            "onFailure": {"to": "sc_1_0_005"},
        })
        assert choice.conditions[0].attemptable


class TestSceneNormalization:
    """Tests for scene-level aliases."""

    def test_text_object_and_audio(self):
        """{location, paragraphs} text and audio are flattened."""
        scene = normalize_scene({
            "id": "sc_1_0_002",
            "title": "The Wings",
            "text": {"location": "Stage left", "paragraphs": ["One.", "Two."]},
            "audio": {"music": "theme.ogg", "sfx": "creak.ogg"},
            "effectsOnEnter": [{"type": "add_item", "item": "booth_key"}],
            "choices": [{"label": "Back", "to": "sc_1_0_001"}],
        })
        assert scene.text == "One.\n\nTwo."
        assert scene.location == "Stage left"
        assert scene.music == "theme.ogg"
        assert scene.sfx == "creak.ogg"
        assert scene.effects == [AddItem(item="booth_key")]

    def test_ending_object(self):
        """ending may be an object carrying the ending id."""
        scene = normalize_scene({"id": "e", "title": "End", "text": "Fin.", "ending": {"id": "ending_curtain"}})
        assert scene.ending
        assert scene.ending_id == "ending_curtain"

    def test_missing_fields_raise(self):
        """id, title and text are required."""
        with pytest.raises(ContentError, match="scene.title"):
            normalize_scene({"id": "sc", "text": "x"})
        with pytest.raises(ContentError, match="scene.text"):
            normalize_scene({"id": "sc", "title": "x"})

    def test_id_mismatch_raises(self):
        """A scene file must declare the id it was loaded under."""
        with pytest.raises(ContentError) as exc:
            normalize_scene({"id": "sc_b", "title": "B", "text": "b"}, expected_id="sc_a")
        assert exc.value.kind == ContentErrorKind.SCHEMA_ERROR
        assert exc.value.details == {"expected": "sc_a", "actual": "sc_b"}


class TestManifestNormalization:
    """Tests for manifest parsing."""

    def test_manifest_fields(self):
        """Title, version, start, index, acts and endings are read."""
        manifest = normalize_manifest(make_manifest())
        assert manifest.title == "The Understage"
        assert manifest.content_version == "1.0.0"
        assert manifest.starting_scene == "sc_1_0_001"
        assert len(manifest.scene_index) == 6
        assert manifest.acts[0].hubs[0].convergence_scene == "sc_1_0_900"
        assert manifest.endings[0].scene_id == "sc_1_0_900"

    def test_is_ending(self):
        """Endings come from the index flag or the endings list."""
        data = make_manifest()
        data["sceneIndex"]["sc_1_0_900"]["ending"] = False
        manifest = normalize_manifest(data)
        assert manifest.is_ending("sc_1_0_900")
        assert not manifest.is_ending("sc_1_0_001")
