"""
Tests for reachability and cycle detection.
"""

import pytest

from ..content_schema.normalizer import normalize_manifest, normalize_scene
from ..content_schema.reachability import (
    ReachabilityValidator,
    UnreachableReason,
    analyze_reachability,
)


def build(index: dict[str, list], start: str = "a", gotos: dict[str, str] | None = None):
    """
    Build (manifest, scenes) from an adjacency list.

    index maps scene id -> list of targets; a (success, failure) tuple makes
    an attemptable choice. gotos adds an entry goto to a scene.
    """
    gotos = gotos or {}
    manifest = normalize_manifest({
        "gamebook": {"title": "Graph", "adaptationVersion": "1"},
        "startingScene": start,
        "sceneIndex": {scene_id: {"title": scene_id} for scene_id in index},
    })
    scenes = {}
    for scene_id, targets in index.items():
        choices = []
        for target in targets:
            if isinstance(target, tuple):
                choices.append({"label": "try", "onSuccess": {"to": target[0]}, "onFailure": {"to": target[1]}})
            else:
                choices.append({"label": f"to {target}", "to": target})
        raw = {"id": scene_id, "title": scene_id, "text": scene_id, "choices": choices}
        if scene_id in gotos:
            raw["effectsOnEnter"] = [{"type": "goto", "sceneId": gotos[scene_id]}]
        scenes[scene_id] = normalize_scene(raw)
    return manifest, scenes


@pytest.fixture
def validator() -> ReachabilityValidator:
    return ReachabilityValidator()


class TestReachability:
    """Tests for reachable/unreachable classification."""

    def test_linear_graph(self, validator):
        """Every scene on a chain from the start is reachable."""
        manifest, scenes = build({"a": ["b"], "b": ["c"], "c": []})
        result = validator.analyze(manifest, scenes)
        assert result.reachable == {"a", "b", "c"}
        assert result.unreachable == []
        assert result.valid
        assert result.reachable_scenes == result.total_scenes == 3

    def test_orphan_has_no_incoming_links(self, validator):
        """A scene nothing links to is unreachable with no incoming links."""
        manifest, scenes = build({"a": ["b"], "b": [], "orphan": ["a"]})
        result = validator.analyze(manifest, scenes)
        assert [u.scene_id for u in result.unreachable] == ["orphan"]
        assert result.unreachable[0].reason == UnreachableReason.NO_INCOMING_LINKS
        assert not result.valid

    def test_linked_only_from_unreachable(self, validator):
        """A scene linked only from unreachable scenes records its sources."""
        manifest, scenes = build({"a": [], "island": ["shore"], "shore": []})
        result = validator.analyze(manifest, scenes)
        shore = next(u for u in result.unreachable if u.scene_id == "shore")
        assert shore.reason == UnreachableReason.BEHIND_UNSATISFIED_CONDITION
        assert shore.from_scenes == ["island"]

    def test_both_attemptable_branches(self, validator):
        """Both outcomes of an attemptable choice are edges."""
        manifest, scenes = build({"a": [("win", "lose")], "win": [], "lose": []})
        assert validator.analyze(manifest, scenes).reachable == {"a", "win", "lose"}

    def test_goto_effects_followed(self, validator):
        """Entry gotos are edges unless disabled."""
        manifest, scenes = build({"a": [], "b": []}, gotos={"a": "b"})
        assert "b" in validator.analyze(manifest, scenes).reachable
        assert "b" not in validator.analyze(manifest, scenes, follow_goto_effects=False).reachable

    def test_max_depth(self, validator):
        """Scenes beyond max_depth hops are not reached."""
        manifest, scenes = build({"a": ["b"], "b": ["c"], "c": []})
        assert validator.find_reachable("a", scenes, max_depth=2) == {"a", "b"}

    def test_sample_content_fully_reachable(self, loader):
        """Every scene of the sample gamebook is reachable."""
        result = analyze_reachability(loader.manifest, loader.load_all_scenes())
        assert result.unreachable == []


class TestCycleDetection:
    """Tests for detect_cycles."""

    def test_acyclic(self, validator):
        """A DAG has no cycles."""
        manifest, scenes = build({"a": ["b", "c"], "b": ["c"], "c": []})
        assert validator.detect_cycles(manifest, scenes) == {}

    def test_two_cycle(self, validator):
        """A back-and-forth link is a cycle of length 2."""
        manifest, scenes = build({"a": ["b"], "b": ["a"]})
        assert validator.detect_cycles(manifest, scenes) == {"a": 2, "b": 2}

    def test_self_loop(self, validator):
        """A scene linking to itself is a cycle of length 1."""
        manifest, scenes = build({"a": ["a", "b"], "b": []})
        assert validator.detect_cycles(manifest, scenes) == {"a": 1}

    def test_shortest_cycle_kept(self, validator):
        """A scene on several cycles reports the shortest."""
        manifest, scenes = build({"a": ["b"], "b": ["c", "a"], "c": ["a"]})
        cycles = validator.detect_cycles(manifest, scenes)
        assert cycles["a"] == 2
        assert cycles["b"] == 2
        assert cycles["c"] == 3

    def test_cycle_closed_through_cross_edge(self, validator):
        """A scene whose loop re-enters an already finished branch is still on a cycle."""
        manifest, scenes = build({"a": ["b", "c"], "b": ["a"], "c": ["b"]})
        assert validator.detect_cycles(manifest, scenes) == {"a": 2, "b": 2, "c": 3}

    def test_cycle_away_from_root(self, validator):
        """Only the scenes inside the loop are reported."""
        manifest, scenes = build({"a": ["b"], "b": ["c"], "c": ["b", "end"], "end": []})
        assert validator.detect_cycles(manifest, scenes) == {"b": 2, "c": 2}

    def test_cycles_do_not_block_reachability(self, validator):
        """Hub loops still reach their exits."""
        manifest, scenes = build({"a": ["b"], "b": ["a", "end"], "end": []})
        result = validator.analyze(manifest, scenes)
        assert result.reachable == {"a", "b", "end"}
        assert set(result.cycles) == {"a", "b"}
