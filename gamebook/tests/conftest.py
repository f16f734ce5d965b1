"""
Pytest fixtures for gamebook tests.

The sample content is a six-scene gamebook:

    sc_1_0_001 The Booth
        0 "Go to the wings"          -> sc_1_0_002  (sets path_direct)
        1 "Unlock the booth office"  -> sc_1_0_003  (needs booth_key)
        2 "Climb to the catwalk"     risky: courage >= 2
                                        success -> sc_1_0_004 (+rope)
                                        failure -> sc_1_0_005 (courage -1)
    sc_1_0_002 The Wings            entry: +booth_key
        0 "Return to the booth"      -> sc_1_0_001
        1 "Take the stage"           -> sc_1_0_900  (needs path_direct)
    sc_1_0_003 The Booth Office
        0 "Back to the booth"        -> sc_1_0_001
    sc_1_0_004 The Catwalk
        0 "Drop to the stage"        -> sc_1_0_900  (+2 preservationist)
    sc_1_0_005 The Trapdoor         dead end, no choices
    sc_1_0_900 Curtain Call         ending, entry: sets curtain_call
"""

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from ..content_schema.loader import MemoryContentSource, SceneLoader
from ..engine_core.engine import Engine, EngineOptions
from ..engine_core.state import GameState


CONTENT_VERSION = "1.0.0"


def make_manifest() -> dict[str, Any]:
    return {
        "gamebook": {
            "title": "The Understage",
            "adaptationVersion": CONTENT_VERSION,
            "source": "Original",
            "version": "1",
        },
        "startingScene": "sc_1_0_001",
        "sceneIndex": {
            "sc_1_0_001": {"title": "The Booth", "act": 1, "hub": 0},
            "sc_1_0_002": {"title": "The Wings", "act": 1, "hub": 0},
            "sc_1_0_003": {"title": "The Booth Office", "act": 1, "hub": 0},
            "sc_1_0_004": {"title": "The Catwalk", "act": 1, "hub": 0},
            "sc_1_0_005": {"title": "The Trapdoor", "act": 1, "hub": 0},
            "sc_1_0_900": {"title": "Curtain Call", "act": 1, "ending": True},
        },
        "acts": [
            {
                "id": "1",
                "title": "The Booth",
                "theme": "Arrival",
                "hubs": [{"id": "0", "title": "Backstage", "convergenceScene": "sc_1_0_900"}],
            }
        ],
        "endings": [
            {
                "id": "ending_curtain",
                "sceneId": "sc_1_0_900",
                "title": "Curtain Call",
                "tier": "good",
            }
        ],
    }


def make_scenes() -> dict[str, Any]:
    return {
        "sc_1_0_001": {
            "id": "sc_1_0_001",
            "title": "The Booth",
            "text": "Dust hangs in the prompter's booth.",
            "choices": [
                {
                    "label": "Go to the wings",
                    "to": "sc_1_0_002",
                    "effects": [{"type": "set-flag", "flag": "path_direct"}],
                },
                {
                    "label": "Unlock the booth office",
                    "to": "sc_1_0_003",
                    "conditions": {"type": "has_item", "item": "booth_key"},
                    "disabledHint": "You need the booth key",
                },
                {
                    "label": "Climb to the catwalk",
                    "conditions": [
                        {"type": "stat", "stat": "courage", "operator": "gte", "value": 2, "attemptable": True}
                    ],
                    "onSuccess": {
                        "to": "sc_1_0_004",
                        "effects": [{"type": "add-item", "item": "rope"}],
                    },
                    "onFailure": {
                        "to": "sc_1_0_005",
                        "effects": [{"type": "modify-stat", "stat": "courage", "value": -1}],
                    },
                },
            ],
        },
        "sc_1_0_002": {
            "id": "sc_1_0_002",
            "title": "The Wings",
            "text": {"location": "Stage left", "paragraphs": ["Ropes creak.", "A key glints."]},
            "effectsOnEnter": [{"type": "add_item", "item": "booth_key"}],
            "choices": [
                {"label": "Return to the booth", "to": "sc_1_0_001"},
                {
                    "label": "Take the stage",
                    "to": "sc_1_0_900",
                    "conditions": [{"type": "flag", "flag": "path_direct"}],
                },
            ],
        },
        "sc_1_0_003": {
            "id": "sc_1_0_003",
            "title": "The Booth Office",
            "text": "Ledgers and a cold lamp.",
            "choices": [{"label": "Back to the booth", "to": "sc_1_0_001"}],
        },
        "sc_1_0_004": {
            "id": "sc_1_0_004",
            "title": "The Catwalk",
            "text": "The stage yawns below.",
            "choices": [
                {
                    "label": "Drop to the stage",
                    "to": "sc_1_0_900",
                    "effects": [{"type": "modify-faction", "faction": "preservationist", "amount": 2}],
                }
            ],
        },
        "sc_1_0_005": {
            "id": "sc_1_0_005",
            "title": "The Trapdoor",
            "text": "The boards give way. Darkness.",
            "choices": [],
        },
        "sc_1_0_900": {
            "id": "sc_1_0_900",
            "title": "Curtain Call",
            "text": "The house lights rise.",
            "ending": True,
            "effectsOnEnter": [{"type": "set-flag", "flag": "curtain_call"}],
        },
    }


def write_content(root: Path, manifest: dict[str, Any], scenes: dict[str, Any]) -> Path:
    """Lay content out on disk as manifest.json + scenes/<id>.json."""
    (root / "scenes").mkdir(parents=True, exist_ok=True)
    (root / "manifest.json").write_text(json.dumps(manifest), encoding="utf-8")
    for scene_id, scene in scenes.items():
        text = scene if isinstance(scene, str) else json.dumps(scene)
        (root / "scenes" / f"{scene_id}.json").write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def manifest_data() -> dict[str, Any]:
    """Raw manifest for the sample gamebook."""
    return make_manifest()


@pytest.fixture
def scene_data() -> dict[str, Any]:
    """Raw scenes for the sample gamebook, keyed by id."""
    return make_scenes()


@pytest.fixture
def content_source(manifest_data, scene_data) -> MemoryContentSource:
    """In-memory source over the sample gamebook."""
    return MemoryContentSource(manifest_data, scene_data)


@pytest.fixture
def loader(content_source) -> SceneLoader:
    """Initialized scene loader."""
    scene_loader = SceneLoader(content_source)
    scene_loader.initialize()
    return scene_loader


@pytest.fixture
def content_dir(tmp_path, manifest_data, scene_data) -> Path:
    """Sample gamebook written to a temporary content directory."""
    return write_content(tmp_path / "content", manifest_data, scene_data)


@pytest.fixture
def clock() -> Callable[[], int]:
    """Deterministic millisecond clock: 1000, 1001, 1002, ..."""
    ticks = iter(range(1000, 10**9))
    return lambda: next(ticks)


@pytest.fixture
def engine(content_source, clock) -> Engine:
    """Engine positioned at the starting scene."""
    engine = Engine(EngineOptions(content_source=content_source, clock=clock))
    engine.initialize()
    return engine


@pytest.fixture
def brave_engine(content_source, clock) -> Engine:
    """Engine whose reader starts with courage 2."""
    initial = GameState(content_version="", stats={"courage": 2})
    engine = Engine(EngineOptions(content_source=content_source, initial_state=initial, clock=clock))
    engine.initialize()
    return engine
