"""
Headless Runner - Drives an Engine through a playthrough script.

The runner:
1. Builds a fresh Engine per script, seeded from startingState
2. Executes steps in order (start, choose, checkpoint, save/load snapshot)
3. Probes for softlocks before the first step and after every step
4. Checks assertions and, at the end, the ending criteria
5. Reports a PlaythroughResult: passed, failed or softlocked

Softlock probe (skipped for exempt scenes):
- no_choices: no selectable choice on a scene that is not an ending
- revisit_threshold: current scene visited more than max_scene_revisits times
- progress_threshold: more than max_steps_without_progress steps without a
  change to the flags/inventory/stats signature

An assertion failure always wins over a softlock when picking the status.
"""

from __future__ import annotations
import json
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from ..content_schema.loader import ContentSource
from ..content_schema.validation import ContentError
from ..engine_core.engine import Engine, EngineOptions, EngineStatus
from ..engine_core.errors import EngineError
from ..engine_core.state import ENGINE_VERSION, GameState
from .script import (
    CheckpointStep,
    ChooseStep,
    CoverageReport,
    EndingCriteria,
    LoadSnapshotStep,
    PlaythroughResult,
    PlaythroughScript,
    PlaythroughStatus,
    SaveSnapshotStep,
    SoftlockConfig,
    SoftlockReason,
    SoftlockReport,
    StartStep,
    StateAssertions,
    StateSnapshot,
    StepFailure,
)

logger = logging.getLogger(__name__)


class StepFailed(Exception):
    """Internal: a step did not meet its expectations."""

    def __init__(self, reason: str, expected: str | None = None, actual: str | None = None):
        self.reason = reason
        self.expected = expected
        self.actual = actual
        super().__init__(reason)


class HeadlessRunner:
    """
    Runs playthrough scripts against content, with no presentation layer.

    Usage:
        runner = HeadlessRunner(content_path="content")
        result = runner.run(PlaythroughScript.model_validate(data))
        if result.status != PlaythroughStatus.PASSED:
            print(result.failure or result.softlock)
    """

    def __init__(
        self,
        content_path: str | Path | None = None,
        content_source: ContentSource | None = None,
        snapshot_dir: str | Path | None = None,
        clock: Callable[[], int] | None = None,
    ):
        if content_source is None and content_path is None:
            content_path = "./content"
        self.content_path = content_path
        self.content_source = content_source
        self.snapshot_dir = Path(snapshot_dir) if snapshot_dir else None
        self.clock = clock
        self.snapshots: dict[str, StateSnapshot] = {}

        self.engine: Engine | None = None
        self._script: PlaythroughScript | None = None
        self._last_signature = ""
        self._steps_without_progress = 0

    # =========================================================================
    # Running
    # =========================================================================

    def run(self, script: PlaythroughScript) -> PlaythroughResult:
        started = time.monotonic()
        self._script = script
        self.snapshots = {}
        created: list[str] = []
        config = script.softlock_detection
        softlock: SoftlockReport | None = None
        failure: StepFailure | None = None
        steps_run = 0

        try:
            self.engine = self._build_engine(script)
            self.engine.initialize()
            self._reset_progress()

            softlock = self._probe(config, step=0)
            if not (softlock and config.stops_run):
                for position, step in enumerate(script.steps, start=1):
                    step_number = step.sequence if step.sequence is not None else position
                    steps_run += 1
                    try:
                        snapshot = self._execute(step, step_number)
                    except StepFailed as e:
                        failure = StepFailure(
                            step=step_number, reason=e.reason, expected=e.expected, actual=e.actual,
                        )
                        break
                    except (EngineError, ContentError) as e:
                        failure = StepFailure(step=step_number, reason=str(e))
                        break
                    if snapshot:
                        created.append(snapshot)

                    self._track_progress()
                    detected = self._probe(config, step=step_number)
                    if detected:
                        softlock = softlock or detected
                        if config.stops_run:
                            break
                        logger.warning(
                            "Softlock (%s) at %s, continuing", detected.reason.value, detected.scene_id,
                        )
                else:
                    if script.ending_criteria and not softlock:
                        try:
                            self._check_ending(script.ending_criteria)
                        except StepFailed as e:
                            failure = StepFailure(
                                step=steps_run, reason=e.reason, expected=e.expected, actual=e.actual,
                            )
        except (EngineError, ContentError) as e:
            failure = StepFailure(step=steps_run, reason=str(e))

        if failure:
            status = PlaythroughStatus.FAILED
        elif softlock:
            status = PlaythroughStatus.SOFTLOCKED
        else:
            status = PlaythroughStatus.PASSED

        visited = []
        if self.engine is not None and self.engine.status == EngineStatus.SCENE_LOADED:
            visited = [entry.scene_id for entry in self.engine.get_state().history]

        return PlaythroughResult(
            playthrough=script.meta.name,
            status=status,
            steps=steps_run,
            duration_ms=int((time.monotonic() - started) * 1000),
            snapshots=created,
            visited_scenes=visited,
            failure=failure,
            softlock=softlock,
        )

    def _build_engine(self, script: PlaythroughScript) -> Engine:
        initial_state = None
        seed = script.starting_state
        if seed is not None:
            initial_state = GameState(
                content_version="",
                current_scene_id=seed.current_scene or "",
                stats=dict(seed.stats),
                flags=set(seed.flags),
                inventory={k: v for k, v in seed.inventory.items() if v > 0},
                factions=dict(seed.factions),
            )
        options = EngineOptions(
            content_path=self.content_path,
            content_source=self.content_source,
            initial_state=initial_state,
            disable_autosave=True,
            clock=self.clock,
        )
        return Engine(options)

    # =========================================================================
    # Steps
    # =========================================================================

    def _execute(self, step, step_number: int) -> str | None:
        """Run one step. Returns the snapshot name if one was created."""
        engine = self.engine
        if isinstance(step, StartStep):
            engine.reset()
            self._reset_progress()
            return None

        if isinstance(step, ChooseStep):
            choices = engine.get_available_choices()
            if not 0 <= step.choice_index < len(choices):
                raise StepFailed(
                    f"Invalid choice index: {step.choice_index} (only {len(choices)} choices available)",
                    expected=f"choice index 0-{len(choices) - 1}",
                    actual=str(step.choice_index),
                )
            option = choices[step.choice_index]
            if not option.is_selectable:
                hint = option.disabled_hint or "no hint"
                raise StepFailed(
                    f"Choice {step.choice_index} is disabled: {hint}",
                    expected="enabled choice",
                    actual=f"disabled choice ({hint})",
                )
            result = engine.make_choice(step.choice_index)
            if step.expected_scene and result.to_scene != step.expected_scene:
                raise StepFailed(
                    f"Expected scene {step.expected_scene}, got {result.to_scene}",
                    expected=step.expected_scene,
                    actual=result.to_scene,
                )
            if step.assertions:
                self.check_assertions(step.assertions)
            return None

        if isinstance(step, CheckpointStep):
            self.check_assertions(step.assertions)
            if step.save_snapshot:
                self._snapshot(step.save_snapshot, step_number)
                return step.save_snapshot
            return None

        if isinstance(step, SaveSnapshotStep):
            self._snapshot(step.snapshot_name, step_number)
            return step.snapshot_name

        if isinstance(step, LoadSnapshotStep):
            snapshot = self.snapshots.get(step.snapshot_name)
            if snapshot is None:
                raise StepFailed(f"Snapshot not found: {step.snapshot_name}")
            engine.load(json.dumps(snapshot.state))
            if step.assertions:
                self.check_assertions(step.assertions)
            return None

        raise StepFailed(f"Unknown action type: {getattr(step, 'action', step)!r}")

    def check_assertions(self, assertions: StateAssertions):
        """Raise StepFailed on the first assertion that does not hold."""
        state = self.engine.get_state()

        for flag in assertions.flags_set:
            if flag not in state.flags:
                raise StepFailed(
                    f'Expected flag "{flag}" to be set, but it is not',
                    expected=f"flag {flag} to be set", actual="flag not set",
                )
        for flag in assertions.flags_cleared:
            if flag in state.flags:
                raise StepFailed(
                    f'Expected flag "{flag}" to be cleared, but it is set',
                    expected=f"flag {flag} to be cleared", actual="flag is set",
                )
        for item in assertions.inventory_contains:
            if state.inventory.get(item, 0) <= 0:
                raise StepFailed(
                    f'Expected item "{item}" in inventory, but it is not',
                    expected=f"item {item} in inventory", actual="item not in inventory",
                )
        for item in assertions.inventory_excludes:
            if state.inventory.get(item, 0) > 0:
                raise StepFailed(
                    f'Expected item "{item}" not in inventory, but it is',
                    expected=f"item {item} not in inventory", actual="item is in inventory",
                )
        for stat, expected in assertions.stats.items():
            actual = state.stats.get(stat)
            if actual != expected:
                raise StepFailed(
                    f'Expected stat "{stat}" to be {expected}, but got {actual}',
                    expected=f"{stat} = {expected}", actual=f"{stat} = {actual}",
                )
        if assertions.current_scene and state.current_scene_id != assertions.current_scene:
            raise StepFailed(
                f"Expected current scene to be {assertions.current_scene}, but got {state.current_scene_id}",
                expected=assertions.current_scene, actual=state.current_scene_id,
            )
        for scene_id, expected in assertions.visited_count.items():
            actual = state.visited_count(scene_id)
            if actual != expected:
                raise StepFailed(
                    f'Expected scene "{scene_id}" to have been visited {expected} times, but got {actual}',
                    expected=f"{scene_id} visited {expected} times",
                    actual=f"{scene_id} visited {actual} times",
                )
        if assertions.choices_available is not None:
            count = sum(1 for c in self.engine.get_available_choices() if c.is_selectable)
            if count != assertions.choices_available:
                raise StepFailed(
                    f"Expected {assertions.choices_available} available choices, found {count}",
                    expected=f"{assertions.choices_available} choices", actual=f"{count} choices",
                )

    def _check_ending(self, criteria: EndingCriteria):
        state = self.engine.get_state()
        if state.current_scene_id != criteria.scene_id:
            raise StepFailed(
                f"Expected to end at {criteria.scene_id}, but ended at {state.current_scene_id}",
                expected=criteria.scene_id, actual=state.current_scene_id,
            )
        for flag in criteria.flags_required:
            if flag not in state.flags:
                raise StepFailed(
                    f'Ending requires flag "{flag}"', expected=f"flag {flag}", actual="flag not set",
                )
        for item in criteria.inventory_required:
            if state.inventory.get(item, 0) <= 0:
                raise StepFailed(
                    f'Ending requires item "{item}"', expected=f"item {item}", actual="item missing",
                )
        for stat, minimum in criteria.stats_required.items():
            actual = state.stats.get(stat, 0)
            if actual < minimum:
                raise StepFailed(
                    f'Ending requires stat "{stat}" >= {minimum}, got {actual}',
                    expected=f"{stat} >= {minimum}", actual=f"{stat} = {actual}",
                )

    # =========================================================================
    # Softlock detection
    # =========================================================================

    def _probe(self, config: SoftlockConfig, step: int) -> SoftlockReport | None:
        if not config.enabled:
            return None
        engine = self.engine
        scene = engine.current_scene
        if scene is None or scene.id in config.exempt_scenes:
            return None

        is_ending = scene.ending or engine.loader.manifest.is_ending(scene.id)
        if not is_ending and not any(c.is_selectable for c in engine.get_available_choices()):
            return SoftlockReport(
                softlocked=True, reason=SoftlockReason.NO_CHOICES, scene_id=scene.id, step=step,
            )

        visits = engine.get_state().visited_count(scene.id)
        if visits > config.max_scene_revisits:
            return SoftlockReport(
                softlocked=True,
                reason=SoftlockReason.REVISIT_THRESHOLD,
                scene_id=scene.id,
                step=step,
                visit_count=visits,
            )

        if self._steps_without_progress > config.max_steps_without_progress:
            return SoftlockReport(
                softlocked=True,
                reason=SoftlockReason.PROGRESS_THRESHOLD,
                scene_id=scene.id,
                step=step,
                steps_without_progress=self._steps_without_progress,
            )
        return None

    def _reset_progress(self):
        self._last_signature = self.engine.get_state().progress_signature()
        self._steps_without_progress = 0

    def _track_progress(self):
        signature = self.engine.get_state().progress_signature()
        if signature != self._last_signature:
            self._last_signature = signature
            self._steps_without_progress = 0
        else:
            self._steps_without_progress += 1

    # =========================================================================
    # Snapshots
    # =========================================================================

    def _snapshot(self, name: str, step_number: int) -> StateSnapshot:
        state = self.engine.get_state()
        snapshot = StateSnapshot(
            timestamp=datetime.now(timezone.utc).isoformat(),
            playthrough=self._script.meta.name,
            step=step_number,
            name=name,
            engine_version=ENGINE_VERSION,
            content_version=state.content_version,
            state=state.to_dict(),
        )
        self.snapshots[name] = snapshot
        if self.snapshot_dir:
            self._write_snapshot(snapshot)
        return snapshot

    def _write_snapshot(self, snapshot: StateSnapshot):
        folder = self.snapshot_dir / _slug(snapshot.playthrough)
        try:
            folder.mkdir(parents=True, exist_ok=True)
            path = folder / f"{_slug(snapshot.name)}.json"
            path.write_text(snapshot.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to write snapshot %s: %s", snapshot.name, e)


def load_script(path: str | Path) -> PlaythroughScript:
    """Read and validate a script file. Raises ValueError or pydantic.ValidationError."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return PlaythroughScript.model_validate(data)


def scene_coverage(results: list[PlaythroughResult], scene_ids: list[str]) -> CoverageReport:
    """Which indexed scenes at least one run actually visited."""
    visited = {scene_id for result in results for scene_id in result.visited_scenes}
    covered = [s for s in scene_ids if s in visited]
    total = len(scene_ids)
    return CoverageReport(
        total_scenes=total,
        covered_scenes=len(covered),
        coverage_percent=round(len(covered) * 100 / total) if total else 0,
        uncovered_scenes=[s for s in scene_ids if s not in visited],
    )


def _slug(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "snapshot"
