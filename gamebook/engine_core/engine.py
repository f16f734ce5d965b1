"""
Engine - Orchestrates scene transitions over the live GameState.

The engine is the single owner of a session's state:
1. initialize() loads the manifest and enters the starting scene
2. get_available_choices() classifies the current scene's choices
3. make_choice() applies the choice (or the taken branch) and transitions
4. save()/load() round-trip the state through the save blob

Lifecycle: UNINITIALIZED -> SCENE_LOADED. Every later operation keeps the
engine in SCENE_LOADED.

Design principles:
- History is written exactly once per arrival, on the target scene
- goto in choice/branch effects redirects the destination (last one wins)
- goto in scene entry effects chains a follow-up transition, bounded by
  MAX_GOTO_CHAIN
- Observers are notified synchronously, in registration order
- load_state() rolls back to the previous state if the saved scene cannot
  be loaded
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from ..content_schema.loader import ContentSource, SceneLoader
from ..content_schema.scene_dsl import AttemptableRoute, Choice, Condition, Effect, SceneData
from .condition_evaluator import ConditionEvaluator
from .effect_applier import Clock, EffectApplier, system_clock
from .errors import (
    ChoiceUnavailableError,
    EngineError,
    LoadInProgressError,
    SaveError,
    SaveErrorKind,
)
from .events import (
    ChangeType,
    CheckpointType,
    RenderScope,
    StateChangeEvent,
    StateChangeHandler,
    Urgency,
)
from .save_manager import SaveManager
from .state import ENGINE_VERSION, GameState, SceneHistoryEntry

logger = logging.getLogger(__name__)


MAX_GOTO_CHAIN = 16
REVISIT_WARNING_THRESHOLD = 3


class EngineStatus(Enum):
    UNINITIALIZED = "uninitialized"
    SCENE_LOADED = "scene_loaded"


class ChoiceState(Enum):
    """How a choice is offered to the player."""
    ENABLED = "enabled"
    DISABLED = "disabled"
    RISKY = "risky"


class ChoiceOutcome(Enum):
    SIMPLE = "simple"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class AvailableChoice:
    """A choice on the current scene, classified for the current state."""
    index: int
    choice: Choice
    state: ChoiceState
    disabled_hint: str | None = None

    @property
    def label(self) -> str:
        return self.choice.label

    @property
    def is_selectable(self) -> bool:
        return self.state != ChoiceState.DISABLED


@dataclass
class ChoiceResult:
    """What happened when a choice was made."""
    index: int
    label: str
    outcome: ChoiceOutcome
    from_scene: str
    to_scene: str
    events: list[StateChangeEvent] = field(default_factory=list)


@dataclass
class EngineOptions:
    """
    Engine configuration.

    Provide either content_source or content_path. initial_state seeds the
    session (its current_scene_id, if set, replaces the starting scene).
    """
    content_path: str | Path | None = None
    content_source: ContentSource | None = None
    cache_scenes: bool = True
    initial_state: GameState | None = None
    save_manager: SaveManager | None = None
    disable_autosave: bool = False
    clock: Clock | None = None


class Engine:
    """
    Scene-transition orchestrator.

    Usage:
        engine = Engine(EngineOptions(content_path="content"))
        engine.initialize()
        for option in engine.get_available_choices():
            print(option.index, option.label, option.state.value)
        engine.make_choice(0)
    """

    def __init__(self, options: EngineOptions | None = None, loader: SceneLoader | None = None):
        self.options = options or EngineOptions()
        if loader is None:
            if self.options.content_source is not None:
                loader = SceneLoader(self.options.content_source, self.options.cache_scenes)
            elif self.options.content_path is not None:
                loader = SceneLoader.from_path(self.options.content_path, self.options.cache_scenes)
            else:
                raise EngineError("EngineOptions needs a content_source or content_path")
        self.loader = loader
        self.clock = self.options.clock or system_clock
        self.evaluator = ConditionEvaluator()
        self.applier = EffectApplier(clock=self.clock)

        self.status = EngineStatus.UNINITIALIZED
        self._state: GameState | None = None
        self._current_scene: SceneData | None = None
        self._handlers: list[StateChangeHandler] = []
        self._load_in_progress = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self) -> SceneData:
        """Load the manifest, create the state and enter the first scene."""
        manifest = self.loader.initialize()
        self._state = self._fresh_state()
        start = self._state.current_scene_id or manifest.starting_scene
        return self.transition_to(start)

    def reset(self) -> SceneData:
        """Start over from the configured initial state."""
        self._require_initialized()
        self._state = self._fresh_state()
        self._current_scene = None
        return self.transition_to(self._state.current_scene_id or self.loader.starting_scene)

    def _fresh_state(self) -> GameState:
        if self.options.initial_state is not None:
            state = self.options.initial_state.clone()
            state.content_version = self.loader.content_version
            state.version = ENGINE_VERSION
        else:
            state = GameState(content_version=self.loader.content_version)
        state.timestamp = self.clock()
        return state

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def content_version(self) -> str:
        return self.loader.content_version

    @property
    def current_scene(self) -> SceneData | None:
        return self._current_scene

    def get_state(self) -> GameState:
        """Deep-copied snapshot of the live state."""
        return self._require_state().clone()

    def evaluate_condition(self, condition: Condition) -> bool:
        return self.evaluator.evaluate(condition, self._require_state())

    def get_available_choices(self) -> list[AvailableChoice]:
        """Classify every choice of the current scene."""
        scene = self._require_scene()
        state = self._require_state()
        available = []
        for index, choice in enumerate(scene.choices):
            if isinstance(choice.route, AttemptableRoute):
                available.append(AvailableChoice(index, choice, ChoiceState.RISKY))
                continue
            if not choice.conditions:
                available.append(AvailableChoice(index, choice, ChoiceState.ENABLED))
                continue

            passed = self.evaluator.evaluate_all(choice.conditions, state)
            self._notify(StateChangeEvent(
                change_type=ChangeType.CONDITION_EVALUATED,
                path=f"choices.{index}",
                old_value=None,
                new_value=passed,
                timestamp=self.clock(),
                render_scope=RenderScope.CHOICES,
                urgency=Urgency.LOW,
            ))
            if passed:
                available.append(AvailableChoice(index, choice, ChoiceState.ENABLED))
            else:
                available.append(
                    AvailableChoice(index, choice, ChoiceState.DISABLED, choice.disabled_hint)
                )
        return available

    # =========================================================================
    # Actions
    # =========================================================================

    def make_choice(self, index: int) -> ChoiceResult:
        """
        Take a choice on the current scene.

        Raises EngineError for an out-of-range index and
        ChoiceUnavailableError for a disabled choice.
        """
        scene = self._require_scene()
        state = self._require_state()
        if not 0 <= index < len(scene.choices):
            raise EngineError(
                f"Choice index {index} out of range (scene {scene.id} has {len(scene.choices)})",
                {"index": index, "scene_id": scene.id},
            )

        option = self.get_available_choices()[index]
        if option.state == ChoiceState.DISABLED:
            raise ChoiceUnavailableError(index, option.label, option.disabled_hint)

        choice = option.choice
        if isinstance(choice.route, AttemptableRoute):
            succeeded = self.evaluator.evaluate_all(choice.conditions, state)
            branch = choice.route.on_success if succeeded else choice.route.on_failure
            outcome = ChoiceOutcome.SUCCESS if succeeded else ChoiceOutcome.FAILURE
            effects, destination = branch.effects, branch.to
        else:
            outcome = ChoiceOutcome.SIMPLE
            effects, destination = choice.effects, choice.route.to

        events = self._apply_effects(effects, CheckpointType.CHOICE)
        redirect = _last_goto(events)
        if redirect:
            destination = redirect

        logger.debug("Choice %d '%s' on %s -> %s (%s)", index, choice.label, scene.id, destination, outcome.value)
        self.transition_to(destination, choice_label=choice.label)
        return ChoiceResult(
            index=index,
            label=choice.label,
            outcome=outcome,
            from_scene=scene.id,
            to_scene=self._current_scene.id,
            events=events,
        )

    def apply_effect(self, effect: Effect) -> StateChangeEvent:
        """Apply a single effect outside of a choice. Goto is only reported."""
        event = self.applier.apply(effect, self._require_state(), CheckpointType.EFFECT)
        self._notify(event)
        return event

    def load_scene(self, scene_id: str) -> SceneData:
        """
        Make `scene_id` the current scene.

        Loads (fail-fast) and emits scene-loaded. History and entry effects
        are transition_to()'s job.
        """
        state = self._require_state()
        scene = self.loader.load_scene(scene_id)
        previous = state.current_scene_id
        self._current_scene = scene
        state.current_scene_id = scene.id
        self.status = EngineStatus.SCENE_LOADED
        self._notify(StateChangeEvent(
            change_type=ChangeType.SCENE_LOADED,
            path="current_scene_id",
            old_value=previous,
            new_value=scene.id,
            timestamp=self.clock(),
            render_scope=RenderScope.SCENE,
            urgency=Urgency.IMMEDIATE,
            checkpoint=CheckpointType.SCENE_TRANSITION,
        ))
        return scene

    def transition_to(self, scene_id: str, choice_label: str | None = None) -> SceneData:
        """Enter a scene: load it, record history, apply entry effects, follow gotos."""
        state = self._require_state()
        origin = state.current_scene_id
        target = scene_id
        hops = 0

        while True:
            scene = self.load_scene(target)
            self._record_visit(scene.id, choice_label)

            checkpoint = CheckpointType.ENDING if self._is_ending(scene) else CheckpointType.SCENE_TRANSITION
            events = self._apply_effects(scene.effects, checkpoint)
            redirect = _last_goto(events)
            if not redirect:
                break

            hops += 1
            if hops > MAX_GOTO_CHAIN:
                raise EngineError(
                    f"goto chain from {scene_id} exceeded {MAX_GOTO_CHAIN} hops",
                    {"scene_id": scene_id, "last": redirect},
                )
            target = redirect
            choice_label = None

        state.timestamp = self.clock()
        self._notify(StateChangeEvent(
            change_type=ChangeType.STATE_CHANGED,
            path="current_scene_id",
            old_value=origin,
            new_value=scene.id,
            timestamp=state.timestamp,
            render_scope=RenderScope.ALL,
            urgency=Urgency.IMMEDIATE,
            checkpoint=checkpoint,
        ))
        self._autosave()
        return scene

    # =========================================================================
    # Save / Load
    # =========================================================================

    def save(self) -> str:
        """Serialize the live state to a save string."""
        return json.dumps(self._require_state().to_dict())

    def load(self, save_string: str) -> SceneData:
        """Restore state from a save string."""
        return self.load_state(self.parse_save(save_string))

    def parse_save(self, save_string: str) -> GameState:
        try:
            data = json.loads(save_string)
        except (TypeError, json.JSONDecodeError) as e:
            raise SaveError(SaveErrorKind.INVALID_DATA, f"Save data is not valid JSON: {e}") from e
        try:
            return GameState.from_dict(data)
        except (TypeError, ValueError) as e:
            raise SaveError(SaveErrorKind.INVALID_DATA, str(e)) from e

    def is_save_compatible(self, save_string: str) -> bool:
        try:
            state = self.parse_save(save_string)
        except SaveError:
            return False
        return state.version == ENGINE_VERSION and state.content_version == self.content_version

    def load_state(self, new_state: GameState) -> SceneData:
        """
        Replace the live state wholesale.

        Rejects version mismatches. If the saved scene cannot be loaded the
        previous state and scene are restored and the error re-raised.
        """
        if self._load_in_progress:
            raise LoadInProgressError()
        self._require_initialized()

        if new_state.version != ENGINE_VERSION:
            raise SaveError(
                SaveErrorKind.VERSION_MISMATCH,
                f"Save uses engine version {new_state.version}, expected {ENGINE_VERSION}",
            )
        if new_state.content_version != self.content_version:
            raise SaveError(
                SaveErrorKind.VERSION_MISMATCH,
                f"Save content version {new_state.content_version} does not match "
                f"loaded content {self.content_version}",
            )

        self._load_in_progress = True
        previous_state, previous_scene = self._state, self._current_scene
        try:
            self._state = new_state.clone()
            try:
                scene = self.load_scene(self._state.current_scene_id)
            except Exception:
                logger.warning(
                    "Load failed at scene %s; restoring previous state",
                    new_state.current_scene_id,
                )
                self._state, self._current_scene = previous_state, previous_scene
                raise
        finally:
            self._load_in_progress = False

        self._notify(StateChangeEvent(
            change_type=ChangeType.STATE_CHANGED,
            path="state",
            old_value=previous_state.current_scene_id if previous_state else None,
            new_value=scene.id,
            timestamp=self.clock(),
            render_scope=RenderScope.ALL,
            urgency=Urgency.IMMEDIATE,
        ))
        return scene

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, handler: StateChangeHandler) -> Callable[[], None]:
        """Register an observer. Returns a callable that unregisters it."""
        self._handlers.append(handler)

        def unsubscribe():
            self.unsubscribe(handler)

        return unsubscribe

    def unsubscribe(self, handler: StateChangeHandler):
        if handler in self._handlers:
            self._handlers.remove(handler)

    def _notify(self, event: StateChangeEvent):
        for handler in list(self._handlers):
            handler(event)

    # =========================================================================
    # Internals
    # =========================================================================

    def _apply_effects(self, effects: list[Effect], checkpoint: CheckpointType) -> list[StateChangeEvent]:
        state = self._require_state()
        events = []
        for effect in effects:
            event = self.applier.apply(effect, state, checkpoint)
            events.append(event)
            self._notify(event)
        return events

    def _record_visit(self, scene_id: str, choice_label: str | None):
        state = self._require_state()
        entry = state.history_entry(scene_id)
        now = self.clock()
        if entry is None:
            state.history.append(SceneHistoryEntry(
                scene_id=scene_id,
                timestamp=now,
                visited_count=1,
                choice_label=choice_label,
            ))
            return

        entry.visited_count += 1
        entry.timestamp = now
        entry.choice_label = choice_label
        if entry.visited_count >= REVISIT_WARNING_THRESHOLD:
            logger.warning("Scene %s visited %d times", scene_id, entry.visited_count)

    def _is_ending(self, scene: SceneData) -> bool:
        return scene.ending or self.loader.manifest.is_ending(scene.id)

    def _autosave(self):
        manager = self.options.save_manager
        if manager is None or self.options.disable_autosave:
            return
        try:
            manager.autosave(self._require_state())
        except SaveError as e:
            logger.warning("Autosave failed (%s): %s", e.kind.value, e.message)

    def _require_state(self) -> GameState:
        if self._state is None:
            raise EngineError("Engine not initialized. Call initialize() first.")
        return self._state

    def _require_initialized(self):
        if self.status == EngineStatus.UNINITIALIZED:
            raise EngineError("Engine not initialized. Call initialize() first.")

    def _require_scene(self) -> SceneData:
        if self._current_scene is None:
            raise EngineError("No scene loaded")
        return self._current_scene


def _last_goto(events: list[StateChangeEvent]) -> str | None:
    """Destination of the last goto among applied effects, if any."""
    for event in reversed(events):
        if event.path == "current_scene_id" and event.new_value:
            return event.new_value
    return None
