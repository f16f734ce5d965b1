"""
Effect Applier - Applies effects to the live GameState.

Each application mutates only the state it is given and returns one
StateChangeEvent describing what changed.

Rules:
- modify-stat on a missing stat starts from 0
- remove-item never goes below 0; an item at 0 is dropped from inventory
- modify-faction clamps to [0, 10], amount defaults to 1
- goto only *reports* the intended transition (path "current_scene_id");
  moving the scene is the orchestrator's job
- unknown effects, or effects missing their target field, are no-ops
  reported with path "none"
"""

from __future__ import annotations
import time
from typing import Callable, TYPE_CHECKING

from ..content_schema.scene_dsl import (
    FACTION_MAX,
    FACTION_MIN,
    AddItem,
    ClearFlag,
    Effect,
    EffectType,
    Goto,
    ModifyFaction,
    ModifyStat,
    RemoveItem,
    SetFlag,
    SetStat,
)
from .events import ChangeType, CheckpointType, RenderScope, StateChangeEvent, Urgency

if TYPE_CHECKING:
    from .state import GameState


Clock = Callable[[], int]


def system_clock() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


RENDER_SCOPES: dict[EffectType, RenderScope] = {
    EffectType.SET_STAT: RenderScope.STATUS,
    EffectType.MODIFY_STAT: RenderScope.STATUS,
    EffectType.SET_FLAG: RenderScope.ALL,
    EffectType.CLEAR_FLAG: RenderScope.ALL,
    EffectType.ADD_ITEM: RenderScope.INVENTORY,
    EffectType.REMOVE_ITEM: RenderScope.INVENTORY,
    EffectType.GOTO: RenderScope.SCENE,
    EffectType.MODIFY_FACTION: RenderScope.STATUS,
}

URGENCIES: dict[EffectType, Urgency] = {
    EffectType.SET_STAT: Urgency.LOW,
    EffectType.MODIFY_STAT: Urgency.LOW,
    EffectType.SET_FLAG: Urgency.IMMEDIATE,
    EffectType.CLEAR_FLAG: Urgency.IMMEDIATE,
    EffectType.ADD_ITEM: Urgency.IMMEDIATE,
    EffectType.REMOVE_ITEM: Urgency.IMMEDIATE,
    EffectType.GOTO: Urgency.IMMEDIATE,
    EffectType.MODIFY_FACTION: Urgency.LOW,
}


def render_scope_for(effect: Effect) -> RenderScope:
    return RENDER_SCOPES.get(effect.kind, RenderScope.ALL)


def urgency_for(effect: Effect) -> Urgency:
    return URGENCIES.get(effect.kind, Urgency.LOW)


class EffectApplier:
    """
    Applies effects one at a time, or a list in order.

    Usage:
        applier = EffectApplier()
        event = applier.apply(SetFlag("met_editor"), state)
    """

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or system_clock

    def apply(
        self,
        effect: Effect,
        state: GameState,
        checkpoint: CheckpointType | None = None,
    ) -> StateChangeEvent:
        handlers: dict[type, Callable] = {
            SetStat: self._set_stat,
            ModifyStat: self._modify_stat,
            SetFlag: self._set_flag,
            ClearFlag: self._clear_flag,
            AddItem: self._add_item,
            RemoveItem: self._remove_item,
            Goto: self._goto,
            ModifyFaction: self._modify_faction,
        }

        handler = handlers.get(type(effect))
        if handler is None:
            return self._noop(checkpoint)

        event = handler(effect, state)
        if event is None:
            return self._noop(checkpoint)
        event.checkpoint = checkpoint
        return event

    def apply_all(
        self,
        effects: list[Effect],
        state: GameState,
        checkpoint: CheckpointType | None = None,
    ) -> list[StateChangeEvent]:
        return [self.apply(effect, state, checkpoint) for effect in effects]

    # =========================================================================
    # Handlers
    # =========================================================================

    def _set_stat(self, effect: SetStat, state: GameState) -> StateChangeEvent | None:
        if not effect.stat:
            return None
        old = state.stats.get(effect.stat, 0)
        state.stats[effect.stat] = effect.value
        return self._event(effect, f"stats.{effect.stat}", old, effect.value)

    def _modify_stat(self, effect: ModifyStat, state: GameState) -> StateChangeEvent | None:
        if not effect.stat:
            return None
        old = state.stats.get(effect.stat, 0)
        new = old + effect.value
        state.stats[effect.stat] = new
        return self._event(effect, f"stats.{effect.stat}", old, new)

    def _set_flag(self, effect: SetFlag, state: GameState) -> StateChangeEvent | None:
        if not effect.flag:
            return None
        old = "set" if effect.flag in state.flags else "unset"
        state.flags.add(effect.flag)
        return self._event(effect, f"flags.{effect.flag}", old, "set")

    def _clear_flag(self, effect: ClearFlag, state: GameState) -> StateChangeEvent | None:
        if not effect.flag:
            return None
        old = "set" if effect.flag in state.flags else "unset"
        state.flags.discard(effect.flag)
        return self._event(effect, f"flags.{effect.flag}", old, "unset")

    def _add_item(self, effect: AddItem, state: GameState) -> StateChangeEvent | None:
        if not effect.item:
            return None
        old = state.inventory.get(effect.item, 0)
        new = max(0, old + effect.count)
        if new > 0:
            state.inventory[effect.item] = new
        else:
            state.inventory.pop(effect.item, None)
        return self._event(effect, f"inventory.{effect.item}", old, new)

    def _remove_item(self, effect: RemoveItem, state: GameState) -> StateChangeEvent | None:
        if not effect.item:
            return None
        old = state.inventory.get(effect.item, 0)
        new = max(0, old - effect.count)
        if new > 0:
            state.inventory[effect.item] = new
        else:
            state.inventory.pop(effect.item, None)
        return self._event(effect, f"inventory.{effect.item}", old, new)

    def _goto(self, effect: Goto, state: GameState) -> StateChangeEvent | None:
        if not effect.scene_id:
            return None
        return self._event(effect, "current_scene_id", state.current_scene_id, effect.scene_id)

    def _modify_faction(self, effect: ModifyFaction, state: GameState) -> StateChangeEvent | None:
        if not effect.faction:
            return None
        old = state.factions.get(effect.faction, 0)
        new = min(FACTION_MAX, max(FACTION_MIN, old + effect.amount))
        state.factions[effect.faction] = new
        return self._event(effect, f"factions.{effect.faction}", old, new)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _event(self, effect: Effect, path: str, old, new) -> StateChangeEvent:
        return StateChangeEvent(
            change_type=ChangeType.EFFECT_APPLIED,
            path=path,
            old_value=old,
            new_value=new,
            timestamp=self.clock(),
            render_scope=render_scope_for(effect),
            urgency=urgency_for(effect),
        )

    def _noop(self, checkpoint: CheckpointType | None) -> StateChangeEvent:
        return StateChangeEvent(
            change_type=ChangeType.EFFECT_APPLIED,
            path="none",
            old_value=None,
            new_value=None,
            timestamp=self.clock(),
            render_scope=RenderScope.ALL,
            urgency=Urgency.LOW,
            checkpoint=checkpoint,
        )
