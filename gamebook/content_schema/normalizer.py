"""
Content Normalizer - Maps loosely-typed authored JSON onto the scene DSL.

Authors write conditions and effects with several spellings. The normalizer
folds them into one canonical form before anything is evaluated:

- Condition type aliases: has_item -> item, stat_check -> stat,
  flag_check -> flag, faction_check -> faction, AND/OR/NOT -> and/or/not
- Condition field aliases: op -> operator, count -> item count,
  level/value -> faction level
- A flag check with operator NOT_SET becomes not[flag]
- A single condition object is wrapped into a one-element list
- Stat checks naming a faction id become faction checks
- Effect types: set_flag -> set-flag (and the rest of the underscore forms);
  modify-faction accepts `value` for `amount`
- Scene aliases: effectsOnEnter -> effects, choice onChoose -> effects,
  audio.music / audio.sfx flattening, {location, paragraphs} text objects

Structural violations raise ContentError immediately. Recoverable oddities
(unknown types, redundant fields) are recorded in `warnings`.
"""

from __future__ import annotations
from typing import Any

from .scene_dsl import (
    FACTION_IDS,
    Act,
    AddItem,
    AndCondition,
    AttemptableRoute,
    Branch,
    Choice,
    ClearFlag,
    ComparisonOperator,
    Condition,
    Effect,
    Ending,
    EndingRequirements,
    FactionCondition,
    FlagCondition,
    Goto,
    Hub,
    ItemCondition,
    LEAF_CONDITIONS,
    Manifest,
    ModifyFaction,
    ModifyStat,
    NotCondition,
    OrCondition,
    RemoveItem,
    SceneData,
    SceneIndexEntry,
    SetFlag,
    SetStat,
    SimpleRoute,
    StatCondition,
    UnknownCondition,
    UnknownEffect,
    is_faction_id,
)
from .validation import ContentError, ContentErrorKind


CONDITION_TYPE_ALIASES: dict[str, str] = {
    "has_item": "item",
    "stat_check": "stat",
    "flag_check": "flag",
    "faction_check": "faction",
    "and": "and",
    "or": "or",
    "not": "not",
}

OPERATOR_ALIASES: dict[str, ComparisonOperator] = {
    "gte": ComparisonOperator.GTE,
    ">=": ComparisonOperator.GTE,
    "lte": ComparisonOperator.LTE,
    "<=": ComparisonOperator.LTE,
    "eq": ComparisonOperator.EQ,
    "==": ComparisonOperator.EQ,
    "gt": ComparisonOperator.GT,
    ">": ComparisonOperator.GT,
    "lt": ComparisonOperator.LT,
    "<": ComparisonOperator.LT,
}

EFFECT_TYPE_ALIASES: dict[str, str] = {
    "set_stat": "set-stat",
    "modify_stat": "modify-stat",
    "set_flag": "set-flag",
    "clear_flag": "clear-flag",
    "add_item": "add-item",
    "remove_item": "remove-item",
    "modify_faction": "modify-faction",
}

NOT_SET = "not_set"


class ContentNormalizer:
    """
    Normalizes one document at a time.

    Usage:
        normalizer = ContentNormalizer()
        scene = normalizer.scene(raw_json)
        for warning in normalizer.warnings:
            ...
    """

    def __init__(self):
        self.warnings: list[str] = []
        self._scene_id: str | None = None

    # =========================================================================
    # Scenes
    # =========================================================================

    def scene(self, raw: Any, expected_id: str | None = None) -> SceneData:
        """Normalize a raw scene document."""
        if not isinstance(raw, dict):
            raise self._error("Scene document must be a JSON object", expected_id)

        scene_id = raw.get("id")
        self._scene_id = scene_id or expected_id
        if not scene_id:
            raise self._error("Missing scene.id")
        if expected_id and scene_id != expected_id:
            raise self._error(
                f'Scene file for "{expected_id}" declares id "{scene_id}"',
                details={"expected": expected_id, "actual": scene_id},
            )
        if "title" not in raw:
            raise self._error("Missing scene.title")
        if "text" not in raw:
            raise self._error("Missing scene.text")

        text, text_location = self._text(raw["text"])

        raw_choices = raw.get("choices") or []
        if not isinstance(raw_choices, list):
            raise self._error("scene.choices must be a list")

        raw_effects = raw.get("effectsOnEnter")
        if raw_effects is None:
            raw_effects = raw.get("effects")

        audio = raw.get("audio") if isinstance(raw.get("audio"), dict) else {}
        ending_raw = raw.get("ending")
        ending_id = raw.get("endingId")
        if isinstance(ending_raw, dict):
            ending_id = ending_raw.get("id", ending_id)

        return SceneData(
            id=scene_id,
            title=str(raw["title"]),
            text=text,
            effects=self.effects(raw_effects),
            choices=[self.choice(c, i) for i, c in enumerate(raw_choices)],
            required_flags=list(raw.get("requiredFlags") or []),
            required_items=list(raw.get("requiredItems") or []),
            ending=bool(ending_raw),
            ending_id=ending_id,
            location=raw.get("location") or text_location,
            art=raw.get("art"),
            music=audio.get("music", raw.get("music")),
            sfx=audio.get("sfx", raw.get("sfx")),
        )

    def _text(self, raw: Any) -> tuple[str, str | None]:
        if isinstance(raw, str):
            return raw, None
        if isinstance(raw, dict):
            paragraphs = raw.get("paragraphs") or []
            if not isinstance(paragraphs, list):
                raise self._error("scene.text.paragraphs must be a list")
            return "\n\n".join(str(p) for p in paragraphs), raw.get("location")
        raise self._error("scene.text must be a string or {location, paragraphs}")

    # =========================================================================
    # Choices
    # =========================================================================

    def choice(self, raw: Any, index: int = 0) -> Choice:
        """Normalize a choice and resolve its route variant."""
        if not isinstance(raw, dict):
            raise self._error(f"Choice {index}: must be a JSON object")

        where = f"Choice {index}"
        on_success = raw.get("onSuccess")
        on_failure = raw.get("onFailure")
        to = raw.get("to")

        if on_success is not None and on_failure is not None:
            if to:
                self._warn(f"{where}: attemptable choice also declares 'to'; ignoring it")
            route = AttemptableRoute(
                on_success=self._branch(on_success, f"{where} onSuccess"),
                on_failure=self._branch(on_failure, f"{where} onFailure"),
            )
        elif on_success is not None or on_failure is not None:
            missing = "onFailure" if on_failure is None else "onSuccess"
            raise self._error(
                f"{where}: attemptable choice is missing {missing}",
                details={"choice_index": index},
            )
        elif to:
            route = SimpleRoute(to=str(to))
        else:
            raise self._error(f"{where}: Missing target scene", details={"choice_index": index})

        conditions = self.conditions(raw.get("conditions"))
        self._reconcile_attemptable(conditions, isinstance(route, AttemptableRoute), where)

        raw_effects = raw.get("effects")
        if raw_effects is None:
            raw_effects = raw.get("onChoose")
        effects = self.effects(raw_effects)
        if isinstance(route, AttemptableRoute) and effects:
            self._warn(f"{where}: choice-level effects are ignored on attemptable choices")
            effects = []

        return Choice(
            label=str(raw.get("label") or ""),
            route=route,
            conditions=conditions,
            effects=effects,
            disabled_hint=raw.get("disabledHint"),
        )

    def _branch(self, raw: Any, where: str) -> Branch:
        if not isinstance(raw, dict) or not raw.get("to"):
            raise self._error(f"{where}: Missing target scene")
        return Branch(to=str(raw["to"]), effects=self.effects(raw.get("effects")))

    def _reconcile_attemptable(self, conditions: list[Condition], attemptable: bool, where: str):
        """Keep the leaf `attemptable` marker consistent with the route."""
        leaves = [c for c in conditions if isinstance(c, LEAF_CONDITIONS)]
        if attemptable:
            if leaves and not any(c.attemptable for c in leaves):
                self._warn(f"{where}: attemptable choice has no marked check; marking its conditions")
                for leaf in leaves:
                    leaf.attemptable = True
        elif any(c.attemptable for c in leaves):
            self._warn(f"{where}: 'attemptable' marker on a simple choice ignored")
            for leaf in leaves:
                leaf.attemptable = False

    # =========================================================================
    # Conditions
    # =========================================================================

    def conditions(self, raw: Any) -> list[Condition]:
        """Normalize a condition list. None -> [], single object -> [object]."""
        if raw is None:
            return []
        if isinstance(raw, dict):
            raw = [raw]
        if not isinstance(raw, list):
            raise self._error("conditions must be an object or a list")
        return [self.condition(c) for c in raw]

    def condition(self, raw: Any) -> Condition:
        if not isinstance(raw, dict):
            raise self._error("Condition must be an object")
        raw_type = raw.get("type")
        if not raw_type:
            raise self._error("Condition missing type")

        type_name = str(raw_type)
        kind = CONDITION_TYPE_ALIASES.get(type_name.lower(), type_name.lower())
        attemptable = raw.get("attemptable") is True

        stat_name = str(raw.get("stat") or "")
        if kind == "stat" and is_faction_id(stat_name):
            kind = "faction"

        if kind == "stat":
            op = raw.get("op", raw.get("operator"))
            return StatCondition(
                stat=stat_name,
                operator=self._operator(op),
                value=self._number(raw.get("value"), 0, "Stat condition value"),
                attemptable=attemptable,
            )

        if kind == "flag":
            flag = FlagCondition(flag=str(raw.get("flag") or ""), attemptable=attemptable)
            op = raw.get("op", raw.get("operator"))
            if op is not None and str(op).lower() == NOT_SET:
                return NotCondition(conditions=[flag])
            return flag

        if kind == "item":
            count = raw.get("itemCount", raw.get("count"))
            return ItemCondition(
                item=str(raw.get("item") or ""),
                count=int(self._number(count, 1, "Item condition count")),
                attemptable=attemptable,
            )

        if kind == "faction":
            faction = str(raw.get("faction") or stat_name).lower()
            level = raw.get("factionLevel", raw.get("level", raw.get("value")))
            if faction and faction not in FACTION_IDS:
                self._warn(f"Unknown faction '{faction}' in faction condition")
            return FactionCondition(
                faction=faction,
                level=self._number(level, 0, "Faction condition level"),
                attemptable=attemptable,
            )

        if kind in ("and", "or", "not"):
            nested = self.conditions(raw.get("conditions"))
            if kind == "and":
                return AndCondition(conditions=nested)
            if kind == "or":
                return OrCondition(conditions=nested)
            return NotCondition(conditions=nested)

        self._warn(f"Unknown condition type '{type_name}' (evaluates to false)")
        return UnknownCondition(type_name=type_name, raw=dict(raw))

    def _operator(self, raw: Any) -> ComparisonOperator:
        if raw is None:
            return ComparisonOperator.GTE
        operator = OPERATOR_ALIASES.get(str(raw).lower())
        if operator is None:
            raise self._error(f"Invalid stat operator: {raw}")
        return operator

    # =========================================================================
    # Effects
    # =========================================================================

    def effects(self, raw: Any) -> list[Effect]:
        if raw is None:
            return []
        if isinstance(raw, dict):
            raw = [raw]
        if not isinstance(raw, list):
            raise self._error("effects must be a list")
        return [self.effect(e) for e in raw]

    def effect(self, raw: Any) -> Effect:
        if not isinstance(raw, dict):
            raise self._error("Effect must be an object")
        raw_type = raw.get("type")
        if not raw_type:
            raise self._error("Effect missing type")

        type_name = str(raw_type)
        kind = EFFECT_TYPE_ALIASES.get(type_name.lower(), type_name.lower())

        if kind == "set-stat":
            return SetStat(
                stat=str(raw.get("stat") or ""),
                value=self._number(raw.get("value"), None, "set-stat value"),
            )
        if kind == "modify-stat":
            return ModifyStat(
                stat=str(raw.get("stat") or ""),
                value=self._number(raw.get("value"), None, "modify-stat value"),
            )
        if kind == "set-flag":
            return SetFlag(flag=str(raw.get("flag") or ""))
        if kind == "clear-flag":
            return ClearFlag(flag=str(raw.get("flag") or ""))
        if kind == "add-item":
            return AddItem(
                item=str(raw.get("item") or ""),
                count=int(self._number(raw.get("count"), 1, "add-item count")),
            )
        if kind == "remove-item":
            return RemoveItem(
                item=str(raw.get("item") or ""),
                count=int(self._number(raw.get("count"), 1, "remove-item count")),
            )
        if kind == "goto":
            target = raw.get("sceneId", raw.get("scene_id", raw.get("to")))
            if not target:
                raise self._error("goto missing sceneId")
            return Goto(scene_id=str(target))
        if kind == "modify-faction":
            amount = raw.get("amount", raw.get("value"))
            return ModifyFaction(
                faction=str(raw.get("faction") or "").lower(),
                amount=self._number(amount, 1, "modify-faction amount"),
            )

        self._warn(f"Unknown effect type '{type_name}' (ignored)")
        return UnknownEffect(type_name=type_name, raw=dict(raw))

    # =========================================================================
    # Manifest
    # =========================================================================

    def manifest(self, raw: Any) -> Manifest:
        """Normalize manifest.json."""
        self._scene_id = None
        if not isinstance(raw, dict):
            raise self._error("Manifest must be a JSON object")

        gamebook = raw.get("gamebook") or {}
        index_raw = raw.get("sceneIndex") or {}
        if not isinstance(index_raw, dict):
            raise self._error("sceneIndex must be an object keyed by scene id")

        scene_index = {
            scene_id: SceneIndexEntry(
                title=entry.get("title", ""),
                location=entry.get("location"),
                act=entry.get("act"),
                hub=entry.get("hub"),
                status=entry.get("status", "pending"),
                ending=bool(entry.get("ending", False)),
                ending_id=entry.get("endingId"),
            )
            for scene_id, entry in index_raw.items()
            if isinstance(entry, dict)
        }

        acts = [
            Act(
                id=str(act.get("id", "")),
                title=act.get("title", ""),
                theme=act.get("theme", ""),
                hubs=[
                    Hub(
                        id=str(hub.get("id", "")),
                        title=hub.get("title", ""),
                        convergence_scene=hub.get("convergenceScene"),
                        branch_paths=list(hub.get("branchPaths") or []),
                    )
                    for hub in act.get("hubs") or []
                ],
            )
            for act in raw.get("acts") or []
        ]

        endings = []
        for ending in raw.get("endings") or []:
            requirements = ending.get("requirements") or {}
            endings.append(Ending(
                id=str(ending.get("id", "")),
                scene_id=ending.get("sceneId", ""),
                title=ending.get("title", ""),
                description=ending.get("description", ""),
                tier=ending.get("tier", ""),
                requirements=EndingRequirements(
                    faction=requirements.get("faction"),
                    faction_level=requirements.get("factionLevel"),
                    editor_state=requirements.get("editorState"),
                    final_choice=requirements.get("finalChoice"),
                ),
            ))

        return Manifest(
            title=gamebook.get("title", ""),
            content_version=str(gamebook.get("adaptationVersion", "") or ""),
            starting_scene=raw.get("startingScene", ""),
            scene_index=scene_index,
            acts=acts,
            endings=endings,
            source=gamebook.get("source", ""),
            version=str(gamebook.get("version", "") or ""),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _number(self, raw: Any, default: float | None, what: str) -> float:
        if raw is None:
            if default is None:
                raise self._error(f"{what} is required")
            return default
        if isinstance(raw, bool):
            raise self._error(f"{what} must be a number, got {raw!r}")
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise self._error(f"{what} must be a number, got {raw!r}")
        return int(value) if value.is_integer() else value

    def _warn(self, message: str):
        prefix = f"{self._scene_id}: " if self._scene_id else ""
        self.warnings.append(prefix + message)

    def _error(
        self,
        message: str,
        scene_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ContentError:
        return ContentError(
            ContentErrorKind.SCHEMA_ERROR,
            message,
            scene_id=scene_id or self._scene_id,
            details=details,
        )


def normalize_scene(raw: Any, expected_id: str | None = None) -> SceneData:
    """Normalize a scene document, discarding warnings."""
    return ContentNormalizer().scene(raw, expected_id)


def normalize_manifest(raw: Any) -> Manifest:
    """Normalize a manifest document."""
    return ContentNormalizer().manifest(raw)
