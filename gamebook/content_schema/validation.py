"""
Content Validation - Structural checks for manifests and normalized scenes.

Validates that:
1. Required manifest fields are present (title, content version, starting scene)
2. Every scene the manifest names (start, endings, hub convergence) is indexed
3. Every choice, branch and goto target exists in the scene index
4. Unknown condition/effect types are reported (warnings, not errors)

Loading is fail-fast: SceneLoader raises the first ContentError it meets.
The non-raising ValidationResult form is used by full-content reports.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .scene_dsl import (
    Manifest,
    SceneData,
    UnknownCondition,
    UnknownEffect,
    AndCondition,
    OrCondition,
    NotCondition,
    StatCondition,
    FlagCondition,
    ItemCondition,
    FactionCondition,
    SetStat,
    ModifyStat,
    SetFlag,
    ClearFlag,
    AddItem,
    RemoveItem,
    ModifyFaction,
    iter_conditions,
    goto_targets,
)


class ContentErrorKind(Enum):
    """Kinds of content failure."""
    MISSING_SCENE = "missing-scene"
    MALFORMED_JSON = "malformed-json"
    SCHEMA_ERROR = "schema-error"
    BROKEN_LINK = "broken-link"
    INVALID_STAT = "invalid-stat"
    INVALID_ITEM = "invalid-item"


class ContentError(Exception):
    """A single content failure, tagged with the scene it came from."""

    def __init__(
        self,
        kind: ContentErrorKind,
        message: str,
        scene_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.kind = kind
        self.message = message
        self.scene_id = scene_id
        self.details = details or {}
        prefix = f"[{kind.value}]"
        if scene_id:
            prefix += f" {scene_id}:"
        super().__init__(f"{prefix} {message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "scene_id": self.scene_id,
            "message": self.message,
            "details": self.details,
        }


class ContentValidationError(Exception):
    """Raised when a validation pass finds one or more errors."""

    def __init__(self, errors: list[ContentError]):
        self.errors = errors
        super().__init__(f"Content validation failed with {len(errors)} error(s)")


@dataclass
class ValidationResult:
    """Result of validation, with errors and warnings."""
    valid: bool
    errors: list[ContentError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def merge(self, other: ValidationResult) -> ValidationResult:
        errors = self.errors + other.errors
        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=self.warnings + other.warnings,
        )

    def raise_if_invalid(self):
        if self.errors:
            raise ContentValidationError(self.errors)


def validate_manifest(manifest: Manifest) -> ValidationResult:
    """Validate manifest-level references."""
    errors: list[ContentError] = []
    warnings: list[str] = []

    if not manifest.title:
        errors.append(_schema("Missing gamebook.title"))
    if not manifest.content_version:
        errors.append(_schema("Missing gamebook.adaptationVersion"))
    if not manifest.starting_scene:
        errors.append(_schema("Missing startingScene"))
    elif not manifest.has_scene(manifest.starting_scene):
        errors.append(ContentError(
            ContentErrorKind.MISSING_SCENE,
            f'Starting scene "{manifest.starting_scene}" not found in sceneIndex',
            scene_id=manifest.starting_scene,
        ))

    for ending in manifest.endings:
        if not manifest.has_scene(ending.scene_id):
            errors.append(ContentError(
                ContentErrorKind.MISSING_SCENE,
                f'Ending scene "{ending.scene_id}" not found in sceneIndex',
                scene_id=ending.scene_id,
                details={"ending_id": ending.id},
            ))

    for act in manifest.acts:
        for hub in act.hubs:
            if hub.convergence_scene and not manifest.has_scene(hub.convergence_scene):
                errors.append(ContentError(
                    ContentErrorKind.MISSING_SCENE,
                    f'Convergence scene "{hub.convergence_scene}" for hub "{hub.title}" not found',
                    scene_id=hub.convergence_scene,
                    details={"act": act.id, "hub": hub.id},
                ))

    if not manifest.endings and not any(e.ending for e in manifest.scene_index.values()):
        warnings.append("Manifest declares no endings")

    return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)


def validate_scene(scene: SceneData, manifest: Manifest) -> ValidationResult:
    """
    Validate a normalized scene against the manifest.

    Covers required fields, link targets and per-variant field presence.
    """
    errors: list[ContentError] = []
    warnings: list[str] = []

    if not scene.id:
        errors.append(_schema("Missing scene.id"))
    if not scene.title:
        errors.append(_schema("Missing scene.title", scene.id))
    if not scene.text:
        errors.append(_schema("Missing scene.text", scene.id))

    if not scene.choices and not scene.ending and not manifest.is_ending(scene.id):
        warnings.append(f"{scene.id}: Scene has no choices (dead end or ending)")

    for index, choice in enumerate(scene.choices):
        prefix = f"Choice {index}"
        if not choice.label:
            errors.append(_schema(f"{prefix}: Missing label", scene.id))
        for target in choice.targets():
            if not target:
                errors.append(_schema(f"{prefix}: Missing target scene", scene.id))
            elif not manifest.has_scene(target):
                errors.append(ContentError(
                    ContentErrorKind.BROKEN_LINK,
                    f'{prefix}: Target scene "{target}" not found in manifest',
                    scene_id=scene.id,
                    details={"choice_index": index, "target": target},
                ))
        errors.extend(_check_conditions(choice.conditions, scene.id, warnings))

    for target in goto_targets(scene.effects):
        if not manifest.has_scene(target):
            errors.append(ContentError(
                ContentErrorKind.BROKEN_LINK,
                f'Goto target "{target}" not found in manifest',
                scene_id=scene.id,
                details={"target": target},
            ))

    errors.extend(_check_effects(scene.all_effects(), scene.id, warnings))

    return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)


def _check_conditions(conditions, scene_id: str, warnings: list[str]) -> list[ContentError]:
    """Field presence for every condition, nested ones included."""
    errors = []
    for condition in iter_conditions(conditions):
        if isinstance(condition, UnknownCondition):
            warnings.append(
                f"{scene_id}: Unknown condition type '{condition.type_name}' (always false)"
            )
        elif isinstance(condition, StatCondition) and not condition.stat:
            errors.append(ContentError(
                ContentErrorKind.INVALID_STAT, "Stat condition missing stat field", scene_id,
            ))
        elif isinstance(condition, FlagCondition) and not condition.flag:
            errors.append(_schema("Flag condition missing flag field", scene_id))
        elif isinstance(condition, ItemCondition) and not condition.item:
            errors.append(ContentError(
                ContentErrorKind.INVALID_ITEM, "Item condition missing item field", scene_id,
            ))
        elif isinstance(condition, FactionCondition) and not condition.faction:
            errors.append(_schema("Faction condition missing faction field", scene_id))
        elif isinstance(condition, (AndCondition, OrCondition)) and not condition.conditions:
            warnings.append(
                f"{scene_id}: {condition.kind.value.upper()} condition has no nested conditions"
            )
        elif isinstance(condition, NotCondition) and len(condition.conditions) != 1:
            errors.append(_schema(
                "NOT condition must wrap exactly one nested condition", scene_id,
            ))
    return errors


def _check_effects(effects, scene_id: str, warnings: list[str]) -> list[ContentError]:
    errors = []
    for effect in effects:
        if isinstance(effect, UnknownEffect):
            warnings.append(f"{scene_id}: Unknown effect type '{effect.type_name}' (ignored)")
        elif isinstance(effect, (SetStat, ModifyStat)) and not effect.stat:
            errors.append(ContentError(
                ContentErrorKind.INVALID_STAT, f"{effect.kind.value} missing stat field", scene_id,
            ))
        elif isinstance(effect, (SetFlag, ClearFlag)) and not effect.flag:
            errors.append(_schema(f"{effect.kind.value} missing flag field", scene_id))
        elif isinstance(effect, (AddItem, RemoveItem)) and not effect.item:
            errors.append(ContentError(
                ContentErrorKind.INVALID_ITEM, f"{effect.kind.value} missing item field", scene_id,
            ))
        elif isinstance(effect, ModifyFaction) and not effect.faction:
            errors.append(_schema("modify-faction missing faction field", scene_id))
    return errors


def _schema(message: str, scene_id: str | None = None) -> ContentError:
    return ContentError(ContentErrorKind.SCHEMA_ERROR, message, scene_id=scene_id)
