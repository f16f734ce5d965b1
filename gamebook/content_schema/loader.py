"""
Scene Loader - Reads, normalizes, validates and caches content.

Content lives behind a ContentSource:
- FileContentSource reads <root>/manifest.json and <root>/scenes/<id>.json
- MemoryContentSource serves already-parsed documents (tests, tooling)

Failure policy is fail-fast: a missing file, malformed JSON, structural
violation or broken link raises ContentError the moment it is seen.
"""

from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Protocol

from .normalizer import ContentNormalizer
from .scene_dsl import Manifest, SceneData, SceneIndexEntry
from .validation import (
    ContentError,
    ContentErrorKind,
    ValidationResult,
    validate_manifest,
    validate_scene,
)

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    """Where raw manifest and scene documents come from."""

    def read_manifest(self) -> Any: ...

    def read_scene(self, scene_id: str) -> Any: ...


class FileContentSource:
    """Content directory on disk."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def read_manifest(self) -> Any:
        return self._read_json(self.root / "manifest.json", None)

    def read_scene(self, scene_id: str) -> Any:
        return self._read_json(self.root / "scenes" / f"{scene_id}.json", scene_id)

    def _read_json(self, path: Path, scene_id: str | None) -> Any:
        if not path.exists():
            raise ContentError(
                ContentErrorKind.MISSING_SCENE,
                f"File not found: {path}",
                scene_id=scene_id,
                details={"path": str(path)},
            )
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ContentError(
                ContentErrorKind.MALFORMED_JSON,
                f"Invalid JSON in {path.name}: {e.msg} (line {e.lineno})",
                scene_id=scene_id,
                details={"path": str(path), "line": e.lineno},
            ) from e


class MemoryContentSource:
    """In-memory content, keyed by scene id."""

    def __init__(self, manifest: dict[str, Any], scenes: dict[str, Any]):
        self.manifest = manifest
        self.scenes = scenes

    def read_manifest(self) -> Any:
        return self.manifest

    def read_scene(self, scene_id: str) -> Any:
        if scene_id not in self.scenes:
            raise ContentError(
                ContentErrorKind.MISSING_SCENE,
                f"Scene not found: {scene_id}",
                scene_id=scene_id,
            )
        raw = self.scenes[scene_id]
        if isinstance(raw, str):
            try:
                return json.loads(raw)
            except json.JSONDecodeError as e:
                raise ContentError(
                    ContentErrorKind.MALFORMED_JSON,
                    f"Invalid JSON for scene {scene_id}: {e.msg}",
                    scene_id=scene_id,
                ) from e
        return raw


class SceneLoader:
    """
    Loads scenes on demand and keeps a per-loader cache.

    Usage:
        loader = SceneLoader(FileContentSource("content"))
        manifest = loader.initialize()
        scene = loader.load_scene(manifest.starting_scene)
    """

    def __init__(self, source: ContentSource, cache_scenes: bool = True):
        self.source = source
        self.cache_scenes = cache_scenes
        self._manifest: Manifest | None = None
        self._cache: dict[str, SceneData] = {}
        self.warnings: list[str] = []
        self._warned_scenes: set[str] = set()

    @classmethod
    def from_path(cls, content_path: str | Path, cache_scenes: bool = True) -> SceneLoader:
        return cls(FileContentSource(content_path), cache_scenes=cache_scenes)

    def initialize(self) -> Manifest:
        """Load and validate the manifest."""
        normalizer = ContentNormalizer()
        manifest = normalizer.manifest(self.source.read_manifest())
        result = validate_manifest(manifest)
        if result.errors:
            raise result.errors[0]
        self.warnings.extend(normalizer.warnings + result.warnings)
        self._manifest = manifest
        logger.debug(
            "Loaded manifest '%s' v%s (%d scenes)",
            manifest.title, manifest.content_version, len(manifest.scene_index),
        )
        return manifest

    @property
    def manifest(self) -> Manifest:
        if self._manifest is None:
            raise ContentError(
                ContentErrorKind.SCHEMA_ERROR,
                "Manifest not loaded. Call initialize() first.",
            )
        return self._manifest

    @property
    def starting_scene(self) -> str:
        return self.manifest.starting_scene

    @property
    def content_version(self) -> str:
        return self.manifest.content_version

    def has_scene(self, scene_id: str) -> bool:
        return self.manifest.has_scene(scene_id)

    def all_scene_ids(self) -> list[str]:
        return list(self.manifest.scene_index.keys())

    def scene_metadata(self, scene_id: str) -> SceneIndexEntry | None:
        return self.manifest.scene_index.get(scene_id)

    def load_scene(self, scene_id: str) -> SceneData:
        """Load one scene, fail-fast on any content error."""
        if self.cache_scenes and scene_id in self._cache:
            return self._cache[scene_id]

        manifest = self.manifest
        if not manifest.has_scene(scene_id):
            raise ContentError(
                ContentErrorKind.MISSING_SCENE,
                f'Scene "{scene_id}" not found in manifest',
                scene_id=scene_id,
            )

        normalizer = ContentNormalizer()
        scene = normalizer.scene(self.source.read_scene(scene_id), expected_id=scene_id)
        result = validate_scene(scene, manifest)
        if result.errors:
            raise result.errors[0]

        # Reported once per scene, even when uncached loads repeat.
        if scene_id not in self._warned_scenes:
            self._warned_scenes.add(scene_id)
            for warning in normalizer.warnings + result.warnings:
                logger.warning("Content warning: %s", warning)
            self.warnings.extend(normalizer.warnings + result.warnings)

        if self.cache_scenes:
            self._cache[scene_id] = scene
        return scene

    def preload(self, scene_ids: Iterable[str]):
        for scene_id in scene_ids:
            self.load_scene(scene_id)

    def load_all_scenes(self) -> dict[str, SceneData]:
        return {scene_id: self.load_scene(scene_id) for scene_id in self.all_scene_ids()}

    def clear_cache(self):
        self._cache.clear()

    def validate_all(self) -> ValidationResult:
        """
        Full non-raising content report.

        Every indexed scene is loaded independently, so one broken scene does
        not hide errors in the others. Graph checks then run over the scenes
        that loaded.
        """
        from .reachability import ReachabilityValidator

        try:
            manifest = self.manifest if self._manifest else self.initialize()
        except ContentError as e:
            return ValidationResult(valid=False, errors=[e])

        result = validate_manifest(manifest)
        scenes: dict[str, SceneData] = {}
        for scene_id in manifest.scene_index:
            normalizer = ContentNormalizer()
            try:
                scene = normalizer.scene(self.source.read_scene(scene_id), expected_id=scene_id)
            except ContentError as e:
                result = result.merge(ValidationResult(valid=False, errors=[e]))
                continue
            scenes[scene_id] = scene
            result = result.merge(validate_scene(scene, manifest))
            result.warnings.extend(normalizer.warnings)

        report = ReachabilityValidator().analyze(manifest, scenes)
        for unreachable in report.unreachable:
            result.warnings.append(
                f"{unreachable.scene_id}: unreachable ({unreachable.reason.value})"
            )
        for ending in manifest.endings:
            if ending.scene_id in scenes and ending.scene_id not in report.reachable:
                result.warnings.append(f"Ending '{ending.id}' ({ending.scene_id}) is unreachable")
        for scene_id, length in sorted(report.cycles.items()):
            result.warnings.append(f"{scene_id}: part of a cycle of length {length}")

        return result
