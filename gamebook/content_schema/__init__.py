"""
Content Schema - Scene DSL, normalization, loading and graph validation.
"""

from .scene_dsl import (
    FACTION_IDS,
    Condition,
    Effect,
    Choice,
    Branch,
    SimpleRoute,
    AttemptableRoute,
    SceneData,
    Manifest,
    SceneIndexEntry,
)
from .normalizer import ContentNormalizer, normalize_scene, normalize_manifest
from .validation import (
    ContentError,
    ContentErrorKind,
    ContentValidationError,
    ValidationResult,
    validate_manifest,
    validate_scene,
)
from .loader import SceneLoader, ContentSource, FileContentSource, MemoryContentSource
from .reachability import (
    ReachabilityValidator,
    ReachabilityResult,
    UnreachableReason,
    UnreachableScene,
    analyze_reachability,
)

__all__ = [
    "FACTION_IDS",
    "Condition",
    "Effect",
    "Choice",
    "Branch",
    "SimpleRoute",
    "AttemptableRoute",
    "SceneData",
    "Manifest",
    "SceneIndexEntry",
    "ContentNormalizer",
    "normalize_scene",
    "normalize_manifest",
    "ContentError",
    "ContentErrorKind",
    "ContentValidationError",
    "ValidationResult",
    "validate_manifest",
    "validate_scene",
    "SceneLoader",
    "ContentSource",
    "FileContentSource",
    "MemoryContentSource",
    "ReachabilityValidator",
    "ReachabilityResult",
    "UnreachableReason",
    "UnreachableScene",
    "analyze_reachability",
]
