"""
Playthrough - Scripted headless runs with softlock detection.
"""

from .script import (
    PlaythroughScript,
    PlaythroughResult,
    PlaythroughSummary,
    PlaythroughStatus,
    SoftlockReason,
    SoftlockReport,
    StepFailure,
    CoverageReport,
)
from .runner import HeadlessRunner, load_script, scene_coverage

__all__ = [
    "PlaythroughScript",
    "PlaythroughResult",
    "PlaythroughSummary",
    "PlaythroughStatus",
    "SoftlockReason",
    "SoftlockReport",
    "StepFailure",
    "CoverageReport",
    "HeadlessRunner",
    "load_script",
    "scene_coverage",
]
