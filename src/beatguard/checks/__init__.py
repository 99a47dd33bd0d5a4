"""Defect detectors for beats and stories."""

from beatguard.checks.beat import (
    TEXT_DETECTORS,
    BeatContext,
    Detector,
    audit_beat,
    check_text,
    run_detectors,
)
from beatguard.checks.story import audit_story, find_duplicate_beats, find_near_duplicate_beats

__all__ = [
    "TEXT_DETECTORS",
    "BeatContext",
    "Detector",
    "audit_beat",
    "audit_story",
    "check_text",
    "find_duplicate_beats",
    "find_near_duplicate_beats",
    "run_detectors",
]
