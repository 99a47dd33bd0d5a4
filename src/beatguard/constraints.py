"""Beat length limits and the valid-ending set.

Two limit sets exist side by side:
- generation: the strict target used when producing or shortening text
- tolerance: the looser ceiling used when auditing or gating existing content

Every check receives its limits explicitly through a ConstraintTable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

BEAT_ROLES: tuple[str, ...] = ("hook", "buildup", "discovery", "twist", "climax", "punchline")

# Characters that legally terminate a beat.
VALID_ENDINGS: frozenset[str] = frozenset(
    {
        ".",
        "!",
        "?",
        ")",
        "'",
        '"',
        ":",
        ";",
        "’",  # right single curly quote
        "”",  # right double curly quote
    }
)

LimitMode = Literal["generation", "tolerance"]


@dataclass(frozen=True)
class BeatLimits:
    """Maximum text length for ordinary beats and for the punchline."""

    beat: int
    punchline: int

    def for_role(self, role: str) -> int:
        """Return the maximum length for a beat role."""
        return self.punchline if role == "punchline" else self.beat


GENERATION_LIMITS = BeatLimits(beat=120, punchline=80)
VALIDATION_TOLERANCE = BeatLimits(beat=130, punchline=90)


@dataclass(frozen=True)
class ConstraintTable:
    """Both limit sets plus the valid-ending set.

    Attributes:
        generation: Strict limits for new or rewritten text.
        tolerance: Looser limits for validating stored text.
        valid_endings: Characters a beat may end with.
    """

    generation: BeatLimits = GENERATION_LIMITS
    tolerance: BeatLimits = VALIDATION_TOLERANCE
    valid_endings: frozenset[str] = field(default=VALID_ENDINGS)

    def limits(self, mode: LimitMode = "tolerance") -> BeatLimits:
        """Select a limit set by name."""
        if mode == "generation":
            return self.generation
        return self.tolerance

    def max_length(self, role: str, mode: LimitMode = "tolerance") -> int:
        """Return the active maximum length for a role."""
        return self.limits(mode).for_role(role)

    def is_valid_ending(self, char: str) -> bool:
        return char in self.valid_endings


DEFAULT_CONSTRAINTS = ConstraintTable()
