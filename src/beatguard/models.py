"""Issue, locator and remediation record types.

Plain dataclasses for values the engine produces, pydantic models for
records that arrive from outside (extraction output, curated rewrites).
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from beatguard.constraints import BEAT_ROLES
from beatguard.severity import Severity, classify


@dataclass(frozen=True)
class Locator:
    """Where an issue was found.

    Attributes:
        file: Document path as reported (relative to the project root when possible).
        topic: Topic title, or None for document-level issues.
        beat: Beat role, or None for story- and document-level issues.
        other_beat: Second beat role for cross-beat pair checks.
    """

    file: str
    topic: str | None = None
    beat: str | None = None
    other_beat: str | None = None

    def __str__(self) -> str:
        parts = [self.file]
        if self.topic is not None:
            parts.append(self.topic)
        if self.beat is not None:
            beat = self.beat if self.other_beat is None else f"{self.beat}+{self.other_beat}"
            parts.append(beat)
        return " » ".join(parts)


@dataclass(frozen=True)
class Issue:
    """A single detected defect."""

    check: str
    message: str
    locator: Locator

    @property
    def severity(self) -> Severity:
        return classify(self.check)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "check": self.check,
            "severity": self.severity,
            "message": self.message,
            "file": self.locator.file,
            "topic": self.locator.topic,
            "beat": self.locator.beat,
            "other_beat": self.locator.other_beat,
        }


@dataclass(frozen=True)
class RemediationRecord:
    """A verified replacement waiting to be applied exactly once."""

    locator: Locator
    original_text: str
    proposed_text: str


# ---------------------------------------------------------------------------
# External records
# ---------------------------------------------------------------------------


class DefectRecord(BaseModel):
    """A broken beat as emitted by the extraction step."""

    model_config = ConfigDict(populate_by_name=True)

    file: str = Field(min_length=1)
    topic_title: str = Field(alias="topicTitle")
    beat: str
    text: str
    issues: list[str] = Field(default_factory=list)
    length: int | None = Field(default=None, alias="len")
    max_length: int | None = Field(default=None, alias="max")

    @field_validator("beat")
    @classmethod
    def _known_role(cls, value: str) -> str:
        if value not in BEAT_ROLES:
            raise ValueError(f"unknown beat role '{value}'")
        return value

    @field_validator("issues", mode="before")
    @classmethod
    def _split_issue_codes(cls, value: object) -> object:
        # Older extraction output joined the codes with commas.
        if isinstance(value, str):
            return [code.strip() for code in value.split(",") if code.strip()]
        return value

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.file, self.topic_title, self.beat)


class RewriteEntry(BaseModel):
    """One curated manual rewrite."""

    model_config = ConfigDict(populate_by_name=True)

    file: str = Field(min_length=1)
    topic: str = Field(alias="topicTitle")
    beat: str
    text: str = Field(min_length=1)

    @field_validator("beat")
    @classmethod
    def _known_role(cls, value: str) -> str:
        if value not in BEAT_ROLES:
            raise ValueError(f"unknown beat role '{value}'")
        return value

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.file, self.topic, self.beat)
