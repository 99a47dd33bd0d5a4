"""Project configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from beatguard.constraints import (
    GENERATION_LIMITS,
    VALIDATION_TOLERANCE,
    BeatLimits,
    ConstraintTable,
)

CONFIG_FILENAME = "beatguard.yaml"

# Default configuration values
DEFAULT_CONTENT_DIRS = ["content/course-plans", "content/topics"]
DEFAULT_REPORTS_DIR = "docs/content-audits"
DEFAULT_REWRITES = "content/rewrites.yaml"


def _limits_from_dict(data: dict[str, Any], default: BeatLimits) -> BeatLimits:
    return BeatLimits(
        beat=int(data.get("beat", default.beat)),
        punchline=int(data.get("punchline", default.punchline)),
    )


@dataclass
class LimitsConfig:
    """Beat length limits, generation and tolerance."""

    generation: BeatLimits = GENERATION_LIMITS
    tolerance: BeatLimits = VALIDATION_TOLERANCE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LimitsConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary with optional ``generation`` and ``tolerance``
                mappings, each holding ``beat`` and ``punchline`` integers.

        Returns:
            LimitsConfig instance.
        """
        return cls(
            generation=_limits_from_dict(dict(data.get("generation") or {}), GENERATION_LIMITS),
            tolerance=_limits_from_dict(dict(data.get("tolerance") or {}), VALIDATION_TOLERANCE),
        )


@dataclass
class ProjectConfig:
    """Configuration for a content project.

    Path fields are relative to the project root unless absolute.

    Resolution order for reports_dir and rewrites:
    1. Environment variable (BEATGUARD_REPORTS_DIR, BEATGUARD_REWRITES)
    2. Project config
    3. Defaults
    """

    name: str = "unnamed"
    content_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_CONTENT_DIRS))
    reports_dir: str = DEFAULT_REPORTS_DIR
    rewrites: str = DEFAULT_REWRITES
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    def get_reports_dir(self, root: Path) -> Path:
        return root / (os.getenv("BEATGUARD_REPORTS_DIR") or self.reports_dir)

    def get_rewrites_path(self, root: Path) -> Path:
        return root / (os.getenv("BEATGUARD_REWRITES") or self.rewrites)

    def get_content_paths(self, root: Path) -> list[Path]:
        return [root / d for d in self.content_dirs]

    def constraints(self) -> ConstraintTable:
        """Build the constraint table these limits describe."""
        return ConstraintTable(generation=self.limits.generation, tolerance=self.limits.tolerance)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary containing config fields.

        Returns:
            ProjectConfig instance.
        """
        content_dirs = data.get("content_dirs", list(DEFAULT_CONTENT_DIRS))
        if isinstance(content_dirs, str):
            content_dirs = [content_dirs]

        return cls(
            name=data.get("name", "unnamed"),
            content_dirs=[str(d) for d in content_dirs],
            reports_dir=str(data.get("reports_dir", DEFAULT_REPORTS_DIR)),
            rewrites=str(data.get("rewrites", DEFAULT_REWRITES)),
            limits=LimitsConfig.from_dict(dict(data.get("limits") or {})),
        )


class ProjectConfigError(Exception):
    """Raised when project configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load project config at {path}: {reason}")


def load_project_config(project_path: Path) -> ProjectConfig:
    """Load project configuration from beatguard.yaml.

    Args:
        project_path: Path to the project root directory.

    Returns:
        ProjectConfig instance.

    Raises:
        ProjectConfigError: If config cannot be loaded.
    """
    config_path = project_path / CONFIG_FILENAME

    if not config_path.exists():
        raise ProjectConfigError(config_path, "File not found")

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise ProjectConfigError(config_path, "Empty file")
        if not isinstance(data, dict):
            raise ProjectConfigError(config_path, "Top-level value must be a mapping")

        return ProjectConfig.from_dict(dict(data))
    except Exception as e:
        if isinstance(e, ProjectConfigError):
            raise
        raise ProjectConfigError(config_path, str(e)) from e


def resolve_project_config(project_path: Path) -> ProjectConfig:
    """Load beatguard.yaml if the project has one, otherwise return defaults.

    Raises:
        ProjectConfigError: If the file exists but can't be loaded.
    """
    if not (project_path / CONFIG_FILENAME).exists():
        return ProjectConfig()
    return load_project_config(project_path)
