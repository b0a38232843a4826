"""Typed interfaces for toolchain builders."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from shipyard.models import Dependency, Platform


@dataclass(frozen=True, slots=True)
class BuildSpec:
    dependency: Dependency
    source: Path
    platform: Platform
    configuration: str
    output_dir: Path
    env: Mapping[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.dependency.name


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    builder: str
    platform: Platform
    output_path: Path
    metadata_path: Path | None = None


class Builder(Protocol):
    def platforms_for(self, dependency: Dependency, source: Path) -> frozenset[Platform]:
        """Return the platforms *dependency* can be built for."""

    def artifact_path(self, spec: BuildSpec) -> Path:
        """Return where the build output for *spec* lives on disk."""

    def build(self, spec: BuildSpec) -> BuildArtifact:
        """Compile source and return the output artifact."""
