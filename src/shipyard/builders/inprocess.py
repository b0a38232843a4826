"""In-process builder for testing and development.

Produces deterministic framework artifacts without invoking any toolchain:
``<output_dir>/<name>.framework/<name>``.
"""

from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass, field
from pathlib import Path

from shipyard.builders.base import BuildArtifact, BuildSpec
from shipyard.errors import ToolchainError
from shipyard.models import Dependency, Platform


@dataclass(slots=True)
class InProcessBuilder:
    """Builder that writes placeholder binaries in-process."""

    platforms: frozenset[Platform] = frozenset({Platform.MACOS, Platform.IOS})
    failing: frozenset[str] = frozenset()
    name: str = "inprocess"
    built: list[tuple[str, Platform]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def platforms_for(self, dependency: Dependency, source: Path) -> frozenset[Platform]:
        return self.platforms

    def artifact_path(self, spec: BuildSpec) -> Path:
        return spec.output_dir / f"{spec.name}.framework" / spec.name

    def build(self, spec: BuildSpec) -> BuildArtifact:
        if spec.name in self.failing:
            raise ToolchainError(
                f"{self.name} build failed.",
                context={"dependency": spec.name, "platform": spec.platform.value},
            )
        output_path = self.artifact_path(spec)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        seed = f"{spec.dependency.project.canonical}:{spec.platform.value}:{spec.configuration}"
        output_path.write_text(
            f"shipyard-artifact: name={spec.name} platform={spec.platform.value}\n"
            f"configuration={spec.configuration}\n"
            f"digest={hashlib.sha256(seed.encode()).hexdigest()}\n",
            encoding="utf-8",
        )
        with self._lock:
            self.built.append((spec.name, spec.platform))
        return BuildArtifact(builder=self.name, platform=spec.platform, output_path=output_path)
