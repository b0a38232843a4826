"""Toolchain invocation via subprocess.

Runs a configured command template once per dependency and platform, then
checks that the declared artifact was produced under the platform's output
directory.
"""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from shipyard.builders.base import BuildArtifact, BuildSpec
from shipyard.errors import ToolchainError, ValidationError
from shipyard.models import Dependency, Platform


@dataclass(slots=True)
class CommandBuilder:
    """Run ``command`` with ``{name}``, ``{source}``, ``{platform}``,
    ``{configuration}`` and ``{output_dir}`` substituted."""

    command: tuple[str, ...]
    platforms: frozenset[Platform] = frozenset({Platform.MACOS})
    artifact: str = "{name}.framework"
    env: Mapping[str, str] = field(default_factory=dict)
    name: str = "command"

    def platforms_for(self, dependency: Dependency, source: Path) -> frozenset[Platform]:
        return self.platforms

    def artifact_path(self, spec: BuildSpec) -> Path:
        return spec.output_dir / self._render(self.artifact, spec)

    def build(self, spec: BuildSpec) -> BuildArtifact:
        if not self.command:
            raise ValidationError("CommandBuilder requires a non-empty command.")
        spec.output_dir.mkdir(parents=True, exist_ok=True)
        argv = [self._render(part, spec) for part in self.command]

        env = dict(os.environ)
        env.update(self.env)
        env.update(spec.env)
        env.update(
            {
                "SHIPYARD_NAME": spec.name,
                "SHIPYARD_PLATFORM": spec.platform.value,
                "SHIPYARD_CONFIGURATION": spec.configuration,
                "SHIPYARD_OUTPUT_DIR": str(spec.output_dir),
                "SHIPYARD_SOURCE": str(spec.source),
            }
        )

        try:
            result = subprocess.run(
                argv,
                cwd=str(spec.source),
                env=env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise ToolchainError(
                f"{self.name} build could not start.",
                hint="Check that the build tool is installed and on PATH.",
                context={
                    "dependency": spec.name,
                    "platform": spec.platform.value,
                    "command": " ".join(argv),
                    "error": str(exc),
                },
            ) from exc
        if result.returncode != 0:
            raise ToolchainError(
                f"{self.name} build failed.",
                hint=f"Check {self.name} output and build configuration.",
                context={
                    "dependency": spec.name,
                    "platform": spec.platform.value,
                    "command": " ".join(argv),
                    "returncode": str(result.returncode),
                    "stderr": result.stderr[:2000] if result.stderr else "",
                },
            )

        output_path = self.artifact_path(spec)
        if not output_path.exists():
            raise ToolchainError(
                f"{self.name} build did not produce the expected artifact.",
                hint="Make the command write its output under SHIPYARD_OUTPUT_DIR.",
                context={
                    "dependency": spec.name,
                    "platform": spec.platform.value,
                    "expected": str(output_path),
                },
            )

        metadata_path = spec.output_dir / f".{output_path.name}.json"
        metadata = {
            "builder": self.name,
            "dependency": spec.dependency.project.canonical,
            "platform": spec.platform.value,
            "configuration": spec.configuration,
            "command": argv,
            "output_path": str(output_path),
        }
        metadata_path.write_text(
            json.dumps(metadata, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return BuildArtifact(
            builder=self.name,
            platform=spec.platform,
            output_path=output_path,
            metadata_path=metadata_path,
        )

    @staticmethod
    def _render(template: str, spec: BuildSpec) -> str:
        return template.format(
            name=spec.name,
            source=spec.source,
            platform=spec.platform.value,
            configuration=spec.configuration,
            output_dir=spec.output_dir,
        )
