"""Manifest parser and primary/private combination.

A manifest line names one dependency::

    github "owner/name" "1.2.0"
    git "https://example.com/repo.git" "main"

The version is optional in ``Shipfile`` and ``Shipfile.private`` and required in
``Shipfile.resolved``, where it pins the revision to check out.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence
from pathlib import Path

from shipyard.errors import (
    DuplicateDependenciesError,
    ManifestMissingError,
    ManifestParseError,
    ValidationError,
)
from shipyard.models import (
    RESOLVED_MANIFEST_FILENAME,
    Dependency,
    DuplicateDependency,
    ManifestSource,
    ProjectIdentity,
)


def parse_manifest(raw: str, *, source_name: str = "<manifest>") -> list[Dependency]:
    dependencies: list[Dependency] = []
    for line_number, line in enumerate(raw.splitlines(), start=1):
        dependency = _parse_line(line, source_name=source_name, line_number=line_number)
        if dependency is not None:
            dependencies.append(dependency)
    return dependencies


def read_manifest(path: str | Path) -> list[Dependency] | None:
    """Read a manifest, returning ``None`` when the file does not exist."""
    manifest_path = Path(path)
    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    return parse_manifest(raw, source_name=manifest_path.name)


def merge_manifests(
    primary: Sequence[Dependency] | None,
    private: Sequence[Dependency] | None,
    *,
    context: Mapping[str, str] | None = None,
) -> frozenset[Dependency]:
    """Combine primary and private declarations into one dependency set.

    Both sources are scanned completely before failing so that every repeated
    project is reported at once, sorted by canonical identity. Repeats inside a
    single source count as duplicates too. *context* is attached to the
    error raised when neither source exists.
    """
    if primary is None and private is None:
        raise ManifestMissingError(
            "No manifest found.",
            hint=(
                f"Create a {ManifestSource.PRIMARY.filename} or "
                f"{ManifestSource.PRIVATE.filename}."
            ),
            context=context,
        )

    locations: dict[ProjectIdentity, list[str]] = {}
    merged: dict[ProjectIdentity, Dependency] = {}
    for source, dependencies in (
        (ManifestSource.PRIMARY, primary),
        (ManifestSource.PRIVATE, private),
    ):
        for dependency in dependencies or ():
            locations.setdefault(dependency.project, []).append(source.filename)
            merged.setdefault(dependency.project, dependency)

    duplicates = [
        DuplicateDependency(project=project, locations=tuple(found))
        for project, found in locations.items()
        if len(found) > 1
    ]
    if duplicates:
        duplicates.sort(key=lambda item: item.project.canonical)
        raise DuplicateDependenciesError(duplicates)
    return frozenset(merged.values())


def load_combined_manifest(root: str | Path) -> frozenset[Dependency]:
    root_path = Path(root)
    primary_path = root_path / ManifestSource.PRIMARY.filename
    private_path = root_path / ManifestSource.PRIVATE.filename
    return merge_manifests(
        read_manifest(primary_path),
        read_manifest(private_path),
        context={"primary": str(primary_path), "private": str(private_path)},
    )


def read_resolved_manifest(root: str | Path) -> list[Dependency]:
    resolved_path = Path(root) / RESOLVED_MANIFEST_FILENAME
    dependencies = read_manifest(resolved_path)
    if dependencies is None:
        raise ManifestMissingError(
            "Resolved manifest does not exist.",
            hint="Resolve dependency versions before checking out or building.",
            context={"path": str(resolved_path)},
        )
    seen: set[ProjectIdentity] = set()
    for dependency in dependencies:
        if not dependency.version:
            raise ValidationError(
                "Resolved manifest entries must pin a revision.",
                context={"path": str(resolved_path), "project": dependency.project.canonical},
            )
        if dependency.project in seen:
            raise ValidationError(
                "Resolved manifest lists a project twice.",
                context={"path": str(resolved_path), "project": dependency.project.canonical},
            )
        seen.add(dependency.project)
    return dependencies


def _parse_line(line: str, *, source_name: str, line_number: int) -> Dependency | None:
    try:
        tokens = shlex.split(line, comments=True)
    except ValueError as exc:
        raise ManifestParseError(
            "Malformed manifest line.",
            hint=str(exc),
            context={"source": source_name, "line": str(line_number)},
        ) from exc
    if not tokens:
        return None
    if len(tokens) not in (2, 3):
        raise ManifestParseError(
            "Manifest line must be `<kind> \"<location>\" [\"<version>\"]`.",
            context={"source": source_name, "line": str(line_number)},
        )
    kind, location = tokens[0], tokens[1]
    version = tokens[2] if len(tokens) == 3 else ""
    try:
        if kind == "github":
            project = ProjectIdentity.github(location)
        elif kind == "git":
            project = ProjectIdentity.git(location)
        else:
            raise ManifestParseError(
                f"Unknown dependency kind `{kind}`.",
                hint="Use `github` or `git`.",
                context={"source": source_name, "line": str(line_number)},
            )
    except ValidationError as exc:
        raise ManifestParseError(
            "Invalid dependency location.",
            hint=str(exc),
            context={"source": source_name, "line": str(line_number)},
        ) from exc
    return Dependency(project=project, version=version)
