"""Dependency graph and deterministic build ordering."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from shipyard.errors import ValidationError
from shipyard.models import Dependency, ProjectIdentity


@dataclass(frozen=True, slots=True)
class DependencyGraph:
    """Resolved dependencies and, per project, the projects it builds against."""

    dependencies: tuple[Dependency, ...]
    edges: Mapping[ProjectIdentity, frozenset[ProjectIdentity]] = field(default_factory=dict)

    @classmethod
    def from_declarations(
        cls,
        dependencies: Iterable[Dependency],
        declared: Mapping[ProjectIdentity, Iterable[ProjectIdentity]],
    ) -> DependencyGraph:
        """Keep only edges that point at projects present in *dependencies*."""
        resolved = tuple(dependencies)
        known = {dependency.project for dependency in resolved}
        edges = {
            dependency.project: frozenset(
                project
                for project in declared.get(dependency.project, ())
                if project in known and project != dependency.project
            )
            for dependency in resolved
        }
        return cls(dependencies=resolved, edges=edges)

    def dependencies_of(self, project: ProjectIdentity) -> frozenset[ProjectIdentity]:
        return self.edges.get(project, frozenset())

    def build_order(self) -> list[Dependency]:
        """Leaves first; ties broken by canonical identity."""
        by_project = {dependency.project: dependency for dependency in self.dependencies}
        remaining = {project: set(self.dependencies_of(project)) for project in by_project}
        order: list[Dependency] = []
        while remaining:
            ready = sorted(
                (project for project, pending in remaining.items() if not pending),
                key=lambda project: project.canonical,
            )
            if not ready:
                cycle = sorted(project.canonical for project in remaining)
                raise ValidationError(
                    "Dependency cycle detected.",
                    hint="Remove one of the mutual declarations between these projects.",
                    context={"projects": ", ".join(cycle)},
                )
            for project in ready:
                order.append(by_project[project])
                del remaining[project]
            for pending in remaining.values():
                pending.difference_update(ready)
        return order
