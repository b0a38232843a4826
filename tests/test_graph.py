import pytest

from shipyard.errors import ValidationError
from shipyard.graph import DependencyGraph
from shipyard.models import Dependency, ProjectIdentity

PRELUDE = ProjectIdentity.github("owner/Prelude")
EITHER = ProjectIdentity.github("owner/Either")
MADNESS = ProjectIdentity.github("owner/Madness")
RESULT = ProjectIdentity.github("owner/Result")


def _graph(declared: dict[ProjectIdentity, list[ProjectIdentity]]) -> DependencyGraph:
    dependencies = [Dependency(project, "1.0") for project in (MADNESS, RESULT, EITHER, PRELUDE)]
    return DependencyGraph.from_declarations(dependencies, declared)


def test_build_order_puts_leaves_first() -> None:
    graph = _graph({MADNESS: [EITHER], EITHER: [PRELUDE]})

    order = [dependency.name for dependency in graph.build_order()]

    assert order.index("Prelude") < order.index("Either") < order.index("Madness")


def test_build_order_breaks_ties_by_canonical_identity() -> None:
    graph = _graph({})

    assert [dependency.name for dependency in graph.build_order()] == [
        "Either",
        "Madness",
        "Prelude",
        "Result",
    ]


def test_unknown_projects_and_self_edges_are_dropped() -> None:
    stranger = ProjectIdentity.github("owner/Stranger")
    graph = _graph({EITHER: [PRELUDE, stranger, EITHER]})

    assert graph.dependencies_of(EITHER) == frozenset({PRELUDE})
    assert graph.dependencies_of(stranger) == frozenset()


def test_dependencies_of_lists_direct_dependencies_only() -> None:
    graph = _graph({MADNESS: [EITHER], EITHER: [PRELUDE]})

    assert graph.dependencies_of(MADNESS) == frozenset({EITHER})
    assert graph.dependencies_of(ProjectIdentity.github("owner/Elsewhere")) == frozenset()


def test_cycles_are_rejected_with_member_list() -> None:
    graph = _graph({EITHER: [PRELUDE], PRELUDE: [EITHER]})

    with pytest.raises(ValidationError) as excinfo:
        graph.build_order()

    assert excinfo.value.context["projects"] == "github:owner/either, github:owner/prelude"
