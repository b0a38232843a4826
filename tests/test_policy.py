from pathlib import Path

import pytest

from shipyard.builders import InProcessBuilder
from shipyard.errors import PolicyError, ValidationError
from shipyard.policy import Policy, ensure_network_allowed, validate_policy
from shipyard.project import Project


@pytest.mark.parametrize(
    "policy",
    [
        Policy(max_workers=0),
        Policy(fetch_window_seconds=-1),
        Policy(network_mode="sometimes"),  # type: ignore[arg-type]
    ],
)
def test_invalid_policies_are_rejected(policy: Policy) -> None:
    with pytest.raises(ValidationError):
        validate_policy(policy)


def test_offline_policy_blocks_network_operations() -> None:
    with pytest.raises(PolicyError) as excinfo:
        ensure_network_allowed(policy=Policy(network_mode="offline"), operation="fetch")

    assert excinfo.value.context["operation"] == "fetch"
    ensure_network_allowed(policy=Policy(), operation="fetch")


def test_project_applies_policy_settings(tmp_path: Path) -> None:
    mirrors = tmp_path / "shared-mirrors"
    project = Project(
        tmp_path / "app",
        builder=InProcessBuilder(),
        policy=Policy(fetch_window_seconds=5, repositories_dir=mirrors),
    )

    assert project.throttle.window_seconds == 5
    assert project.repositories_dir == mirrors
    assert project.build_dir == tmp_path / "app" / "Shipyard" / "Build"


def test_project_rejects_invalid_policy(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        Project(tmp_path, builder=InProcessBuilder(), policy=Policy(max_workers=0))
