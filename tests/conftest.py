"""Shared test fixtures."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

import pytest

from shipyard.builders import InProcessBuilder
from shipyard.fetch import FetchThrottle


@dataclass(slots=True)
class UpstreamRepo:
    """A throwaway git repository standing in for a remote dependency."""

    path: Path

    def commit(self, files: Mapping[str, str] | None = None, *, message: str = "update") -> str:
        for name, content in (files or {}).items():
            target = self.path / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        run_git(["add", "--all"], cwd=self.path)
        run_git(["commit", "--allow-empty", "--quiet", "-m", message], cwd=self.path)
        return self.head()

    def head(self) -> str:
        return run_git(["rev-parse", "HEAD"], cwd=self.path)

    def short_head(self) -> str:
        return run_git(["rev-parse", "--short", "HEAD"], cwd=self.path)


def run_git(argv: list[str], *, cwd: Path) -> str:
    completed = subprocess.run(
        [
            "git",
            "-c",
            "user.email=shipyard@example.com",
            "-c",
            "user.name=Shipyard Test",
            "-c",
            "commit.gpgsign=false",
            *argv,
        ],
        cwd=cwd,
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        raise RuntimeError(f"git {' '.join(argv)} failed: {completed.stderr.strip()}")
    return completed.stdout.strip()


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[[str], UpstreamRepo]:
    """Create named upstream repositories under ``tmp_path/upstream``."""

    def factory(name: str) -> UpstreamRepo:
        path = tmp_path / "upstream" / name
        path.mkdir(parents=True)
        run_git(["init", "--quiet"], cwd=path)
        run_git(["symbolic-ref", "HEAD", "refs/heads/main"], cwd=path)
        return UpstreamRepo(path=path)

    return factory


@pytest.fixture
def throttle() -> FetchThrottle:
    return FetchThrottle()


@pytest.fixture
def inprocess_builder() -> InProcessBuilder:
    return InProcessBuilder()
