"""Git transport: mirrors, fetches, revision queries, and working-copy checkouts."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol

from shipyard.errors import TransportError


class RepositoryTransport(Protocol):
    def is_repository(self, destination: Path) -> bool:
        """Return whether *destination* holds a local mirror."""

    def clone(self, location: str, destination: Path) -> None:
        """Create a local mirror of *location* at *destination*."""

    def fetch(self, destination: Path) -> None:
        """Update the mirror at *destination* from its remote."""

    def local_commit_exists(self, destination: Path, commitish: str) -> bool:
        """Return whether *commitish* resolves to a commit in the mirror."""

    def is_symbolic_reference(self, destination: Path, commitish: str) -> bool:
        """Return whether *commitish* names a branch or tag that may move."""

    def resolve_revision(self, destination: Path, commitish: str) -> str:
        """Return the full commit id for *commitish*."""

    def checkout(self, mirror: Path, working_dir: Path, commitish: str) -> str:
        """Materialize *commitish* from *mirror* into *working_dir*."""

    def current_revision(self, working_dir: Path) -> str:
        """Return the commit id checked out in *working_dir*."""


class GitTransport:
    """``RepositoryTransport`` backed by the ``git`` executable."""

    def __init__(self, executable: str = "git") -> None:
        self.executable = executable

    def is_repository(self, destination: Path) -> bool:
        if not destination.is_dir():
            return False
        completed = self._run(["rev-parse", "--absolute-git-dir"], cwd=destination, check=False)
        if completed.returncode != 0:
            return False
        git_dir = Path(completed.stdout.strip()).resolve()
        root = destination.resolve()
        return git_dir in (root, root / ".git")

    def clone(self, location: str, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        temp_root = Path(tempfile.mkdtemp(prefix=f".{destination.name}-", dir=destination.parent))
        try:
            self._git(["clone", "--mirror", "--quiet", location, str(temp_root / "mirror")])
            if destination.exists():
                shutil.rmtree(destination)
            shutil.move(str(temp_root / "mirror"), destination)
        finally:
            if temp_root.exists():
                shutil.rmtree(temp_root, ignore_errors=True)

    def fetch(self, destination: Path) -> None:
        self._git(["fetch", "--prune", "--quiet", "origin"], cwd=destination)

    def local_commit_exists(self, destination: Path, commitish: str) -> bool:
        completed = self._run(
            ["rev-parse", "--verify", "--quiet", f"{commitish}^{{commit}}"],
            cwd=destination,
            check=False,
        )
        return completed.returncode == 0

    def is_symbolic_reference(self, destination: Path, commitish: str) -> bool:
        if commitish == "HEAD" or commitish.startswith("refs/"):
            return True
        for namespace in ("refs/heads", "refs/tags"):
            completed = self._run(
                ["show-ref", "--verify", "--quiet", f"{namespace}/{commitish}"],
                cwd=destination,
                check=False,
            )
            if completed.returncode == 0:
                return True
        return False

    def resolve_revision(self, destination: Path, commitish: str) -> str:
        return self._git(["rev-parse", "--verify", f"{commitish}^{{commit}}"], cwd=destination)

    def checkout(self, mirror: Path, working_dir: Path, commitish: str) -> str:
        revision = self.resolve_revision(mirror, commitish)
        if self.is_repository(working_dir) and self.current_revision(working_dir) == revision:
            return revision
        if working_dir.exists():
            shutil.rmtree(working_dir)
        working_dir.parent.mkdir(parents=True, exist_ok=True)
        self._git(["clone", "--quiet", "--no-checkout", str(mirror), str(working_dir)])
        self._git(["checkout", "--quiet", "--force", "--detach", revision], cwd=working_dir)
        return revision

    def current_revision(self, working_dir: Path) -> str:
        return self._git(["rev-parse", "HEAD"], cwd=working_dir)

    def _git(self, argv: list[str], cwd: Path | None = None) -> str:
        return self._run(argv, cwd=cwd, check=True).stdout.strip()

    def _run(
        self,
        argv: list[str],
        *,
        cwd: Path | None = None,
        check: bool,
    ) -> subprocess.CompletedProcess[str]:
        command = [self.executable, *argv]
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                env=env,
                check=False,
                text=True,
                capture_output=True,
            )
        except OSError as exc:
            raise TransportError(
                "Git could not be executed.",
                hint="Install git or configure the transport executable.",
                context={"argv": " ".join(command), "error": str(exc)},
            ) from exc
        if check and completed.returncode != 0:
            raise TransportError(
                "Git command failed.",
                hint="Inspect repository location and revision inputs.",
                context={
                    "argv": " ".join(command),
                    "cwd": str(cwd or ""),
                    "stderr": completed.stderr.strip(),
                },
            )
        return completed
