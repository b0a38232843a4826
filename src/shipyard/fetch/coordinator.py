"""Clone-or-fetch decisions for a single repository mirror.

For a project and an optional target revision, decide whether the local
mirror has to be cloned, fetched, or left alone:

* no mirror yet: clone (the throttle is irrelevant);
* the revision is a concrete commit already present locally: nothing to do;
* no revision requested and the mirror was fetched within the throttle
  window: nothing to do;
* anything else, including branch or tag names that may have moved upstream:
  fetch.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from pathlib import Path

from shipyard.errors import RepositoryOperationError, TransportError
from shipyard.fetch.git import RepositoryTransport
from shipyard.fetch.throttle import FetchThrottle
from shipyard.models import ProjectEvent, ProjectIdentity
from shipyard.observability import StructuredLogger
from shipyard.policy import Policy, ensure_network_allowed


def clone_or_fetch(
    project: ProjectIdentity,
    *,
    prefer_https: bool,
    destination: str | Path,
    transport: RepositoryTransport,
    throttle: FetchThrottle,
    commitish: str | None = None,
    logger: StructuredLogger | None = None,
    policy: Policy | None = None,
    clock: Callable[[], float] = time.time,
) -> Iterator[tuple[ProjectEvent | None, Path]]:
    """Yield one ``(event, mirror_path)`` pair; the event is ``None`` when no work was needed.

    The event is yielded before the network operation starts, and the
    operation runs when the consumer resumes the generator.
    """
    mirror = Path(destination)
    location = project.remote_url(prefer_https=prefer_https)
    log = logger or StructuredLogger()

    if not transport.is_repository(mirror):
        if policy is not None:
            ensure_network_allowed(policy=policy, operation="clone")
        yield ProjectEvent(kind="cloning", project=project), mirror
        log.log(operation="clone", dependency=project.name, message=f"Cloning {location}.")
        _run_operation(project, "clone", lambda: transport.clone(location, mirror))
        throttle.record_fetch(project.canonical, clock())
        return

    if commitish and _is_pinned_locally(transport, mirror, commitish):
        log.log(
            operation="fetch",
            dependency=project.name,
            message="Requested commit already present; skipping fetch.",
            extra={"commitish": commitish},
        )
        yield None, mirror
        return

    if commitish is None and throttle.should_skip_fetch(project.canonical, clock()):
        log.log(
            operation="fetch",
            dependency=project.name,
            message="Fetched recently; skipping fetch.",
        )
        yield None, mirror
        return

    if policy is not None:
        ensure_network_allowed(policy=policy, operation="fetch")
    yield ProjectEvent(kind="fetching", project=project), mirror
    log.log(operation="fetch", dependency=project.name, message=f"Fetching {location}.")
    _run_operation(project, "fetch", lambda: transport.fetch(mirror))
    throttle.record_fetch(project.canonical, clock())


def _is_pinned_locally(transport: RepositoryTransport, mirror: Path, commitish: str) -> bool:
    if not transport.local_commit_exists(mirror, commitish):
        return False
    return not transport.is_symbolic_reference(mirror, commitish)


def _run_operation(project: ProjectIdentity, operation: str, action: Callable[[], None]) -> None:
    try:
        action()
    except TransportError as exc:
        raise RepositoryOperationError(
            f"Failed to {operation} repository.",
            project=project,
            hint="Check the repository location and network access, then retry.",
            context={"operation": operation, "error": exc.context.get("stderr", str(exc))},
        ) from exc
