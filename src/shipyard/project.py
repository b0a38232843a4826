"""Project-level checkout and build orchestration.

A project root holds ``Shipfile`` / ``Shipfile.private`` (declared
dependencies) and ``Shipfile.resolved`` (pinned revisions). Working state lives
under ``Shipyard/``::

    Shipyard/Repositories/<key>          bare mirrors
    Shipyard/Checkouts/<key>             working copies at the pinned revision
    Shipyard/Build/<platform>/            build output
    Shipyard/Build/.<key>.version        version files

``<key>`` is ``ProjectIdentity.storage_key``. Build output and scheme names use
the plain name, so two resolved projects may not share a name.

``Project.build()`` checks out every resolved dependency, orders them leaves
first, and runs one pipeline per dependency (cache check, build, version file
write) on a worker pool. A dependency starts only after all of its own
dependencies finished, so its build events always follow theirs.
"""

from __future__ import annotations

import queue
import time
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

from shipyard.build_cache import BuildCacheEvaluator, fingerprint_path
from shipyard.builders.base import Builder, BuildSpec
from shipyard.errors import (
    BuildFailedError,
    CorruptRecordError,
    RepositoryOperationError,
    ShipyardError,
    ToolchainError,
    TransportError,
    ValidationError,
)
from shipyard.fetch.coordinator import clone_or_fetch
from shipyard.fetch.git import GitTransport, RepositoryTransport
from shipyard.fetch.throttle import FetchThrottle
from shipyard.graph import DependencyGraph
from shipyard.manifest import load_combined_manifest, read_manifest, read_resolved_manifest
from shipyard.models import (
    RESOLVED_MANIFEST_FILENAME,
    BuildEvent,
    BuildOptions,
    Dependency,
    ManifestSource,
    Platform,
    ProjectEvent,
    ProjectIdentity,
    scheme_name,
    sort_platforms,
)
from shipyard.observability import StructuredLogger
from shipyard.policy import Policy, validate_policy
from shipyard.version_file import VersionRecord, VersionRecordStore

WORKSPACE_DIRNAME = "Shipyard"
CHECKOUTS_DIRNAME = "Checkouts"
BUILD_DIRNAME = "Build"
REPOSITORIES_DIRNAME = "Repositories"


@dataclass(frozen=True, slots=True)
class _PipelineResult:
    dependency: Dependency
    rebuilt: bool = False
    error: ShipyardError | None = None
    crash: Exception | None = None


class Project:
    def __init__(
        self,
        root: str | Path,
        *,
        builder: Builder,
        transport: RepositoryTransport | None = None,
        throttle: FetchThrottle | None = None,
        policy: Policy | None = None,
        logger: StructuredLogger | None = None,
        fingerprint: Callable[[Path], str] = fingerprint_path,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = Path(root)
        self.policy = validate_policy(policy or Policy())
        self.builder = builder
        self.transport = transport or GitTransport()
        self.throttle = throttle or FetchThrottle(self.policy.fetch_window_seconds)
        self.logger = logger or StructuredLogger()
        self.fingerprint = fingerprint
        self.clock = clock
        self.records = VersionRecordStore(self.build_dir)
        self.cache = BuildCacheEvaluator(self.records, logger=self.logger)

    @property
    def workspace_dir(self) -> Path:
        return self.root / WORKSPACE_DIRNAME

    @property
    def checkouts_dir(self) -> Path:
        return self.workspace_dir / CHECKOUTS_DIRNAME

    @property
    def build_dir(self) -> Path:
        return self.workspace_dir / BUILD_DIRNAME

    @property
    def repositories_dir(self) -> Path:
        if self.policy.repositories_dir is not None:
            return Path(self.policy.repositories_dir)
        return self.workspace_dir / REPOSITORIES_DIRNAME

    def repository_path(self, project: ProjectIdentity) -> Path:
        return self.repositories_dir / project.storage_key

    def checkout_path(self, project: ProjectIdentity) -> Path:
        return self.checkouts_dir / project.storage_key

    # ── Manifests ───────────────────────────────────────────────────

    def load_combined_manifest(self) -> frozenset[Dependency]:
        return load_combined_manifest(self.root)

    def load_resolved_manifest(self) -> list[Dependency]:
        return read_resolved_manifest(self.root)

    # ── Repositories ────────────────────────────────────────────────

    def clone_or_fetch_dependency(
        self,
        dependency: Dependency,
        *,
        commitish: str | None = None,
    ) -> Iterator[tuple[ProjectEvent | None, Path]]:
        return clone_or_fetch(
            dependency.project,
            prefer_https=self.policy.prefer_https,
            destination=self.repository_path(dependency.project),
            transport=self.transport,
            throttle=self.throttle,
            commitish=commitish,
            logger=self.logger,
            policy=self.policy,
            clock=self.clock,
        )

    def checkout_dependency(self, dependency: Dependency) -> str:
        """Bring the mirror up to date and check out the pinned revision; return its commit id."""
        mirror = self.repository_path(dependency.project)
        for _event, mirror in self.clone_or_fetch_dependency(
            dependency,
            commitish=dependency.version or None,
        ):
            pass
        try:
            revision = self.transport.checkout(
                mirror,
                self.checkout_path(dependency.project),
                dependency.version or "HEAD",
            )
        except TransportError as exc:
            raise RepositoryOperationError(
                "Failed to check out pinned revision.",
                project=dependency.project,
                hint="Make sure the resolved revision exists upstream.",
                context={"commitish": dependency.version, "error": exc.context.get("stderr", "")},
            ) from exc
        self.logger.log(
            operation="checkout",
            dependency=dependency.name,
            message=f"Checked out {dependency.version or 'HEAD'}.",
            extra={"revision": revision},
        )
        return revision

    def checkout_resolved_dependencies(self) -> dict[ProjectIdentity, str]:
        revisions, failed = self._checkout_all(self.load_resolved_manifest())
        if failed:
            raise BuildFailedError(list(failed.values()))
        return revisions

    # ── Graph ───────────────────────────────────────────────────────

    def dependency_graph(self, dependencies: Iterable[Dependency]) -> DependencyGraph:
        """Edges come from each checkout's own primary manifest."""
        resolved = list(dependencies)
        declared: dict[ProjectIdentity, list[ProjectIdentity]] = {}
        for dependency in resolved:
            manifest_path = self.checkout_path(dependency.project) / ManifestSource.PRIMARY.filename
            nested = read_manifest(manifest_path) or []
            declared[dependency.project] = [item.project for item in nested]
        return DependencyGraph.from_declarations(resolved, declared)

    def build_order(self, dependencies: Iterable[Dependency]) -> list[Dependency]:
        return self.dependency_graph(dependencies).build_order()

    # ── Build ───────────────────────────────────────────────────────

    def build(self, options: BuildOptions | None = None) -> Iterator[BuildEvent]:
        """Yield a ``BuildEvent`` per scheme as each build starts.

        Manifest errors surface on the first ``next()``. Pipeline failures do
        not stop unrelated dependencies; they are raised together as
        ``BuildFailedError`` once everything else has settled.
        """
        build_options = options or BuildOptions()
        combined = self.load_combined_manifest()
        resolved = self.load_resolved_manifest()
        _ensure_resolved_covers(combined, resolved, self.root / RESOLVED_MANIFEST_FILENAME)
        _ensure_unique_names(resolved, self.root / RESOLVED_MANIFEST_FILENAME)

        revisions, failed = self._checkout_all(resolved)
        graph = self.dependency_graph(resolved)
        yield from self._run_pipelines(graph, revisions, failed, build_options)

    def _checkout_all(
        self,
        dependencies: list[Dependency],
    ) -> tuple[dict[ProjectIdentity, str], dict[ProjectIdentity, ShipyardError]]:
        revisions: dict[ProjectIdentity, str] = {}
        failed: dict[ProjectIdentity, ShipyardError] = {}
        if not dependencies:
            return revisions, failed
        with ThreadPoolExecutor(
            max_workers=self.policy.max_workers,
            thread_name_prefix="shipyard-checkout",
        ) as executor:
            futures = {
                executor.submit(self.checkout_dependency, dependency): dependency
                for dependency in dependencies
            }
            for future in as_completed(futures):
                dependency = futures[future]
                try:
                    revisions[dependency.project] = future.result()
                except ShipyardError as exc:
                    failed[dependency.project] = self._record_failure(dependency, exc)
        return revisions, failed

    def _run_pipelines(
        self,
        graph: DependencyGraph,
        revisions: dict[ProjectIdentity, str],
        failed: dict[ProjectIdentity, ShipyardError],
        options: BuildOptions,
    ) -> Iterator[BuildEvent]:
        order = graph.build_order()
        pending = [dependency for dependency in order if dependency.project not in failed]
        finished: set[ProjectIdentity] = set()
        rebuilt: set[ProjectIdentity] = set()
        blocked: set[ProjectIdentity] = set(failed)
        skipped: list[str] = []
        events: queue.Queue[BuildEvent | _PipelineResult] = queue.Queue()
        running = 0

        executor = ThreadPoolExecutor(
            max_workers=self.policy.max_workers,
            thread_name_prefix="shipyard-build",
        )
        try:
            while True:
                for dependency in list(pending):
                    requires = graph.dependencies_of(dependency.project)
                    if requires & blocked:
                        pending.remove(dependency)
                        blocked.add(dependency.project)
                        skipped.append(dependency.name)
                        self.logger.log(
                            operation="build",
                            dependency=dependency.name,
                            level="warning",
                            message="Skipped because a dependency failed.",
                        )
                    elif requires <= finished:
                        pending.remove(dependency)
                        executor.submit(
                            self._pipeline_worker,
                            dependency,
                            revisions[dependency.project],
                            options,
                            bool(requires & rebuilt),
                            events,
                        )
                        running += 1
                if running == 0:
                    break

                item = events.get()
                if isinstance(item, BuildEvent):
                    yield item
                    continue
                running -= 1
                if item.crash is not None:
                    raise item.crash
                if item.error is not None:
                    failed[item.dependency.project] = item.error
                    blocked.add(item.dependency.project)
                    continue
                finished.add(item.dependency.project)
                if item.rebuilt:
                    rebuilt.add(item.dependency.project)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        if failed:
            raise BuildFailedError(list(failed.values()), skipped=skipped)

    def _pipeline_worker(
        self,
        dependency: Dependency,
        revision: str,
        options: BuildOptions,
        force: bool,
        events: queue.Queue[BuildEvent | _PipelineResult],
    ) -> None:
        try:
            rebuilt = self._build_dependency(dependency, revision, options, force, events.put)
        except ShipyardError as exc:
            events.put(_PipelineResult(dependency, error=self._record_failure(dependency, exc)))
        except Exception as exc:
            events.put(_PipelineResult(dependency, crash=exc))
        else:
            events.put(_PipelineResult(dependency, rebuilt=rebuilt))

    def _build_dependency(
        self,
        dependency: Dependency,
        revision: str,
        options: BuildOptions,
        force: bool,
        emit: Callable[[BuildEvent], None],
    ) -> bool:
        """Run cache check, build, and version-file write for one dependency."""
        project = dependency.project
        source = self.checkout_path(project)
        platforms = options.platforms or self.builder.platforms_for(dependency, source)
        if not platforms:
            self.logger.log(
                operation="build",
                dependency=dependency.name,
                level="warning",
                message="No platforms to build.",
            )
            return False

        specs = {
            platform: BuildSpec(
                dependency=dependency,
                source=source,
                platform=platform,
                configuration=options.configuration,
                output_dir=self.build_dir / platform.value,
            )
            for platform in platforms
        }
        stale = self.cache.staleness(
            project,
            revision,
            platforms,
            lambda platform: self.fingerprint(self.builder.artifact_path(specs[platform])),
            cache_builds=options.cache_builds,
        )
        if not stale and not force:
            self.logger.log(operation="cache", dependency=dependency.name, message="Up to date.")
            return False

        self.logger.log(
            operation="build",
            dependency=dependency.name,
            message="Rebuilding all requested platforms.",
            extra={
                "stale": sorted(platform.value for platform in stale),
                "dependency_rebuilt": force,
            },
        )
        fingerprints: dict[str, str] = {}
        for platform in sort_platforms(platforms):
            emit(BuildEvent(project=project, scheme=scheme_name(project, platform)))
            artifact = self.builder.build(specs[platform])
            fingerprints[platform.value] = self._fingerprint_artifact(
                dependency, platform, artifact.output_path
            )

        record = VersionRecord(
            commitish=revision,
            fingerprints=self._carry_fingerprints(project, revision, fingerprints),
        )
        path = self.records.save(project, record)
        self.logger.log(
            operation="record",
            dependency=dependency.name,
            message="Version file updated.",
            extra={"path": str(path), "platforms": sorted(fingerprints)},
        )
        return True

    def _fingerprint_artifact(self, dependency: Dependency, platform: Platform, path: Path) -> str:
        try:
            return self.fingerprint(path)
        except OSError as exc:
            raise ToolchainError(
                "Built artifact could not be fingerprinted.",
                context={
                    "dependency": dependency.name,
                    "platform": platform.value,
                    "path": str(path),
                    "error": str(exc),
                },
            ) from exc

    def _carry_fingerprints(
        self,
        project: ProjectIdentity,
        revision: str,
        fingerprints: dict[str, str],
    ) -> dict[str, str]:
        """Keep entries for platforms not rebuilt this pass when the revision is unchanged."""
        try:
            previous = self.records.load(project)
        except CorruptRecordError:
            previous = None
        if previous is None or previous.commitish != revision:
            return fingerprints
        return {**previous.fingerprints, **fingerprints}

    def _record_failure(self, dependency: Dependency, exc: ShipyardError) -> ShipyardError:
        exc.context = {"dependency": dependency.name, **exc.context}
        self.logger.log(
            operation="build",
            dependency=dependency.name,
            level="error",
            message=str(exc).splitlines()[0],
            extra={"code": exc.code},
        )
        return exc


def _ensure_resolved_covers(
    combined: frozenset[Dependency],
    resolved: list[Dependency],
    resolved_path: Path,
) -> None:
    pinned = {dependency.project for dependency in resolved}
    missing = sorted(
        dependency.project.canonical
        for dependency in combined
        if dependency.project not in pinned
    )
    if missing:
        raise ValidationError(
            "Resolved manifest is out of date.",
            hint="Re-resolve dependencies so every declared project is pinned.",
            context={"path": str(resolved_path), "missing": ", ".join(missing)},
        )


def _ensure_unique_names(resolved: list[Dependency], resolved_path: Path) -> None:
    """Scheme names and ``Build/<platform>/<name>.framework`` outputs are keyed by name."""
    by_name: dict[str, list[str]] = {}
    for dependency in resolved:
        by_name.setdefault(dependency.name, []).append(dependency.project.canonical)
    clashes = sorted(
        f"{name} ({', '.join(sorted(projects))})"
        for name, projects in by_name.items()
        if len(projects) > 1
    )
    if clashes:
        raise ValidationError(
            "Resolved projects share a name.",
            hint="Build output and scheme names are derived from the project name; rename or drop one.",
            context={"path": str(resolved_path), "projects": "; ".join(clashes)},
        )
