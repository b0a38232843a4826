"""Artifact fingerprints and per-platform staleness checks against version files."""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Iterable
from pathlib import Path

from shipyard.errors import CorruptRecordError
from shipyard.models import Platform, ProjectIdentity
from shipyard.observability import StructuredLogger
from shipyard.version_file import VersionRecord, VersionRecordStore

FingerprintFn = Callable[[Platform], str]

_CHUNK_SIZE = 1024 * 1024


def fingerprint_path(path: str | Path) -> str:
    """Return a sha256 over a file, or over every file of a directory tree.

    Directory entries are hashed in sorted relative-path order together with
    their relative paths, so renames change the fingerprint.
    """
    root = Path(path)
    if root.is_file():
        return _hash_file(root, hashlib.sha256()).hexdigest()
    if not root.is_dir():
        raise FileNotFoundError(str(root))
    digest = hashlib.sha256()
    for entry in sorted(item for item in root.rglob("*") if item.is_file()):
        digest.update(entry.relative_to(root).as_posix().encode("utf-8"))
        digest.update(b"\0")
        _hash_file(entry, digest)
    return digest.hexdigest()


def _hash_file(path: Path, digest: hashlib._Hash) -> hashlib._Hash:
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest


class BuildCacheEvaluator:
    """Decides which platforms of a dependency need rebuilding.

    The evaluator reports staleness only. When any platform is stale the
    caller rebuilds every requested platform, because the eligible platform
    list may not be known before the build runs.
    """

    def __init__(
        self,
        store: VersionRecordStore,
        *,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.store = store
        self.logger = logger or StructuredLogger()

    def staleness(
        self,
        identity: ProjectIdentity,
        current_commitish: str,
        requested_platforms: Iterable[Platform],
        fingerprint_of: FingerprintFn,
        *,
        cache_builds: bool = True,
    ) -> frozenset[Platform]:
        requested = frozenset(requested_platforms)
        if not cache_builds or not requested:
            return requested

        record = self._load(identity)
        if record is None:
            return requested
        if record.commitish != current_commitish:
            self.logger.log(
                operation="cache",
                dependency=identity.name,
                message="Version file commitish does not match checkout.",
                extra={"recorded": record.commitish, "current": current_commitish},
            )
            return requested
        return frozenset(
            platform
            for platform in requested
            if not self._platform_is_fresh(identity, platform, record, fingerprint_of)
        )

    def _load(self, identity: ProjectIdentity) -> VersionRecord | None:
        try:
            return self.store.load(identity)
        except CorruptRecordError as exc:
            self.logger.log(
                operation="cache",
                dependency=identity.name,
                level="warning",
                message="Ignoring unreadable version file.",
                extra=exc.to_dict(),
            )
            return None

    def _platform_is_fresh(
        self,
        identity: ProjectIdentity,
        platform: Platform,
        record: VersionRecord,
        fingerprint_of: FingerprintFn,
    ) -> bool:
        recorded = record.fingerprint_for(platform.value)
        if recorded is None:
            return False
        try:
            actual = fingerprint_of(platform)
        except OSError:
            self.logger.log(
                operation="cache",
                dependency=identity.name,
                platform=platform.value,
                message="Built artifact is missing.",
            )
            return False
        if actual != recorded:
            self.logger.log(
                operation="cache",
                dependency=identity.name,
                platform=platform.value,
                message="Built artifact fingerprint changed.",
            )
            return False
        return True
