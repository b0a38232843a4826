"""Public package entrypoint for the shipyard dependency orchestrator."""

from .build_cache import BuildCacheEvaluator, fingerprint_path
from .errors import (
    BuildFailedError,
    CorruptRecordError,
    DuplicateDependenciesError,
    ErrorCode,
    ManifestMissingError,
    ManifestParseError,
    PolicyError,
    RepositoryOperationError,
    ShipyardError,
    ToolchainError,
    TransportError,
    ValidationError,
    WriteFailedError,
)
from .fetch import FetchThrottle, GitTransport, clone_or_fetch
from .manifest import load_combined_manifest, merge_manifests, read_manifest
from .models import (
    BuildEvent,
    BuildOptions,
    Dependency,
    DuplicateDependency,
    ManifestSource,
    Platform,
    ProjectEvent,
    ProjectIdentity,
)
from .policy import Policy
from .project import Project
from .version_file import VersionRecord, VersionRecordStore

__all__ = [
    "BuildCacheEvaluator",
    "BuildEvent",
    "BuildFailedError",
    "BuildOptions",
    "CorruptRecordError",
    "Dependency",
    "DuplicateDependenciesError",
    "DuplicateDependency",
    "ErrorCode",
    "FetchThrottle",
    "GitTransport",
    "ManifestMissingError",
    "ManifestParseError",
    "ManifestSource",
    "Platform",
    "Policy",
    "PolicyError",
    "Project",
    "ProjectEvent",
    "ProjectIdentity",
    "RepositoryOperationError",
    "ShipyardError",
    "ToolchainError",
    "TransportError",
    "ValidationError",
    "VersionRecord",
    "VersionRecordStore",
    "WriteFailedError",
    "clone_or_fetch",
    "fingerprint_path",
    "load_combined_manifest",
    "merge_manifests",
    "read_manifest",
]
