"""Core typed dataclasses for projects, dependencies, and build requests."""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal
from urllib.parse import urlsplit, urlunsplit

from shipyard.errors import ValidationError

IdentityKind = Literal["github", "git"]
ProjectEventKind = Literal["cloning", "fetching"]

GITHUB_HOST = "github.com"

_GITHUB_REPOSITORY = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_GITHUB_SCP = re.compile(r"^[^@/]+@github\.com:(?P<path>.+)$", re.IGNORECASE)
_UNSAFE_KEY_CHARACTERS = re.compile(r"[^A-Za-z0-9._-]")


class Platform(StrEnum):
    """Build platforms; the value is the output directory and scheme suffix."""

    MACOS = "Mac"
    IOS = "iOS"
    TVOS = "tvOS"
    WATCHOS = "watchOS"


class ManifestSource(StrEnum):
    PRIMARY = "primary"
    PRIVATE = "private"

    @property
    def filename(self) -> str:
        return MANIFEST_FILENAMES[self]


MANIFEST_FILENAMES: dict[ManifestSource, str] = {
    ManifestSource.PRIMARY: "Shipfile",
    ManifestSource.PRIVATE: "Shipfile.private",
}
RESOLVED_MANIFEST_FILENAME = "Shipfile.resolved"


def normalize_location(location: str) -> str:
    """Return the comparison form of a repository URL or path.

    Scheme and host are lower-cased; trailing slashes and a trailing ``.git``
    are dropped. Paths and scp-style locations keep their case.
    """
    text = location.strip()
    parts = urlsplit(text)
    if parts.scheme and parts.netloc:
        path = _strip_git_suffix(parts.path.rstrip("/"))
        return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))
    if len(text) > 1:
        text = text.rstrip("/")
    return _strip_git_suffix(text)


def _strip_git_suffix(path: str) -> str:
    return path[: -len(".git")] if path.endswith(".git") else path


@dataclass(frozen=True, slots=True)
class ProjectIdentity:
    """Source of a dependency; compares by its normalized ``canonical`` form."""

    kind: IdentityKind = field(compare=False)
    location: str = field(compare=False)
    canonical: str = field(init=False)

    def __post_init__(self) -> None:
        if self.kind == "github":
            if not _GITHUB_REPOSITORY.fullmatch(self.location):
                raise ValidationError(
                    "GitHub repository must be written as `owner/name`.",
                    context={"repository": self.location},
                )
            canonical = f"github:{_strip_git_suffix(self.location).lower()}"
        elif self.kind == "git":
            if not self.location.strip():
                raise ValidationError("Git repository URL must not be empty.")
            canonical = f"git:{normalize_location(self.location)}"
        else:
            raise ValidationError(f"Unsupported project kind: {self.kind}")
        object.__setattr__(self, "canonical", canonical)

    @classmethod
    def github(cls, repository: str) -> ProjectIdentity:
        return cls(kind="github", location=_strip_git_suffix(repository.strip().strip("/")))

    @classmethod
    def git(cls, url: str) -> ProjectIdentity:
        """Build an identity from a URL, folding GitHub URLs into the GitHub form."""
        text = url.strip()
        parts = urlsplit(text)
        if parts.scheme in ("http", "https", "ssh", "git") and parts.hostname == GITHUB_HOST:
            path = _strip_git_suffix(parts.path.strip("/"))
            if _GITHUB_REPOSITORY.fullmatch(path):
                return cls.github(path)
        scp = _GITHUB_SCP.match(text)
        if scp is not None:
            path = _strip_git_suffix(scp.group("path").strip("/"))
            if _GITHUB_REPOSITORY.fullmatch(path):
                return cls.github(path)
        return cls(kind="git", location=text)

    @property
    def name(self) -> str:
        """Last path component, used for scheme names and artifact names."""
        if self.kind == "github":
            return self.location.rsplit("/", 1)[-1]
        trimmed = normalize_location(self.location)
        return re.split(r"[/:\\]", trimmed)[-1] or trimmed

    @property
    def storage_key(self) -> str:
        """Filesystem-safe key for mirrors, checkouts and version files.

        Equal identities share a key whatever their spelling; distinct
        identities that share a ``name`` get distinct keys.
        """
        safe_name = _UNSAFE_KEY_CHARACTERS.sub("_", self.name.lower())
        digest = hashlib.sha256(self.canonical.encode("utf-8")).hexdigest()[:12]
        return f"{safe_name}-{digest}"

    def remote_url(self, *, prefer_https: bool = True) -> str:
        if self.kind == "github":
            if prefer_https:
                return f"https://{GITHUB_HOST}/{self.location}.git"
            return f"git@{GITHUB_HOST}:{self.location}.git"
        return self.location

    def __str__(self) -> str:
        return self.location


@dataclass(frozen=True, slots=True)
class Dependency:
    project: ProjectIdentity
    version: str = ""

    @property
    def name(self) -> str:
        return self.project.name


@dataclass(frozen=True, slots=True)
class DuplicateDependency:
    project: ProjectIdentity
    locations: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class BuildOptions:
    configuration: str = "Release"
    platforms: frozenset[Platform] = frozenset()
    cache_builds: bool = True

    @classmethod
    def create(
        cls,
        *,
        configuration: str = "Release",
        platforms: Iterable[Platform | str] = (),
        cache_builds: bool = True,
    ) -> BuildOptions:
        items = tuple(platforms)
        try:
            resolved = frozenset(Platform(item) for item in items)
        except ValueError as exc:
            raise ValidationError(
                "Unknown build platform.",
                hint=f"Use one of: {', '.join(p.value for p in Platform)}.",
                context={"platforms": ", ".join(str(item) for item in items)},
            ) from exc
        return cls(configuration=configuration, platforms=resolved, cache_builds=cache_builds)


@dataclass(frozen=True, slots=True)
class ProjectEvent:
    kind: ProjectEventKind
    project: ProjectIdentity

    @property
    def is_cloning(self) -> bool:
        return self.kind == "cloning"

    @property
    def is_fetching(self) -> bool:
        return self.kind == "fetching"


@dataclass(frozen=True, slots=True)
class BuildEvent:
    project: ProjectIdentity
    scheme: str


def scheme_name(project: ProjectIdentity, platform: Platform) -> str:
    return f"{project.name}-{platform.value}"


def sort_platforms(platforms: Iterable[Platform]) -> list[Platform]:
    order = list(Platform)
    return sorted(platforms, key=order.index)
