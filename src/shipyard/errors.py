"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shipyard.models import DuplicateDependency, ProjectIdentity


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    MANIFEST_MISSING = "E_MANIFEST_MISSING"
    MANIFEST_PARSE = "E_MANIFEST_PARSE"
    DUPLICATE_DEPENDENCIES = "E_DUPLICATE_DEPENDENCIES"
    CORRUPT_RECORD = "E_CORRUPT_RECORD"
    WRITE_FAILED = "E_WRITE_FAILED"
    TRANSPORT = "E_TRANSPORT"
    REPOSITORY = "E_REPOSITORY"
    TOOLCHAIN = "E_TOOLCHAIN"
    POLICY = "E_POLICY"
    BUILD_FAILED = "E_BUILD_FAILED"


class ShipyardError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(ShipyardError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class ManifestMissingError(ShipyardError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MANIFEST_MISSING, hint=hint, context=context)


class ManifestParseError(ShipyardError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MANIFEST_PARSE, hint=hint, context=context)


class DuplicateDependenciesError(ShipyardError):
    """Every project declared more than once across the manifests, in one report."""

    duplicates: tuple[DuplicateDependency, ...]

    def __init__(
        self,
        duplicates: Sequence[DuplicateDependency],
        *,
        hint: str | None = "Remove the repeated entries so each project is declared once.",
    ) -> None:
        self.duplicates = tuple(duplicates)
        lines = [
            f"{duplicate.project.canonical} ({', '.join(duplicate.locations)})"
            for duplicate in self.duplicates
        ]
        super().__init__(
            "Duplicate dependencies found.",
            code=ErrorCode.DUPLICATE_DEPENDENCIES,
            hint=hint,
            context={"duplicates": "; ".join(lines)},
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DuplicateDependenciesError):
            return NotImplemented
        return self.duplicates == other.duplicates

    __hash__ = None  # type: ignore[assignment]


class CorruptRecordError(ShipyardError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CORRUPT_RECORD, hint=hint, context=context)


class WriteFailedError(ShipyardError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.WRITE_FAILED, hint=hint, context=context)


class TransportError(ShipyardError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.TRANSPORT, hint=hint, context=context)


class RepositoryOperationError(ShipyardError):
    """A clone or fetch failed for one project; the underlying error is chained."""

    project: ProjectIdentity

    def __init__(
        self,
        message: str,
        *,
        project: ProjectIdentity,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"project": project.canonical, **dict(context or {})}
        super().__init__(message, code=ErrorCode.REPOSITORY, hint=hint, context=merged)
        self.project = project


class ToolchainError(ShipyardError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.TOOLCHAIN, hint=hint, context=context)


class PolicyError(ShipyardError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.POLICY, hint=hint, context=context)


class BuildFailedError(ShipyardError):
    """One or more dependency pipelines failed during a build pass."""

    failures: tuple[ShipyardError, ...]
    skipped: tuple[str, ...]

    def __init__(
        self,
        failures: Sequence[ShipyardError],
        *,
        skipped: Sequence[str] = (),
    ) -> None:
        self.failures = tuple(failures)
        self.skipped = tuple(skipped)
        failed = sorted({failure.context.get("dependency", "") for failure in self.failures} - {""})
        super().__init__(
            f"{len(self.failures)} dependency pipeline(s) failed.",
            code=ErrorCode.BUILD_FAILED,
            hint="Fix the failing dependencies and rebuild; cached results for the others are kept.",
            context={
                "failed": ", ".join(failed),
                "skipped": ", ".join(self.skipped),
            },
        )


__all__ = [
    "BuildFailedError",
    "CorruptRecordError",
    "DuplicateDependenciesError",
    "ErrorCode",
    "ManifestMissingError",
    "ManifestParseError",
    "PolicyError",
    "RepositoryOperationError",
    "ShipyardError",
    "ToolchainError",
    "TransportError",
    "ValidationError",
    "WriteFailedError",
]
