"""Per-dependency version files recording the last successful build."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from shipyard.errors import CorruptRecordError, WriteFailedError
from shipyard.models import ProjectIdentity


@dataclass(frozen=True, slots=True)
class VersionRecord:
    commitish: str
    fingerprints: Mapping[str, str] = field(default_factory=dict)

    def fingerprint_for(self, platform: str) -> str | None:
        return self.fingerprints.get(platform)


def serialize_version_record(record: VersionRecord) -> str:
    payload = {
        "commitish": record.commitish,
        "platforms": dict(sorted(record.fingerprints.items())),
    }
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def parse_version_record(raw: str, *, source: str = "<version file>") -> VersionRecord:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorruptRecordError(
            "Version file is not valid JSON.",
            hint="Delete the version file to force a rebuild.",
            context={"path": source, "error": str(exc)},
        ) from exc
    if not isinstance(payload, dict):
        raise CorruptRecordError(
            "Version file has invalid structure.",
            context={"path": source},
        )
    commitish = payload.get("commitish")
    if not isinstance(commitish, str) or not commitish:
        raise CorruptRecordError(
            "Version file `commitish` is missing or invalid.",
            context={"path": source},
        )
    return VersionRecord(commitish=commitish, fingerprints=_parse_platforms(payload, source))


def _parse_platforms(payload: dict[str, Any], source: str) -> dict[str, str]:
    platforms = payload.get("platforms", {})
    if not isinstance(platforms, dict):
        raise CorruptRecordError(
            "Version file `platforms` must be a mapping.",
            context={"path": source},
        )
    parsed: dict[str, str] = {}
    for name, fingerprint in platforms.items():
        if not isinstance(name, str) or not isinstance(fingerprint, str):
            raise CorruptRecordError(
                "Version file platform entries must map names to fingerprints.",
                context={"path": source},
            )
        parsed[name] = fingerprint
    return parsed


class VersionRecordStore:
    """Reads and atomically replaces ``.<storage key>.version`` files in a build directory."""

    def __init__(self, build_dir: str | Path) -> None:
        self.build_dir = Path(build_dir)

    def path_for(self, identity: ProjectIdentity) -> Path:
        return self.build_dir / f".{identity.storage_key}.version"

    def load(self, identity: ProjectIdentity) -> VersionRecord | None:
        path = self.path_for(identity)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise CorruptRecordError(
                "Version file could not be read.",
                context={"path": str(path), "error": str(exc)},
            ) from exc
        return parse_version_record(raw, source=str(path))

    def save(self, identity: ProjectIdentity, record: VersionRecord) -> Path:
        path = self.path_for(identity)
        temp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f"{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_name = handle.name
                handle.write(serialize_version_record(record))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, path)
        except OSError as exc:
            if temp_name is not None:
                Path(temp_name).unlink(missing_ok=True)
            raise WriteFailedError(
                "Failed to write version file.",
                hint="Check permissions and free space in the build directory.",
                context={"path": str(path), "project": identity.canonical, "error": str(exc)},
            ) from exc
        return path
