"""Tests for artifact fingerprints and BuildCacheEvaluator staleness decisions."""

from collections.abc import Callable
from pathlib import Path

import pytest

from shipyard.build_cache import BuildCacheEvaluator, fingerprint_path
from shipyard.models import Platform, ProjectIdentity
from shipyard.observability import StructuredLogger
from shipyard.version_file import VersionRecord, VersionRecordStore

PRELUDE = ProjectIdentity.github("owner/Prelude")
BOTH = frozenset({Platform.MACOS, Platform.IOS})

# ── fingerprint_path ────────────────────────────────────────────────


def test_fingerprint_of_file_tracks_content(tmp_path: Path) -> None:
    binary = tmp_path / "Prelude"
    binary.write_bytes(b"original")
    first = fingerprint_path(binary)

    binary.write_bytes(b"junkdata")

    assert len(first) == 64
    assert fingerprint_path(binary) != first


def test_fingerprint_of_directory_covers_names_and_content(tmp_path: Path) -> None:
    framework = tmp_path / "Prelude.framework"
    (framework / "Headers").mkdir(parents=True)
    (framework / "Prelude").write_bytes(b"binary")
    (framework / "Headers" / "Prelude.h").write_text("// header\n", encoding="utf-8")
    first = fingerprint_path(framework)

    assert fingerprint_path(framework) == first

    (framework / "Headers" / "Prelude.h").rename(framework / "Headers" / "Other.h")
    assert fingerprint_path(framework) != first


def test_fingerprint_of_missing_path_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        fingerprint_path(tmp_path / "missing")


# ── BuildCacheEvaluator.staleness ───────────────────────────────────


def _evaluator(tmp_path: Path, record: VersionRecord | None = None) -> BuildCacheEvaluator:
    store = VersionRecordStore(tmp_path)
    if record is not None:
        store.save(PRELUDE, record)
    return BuildCacheEvaluator(store, logger=StructuredLogger())


def _fingerprints(values: dict[Platform, str]) -> Callable[[Platform], str]:
    return lambda platform: values[platform]


def test_disabled_cache_reports_every_requested_platform(tmp_path: Path) -> None:
    evaluator = _evaluator(
        tmp_path,
        VersionRecord(commitish="abc", fingerprints={"Mac": "m", "iOS": "i"}),
    )

    stale = evaluator.staleness(
        PRELUDE,
        "abc",
        BOTH,
        _fingerprints({Platform.MACOS: "m", Platform.IOS: "i"}),
        cache_builds=False,
    )

    assert stale == BOTH


def test_empty_request_is_never_stale(tmp_path: Path) -> None:
    evaluator = _evaluator(tmp_path)

    assert evaluator.staleness(PRELUDE, "abc", frozenset(), _fingerprints({})) == frozenset()


def test_missing_record_marks_all_platforms_stale(tmp_path: Path) -> None:
    evaluator = _evaluator(tmp_path)

    assert evaluator.staleness(PRELUDE, "abc", BOTH, _fingerprints({})) == BOTH


def test_matching_record_is_fresh(tmp_path: Path) -> None:
    evaluator = _evaluator(
        tmp_path,
        VersionRecord(commitish="abc", fingerprints={"Mac": "m", "iOS": "i"}),
    )

    stale = evaluator.staleness(
        PRELUDE, "abc", BOTH, _fingerprints({Platform.MACOS: "m", Platform.IOS: "i"})
    )

    assert stale == frozenset()


def test_commitish_mismatch_marks_all_platforms_stale(tmp_path: Path) -> None:
    evaluator = _evaluator(
        tmp_path,
        VersionRecord(commitish="1.6.1", fingerprints={"Mac": "m", "iOS": "i"}),
    )

    stale = evaluator.staleness(
        PRELUDE, "1.6.0", BOTH, _fingerprints({Platform.MACOS: "m", Platform.IOS: "i"})
    )

    assert stale == BOTH


def test_unrecorded_platform_is_stale(tmp_path: Path) -> None:
    evaluator = _evaluator(tmp_path, VersionRecord(commitish="abc", fingerprints={"Mac": "m"}))

    stale = evaluator.staleness(
        PRELUDE, "abc", BOTH, _fingerprints({Platform.MACOS: "m", Platform.IOS: "i"})
    )

    assert stale == frozenset({Platform.IOS})


def test_changed_fingerprint_marks_only_that_platform(tmp_path: Path) -> None:
    evaluator = _evaluator(
        tmp_path,
        VersionRecord(commitish="abc", fingerprints={"Mac": "m", "iOS": "i"}),
    )

    stale = evaluator.staleness(
        PRELUDE, "abc", BOTH, _fingerprints({Platform.MACOS: "junk", Platform.IOS: "i"})
    )

    assert stale == frozenset({Platform.MACOS})


def test_missing_artifact_is_stale(tmp_path: Path) -> None:
    evaluator = _evaluator(tmp_path, VersionRecord(commitish="abc", fingerprints={"Mac": "m"}))

    def gone(platform: Platform) -> str:
        raise FileNotFoundError(platform.value)

    assert evaluator.staleness(PRELUDE, "abc", {Platform.MACOS}, gone) == {Platform.MACOS}


def test_corrupt_record_is_treated_as_absent_and_logged(tmp_path: Path) -> None:
    store = VersionRecordStore(tmp_path)
    store.path_for(PRELUDE).write_text("{broken", encoding="utf-8")
    logger = StructuredLogger()
    evaluator = BuildCacheEvaluator(store, logger=logger)

    stale = evaluator.staleness(PRELUDE, "abc", {Platform.MACOS}, _fingerprints({}))

    assert stale == {Platform.MACOS}
    warnings = [record for record in logger.records if record["level"] == "warning"]
    assert len(warnings) == 1
    assert warnings[0]["dependency"] == "Prelude"
    assert warnings[0]["extra"]["code"] == "E_CORRUPT_RECORD"
