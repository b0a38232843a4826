import json
from pathlib import Path

import pytest

from shipyard.errors import CorruptRecordError, WriteFailedError
from shipyard.models import ProjectIdentity
from shipyard.version_file import VersionRecord, VersionRecordStore, parse_version_record

PRELUDE = ProjectIdentity.github("owner/Prelude")


def test_load_returns_none_without_record(tmp_path: Path) -> None:
    store = VersionRecordStore(tmp_path / "Build")

    assert store.load(PRELUDE) is None


def test_save_then_load_returns_same_record(tmp_path: Path) -> None:
    store = VersionRecordStore(tmp_path / "Build")
    record = VersionRecord(commitish="1.6.0", fingerprints={"Mac": "aa", "iOS": "bb"})

    path = store.save(PRELUDE, record)

    assert path == tmp_path / "Build" / f".{PRELUDE.storage_key}.version"
    assert store.load(PRELUDE) == record
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload == {"commitish": "1.6.0", "platforms": {"Mac": "aa", "iOS": "bb"}}


def test_save_replaces_record_without_leaving_temp_files(tmp_path: Path) -> None:
    store = VersionRecordStore(tmp_path)
    store.save(PRELUDE, VersionRecord(commitish="old", fingerprints={"Mac": "1"}))
    store.save(PRELUDE, VersionRecord(commitish="new", fingerprints={"iOS": "2"}))

    assert store.load(PRELUDE) == VersionRecord(commitish="new", fingerprints={"iOS": "2"})
    assert sorted(path.name for path in tmp_path.iterdir()) == [f".{PRELUDE.storage_key}.version"]


def test_record_file_names_are_filesystem_safe(tmp_path: Path) -> None:
    store = VersionRecordStore(tmp_path)
    project = ProjectIdentity.git("ssh://host/team/name with spaces")

    name = store.path_for(project).name
    assert name.startswith(".name_with_spaces-")
    assert name.endswith(".version")


def test_projects_sharing_a_name_have_separate_records(tmp_path: Path) -> None:
    store = VersionRecordStore(tmp_path)
    alice = ProjectIdentity.github("alice/Foo")
    bob = ProjectIdentity.github("bob/Foo")

    store.save(alice, VersionRecord(commitish="aaa", fingerprints={"Mac": "x"}))

    assert store.load(bob) is None
    assert store.path_for(alice) != store.path_for(bob)
    assert store.path_for(alice) == store.path_for(ProjectIdentity.git("git@github.com:Alice/foo.git"))


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[]",
        '{"platforms": {}}',
        '{"commitish": "1.0", "platforms": []}',
        '{"commitish": "1.0", "platforms": {"Mac": 3}}',
    ],
)
def test_malformed_records_raise_corrupt_record(tmp_path: Path, raw: str) -> None:
    store = VersionRecordStore(tmp_path)
    store.path_for(PRELUDE).write_text(raw, encoding="utf-8")

    with pytest.raises(CorruptRecordError):
        store.load(PRELUDE)


def test_record_without_platforms_is_valid() -> None:
    assert parse_version_record('{"commitish": "abc"}') == VersionRecord(commitish="abc")


def test_write_failure_raises_write_failed(tmp_path: Path) -> None:
    blocker = tmp_path / "Build"
    blocker.write_text("not a directory", encoding="utf-8")
    store = VersionRecordStore(blocker)

    with pytest.raises(WriteFailedError) as excinfo:
        store.save(PRELUDE, VersionRecord(commitish="1.0"))

    assert excinfo.value.context["project"] == "github:owner/prelude"
