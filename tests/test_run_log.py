"""Tests for the publish run log."""

import tempfile
from pathlib import Path

from drivemap.audit.run_log import RunLog


def test_record_and_read_back():
    with tempfile.TemporaryDirectory() as tmpdir:
        log = RunLog(Path(tmpdir))
        entry = log.record("publish", "{GUID}", "Drive Maps", version=65538, actor="admin")
        runs = log.get_runs()

    assert len(runs) == 1
    assert runs[0].id == entry.id
    assert runs[0].version == 65538
    assert runs[0].actor == "admin"
    assert runs[0].success is True


def test_filter_by_policy_newest_first():
    with tempfile.TemporaryDirectory() as tmpdir:
        log = RunLog(Path(tmpdir))
        log.record("publish", "{A}", "Maps A", version=1, actor="admin")
        log.record("publish", "{B}", "Maps B", version=1, actor="admin")
        log.record("publish", "{A}", "Maps A", version=2, actor="admin", success=False)

        runs = log.get_runs("{A}")

    assert [r.version for r in runs] == [2, 1]
    assert runs[0].success is False


def test_empty_log():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert RunLog(Path(tmpdir)).get_runs() == []
