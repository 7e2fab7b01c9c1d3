"""
Unit tests for run directory storage and artifact indexing.
"""

import os
import time
from datetime import datetime, timedelta

import pytest

from testing_agent.core.exceptions import RunNotFoundError
from testing_agent.execution.artifacts import (
    ArtifactStore,
    build_artifact_index,
    generate_run_id,
    run_started_at,
)


class TestRunIdentifiers:
    def test_generate_run_id_format(self):
        assert generate_run_id(datetime(2024, 1, 15, 10, 30, 5)) == "2024-01-15-10-30-05"

    def test_run_started_at_ignores_suffix(self):
        assert run_started_at("2024-01-15-10-30-05-2") == datetime(2024, 1, 15, 10, 30, 5)

    def test_run_started_at_rejects_other_names(self):
        assert run_started_at("scratch") is None


class TestAllocation:
    """Allocating run directories."""

    def test_allocates_directory_named_after_timestamp(self, artifact_store):
        moment = datetime(2024, 1, 15, 10, 30, 0)

        run_dir = artifact_store.allocate_run_dir(moment)

        assert run_dir.is_dir()
        assert run_dir.name == "2024-01-15-10-30-00"
        assert run_dir.parent == artifact_store.runs_root

    def test_same_second_gets_collision_suffix(self, artifact_store):
        moment = datetime(2024, 1, 15, 10, 30, 0)

        first = artifact_store.allocate_run_dir(moment)
        second = artifact_store.allocate_run_dir(moment)
        third = artifact_store.allocate_run_dir(moment)

        assert first.name == "2024-01-15-10-30-00"
        assert second.name == "2024-01-15-10-30-00-1"
        assert third.name == "2024-01-15-10-30-00-2"

    def test_creates_missing_runs_root(self, tmp_path):
        store = ArtifactStore(tmp_path / "nested" / "runs")

        run_dir = store.allocate_run_dir()

        assert run_dir.is_dir()

    def test_list_runs_sorted(self, artifact_store):
        for second in (30, 10, 20):
            artifact_store.allocate_run_dir(datetime(2024, 1, 15, 10, 30, second))

        assert artifact_store.list_runs() == [
            "2024-01-15-10-30-10",
            "2024-01-15-10-30-20",
            "2024-01-15-10-30-30",
        ]

    def test_list_runs_without_root(self, tmp_path):
        assert ArtifactStore(tmp_path / "absent").list_runs() == []


class TestResolution:
    def test_resolves_existing_run(self, artifact_store, sample_run_dir):
        assert artifact_store.resolve_run_dir(sample_run_dir.name) == sample_run_dir

    @pytest.mark.parametrize("run_id", ["", ".", "..", "../x", "a\\b", "2000-01-01-00-00-00"])
    def test_rejects_unknown_or_path_like_ids(self, artifact_store, sample_run_dir, run_id):
        with pytest.raises(RunNotFoundError) as exc_info:
            artifact_store.resolve_run_dir(run_id)

        assert exc_info.value.error_code == "RunNotFound"
        assert exc_info.value.context["run_id"] == run_id

    def test_file_is_not_a_run(self, artifact_store, sample_run_dir):
        (artifact_store.runs_root / "notes.txt").write_text("not a run")

        with pytest.raises(RunNotFoundError):
            artifact_store.resolve_run_dir("notes.txt")


class TestArtifactIndex:
    def test_index_reflects_directory(self, sample_run_dir):
        index = build_artifact_index(sample_run_dir)

        assert index.run_id == sample_run_dir.name
        assert index.artifacts_dir == str(sample_run_dir.resolve())
        assert index.screenshot_names == ["after_login", "before_login"]

    def test_index_picks_up_new_files(self, sample_run_dir):
        before = build_artifact_index(sample_run_dir)
        (sample_run_dir / "on_error_login.png").write_bytes(b"png")

        after = build_artifact_index(sample_run_dir)

        assert "on_error_login.png" not in before.screenshots
        assert "on_error_login.png" in after.screenshots

    def test_ignores_subdirectories(self, sample_run_dir):
        (sample_run_dir / "nested.png").mkdir()

        index = build_artifact_index(sample_run_dir)

        assert "nested.png" not in index.screenshots


class TestCleanup:
    """Explicit retention cleanup."""

    NOW = datetime(2024, 2, 1, 12, 0, 0)

    def _make_runs(self, store):
        old = store.allocate_run_dir(self.NOW - timedelta(days=10))
        (old / "console.log").write_text("0123456789")
        recent = store.allocate_run_dir(self.NOW - timedelta(days=1))
        return old, recent

    def test_expired_runs(self, artifact_store):
        old, recent = self._make_runs(artifact_store)

        assert artifact_store.get_expired_runs(7, now=self.NOW) == [old.name]

    def test_cleanup_deletes_expired(self, artifact_store):
        old, recent = self._make_runs(artifact_store)

        summary = artifact_store.cleanup_expired_runs(7, now=self.NOW)

        assert summary["deleted_runs"] == [old.name]
        assert summary["deleted_count"] == 1
        assert summary["freed_space"] == 10
        assert summary["errors"] == []
        assert not old.exists()
        assert recent.exists()

    def test_dry_run_keeps_directories(self, artifact_store):
        old, _ = self._make_runs(artifact_store)

        summary = artifact_store.cleanup_expired_runs(7, dry_run=True, now=self.NOW)

        assert summary["dry_run"] is True
        assert summary["deleted_count"] == 1
        assert old.exists()

    def test_unnamed_directories_use_modification_time(self, artifact_store):
        scratch = artifact_store.runs_root / "scratch"
        scratch.mkdir(parents=True)
        old_time = time.time() - 30 * 86400
        os.utime(scratch, (old_time, old_time))

        assert artifact_store.get_expired_runs(7) == ["scratch"]
