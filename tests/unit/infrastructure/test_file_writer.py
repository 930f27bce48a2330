"""Tests for WriteBackManager."""

import os
import tempfile
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from codeopt.domain.entities import FileRecord, FileResult, Suggestion, WriteState
from codeopt.domain.errors import BackupPreconditionError
from codeopt.infrastructure.agents.file_writer import WriteBackManager, atomic_write_text


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def manager():
    return WriteBackManager()


def _optimized(path: Path, code: str = "optimized") -> FileResult:
    return FileResult(
        path=str(path),
        original_code=path.read_text() if path.exists() else "",
        optimized_code=code,
        suggestions=(Suggestion(category="String"),),
    )


def _unoptimized(path: Path) -> FileResult:
    return FileResult(path=str(path), original_code="x", optimized_code="x")


class TestSaveToDirectory:
    """Tests for save_to_directory."""

    def test_writes_prefixed_files(self, manager, temp_dir):
        """Only files with optimizations are written, as optimized_<name>."""
        src = temp_dir / "src"
        src.mkdir()
        (src / "A.cs").write_text("original A")
        (src / "B.cs").write_text("original B")
        out = temp_dir / "out"

        report = manager.save_to_directory(
            [_optimized(src / "A.cs", "new A"), _unoptimized(src / "B.cs")],
            out,
        )

        assert [o.state for o in report.outcomes] == [WriteState.SAVED]
        assert (out / "optimized_A.cs").read_text() == "new A"
        assert not (out / "optimized_B.cs").exists()
        assert (src / "A.cs").read_text() == "original A"

    def test_duplicate_basenames_get_suffix(self, manager, temp_dir):
        (temp_dir / "one").mkdir()
        (temp_dir / "two").mkdir()
        out = temp_dir / "out"

        report = manager.save_to_directory(
            [_optimized(temp_dir / "one" / "Util.cs", "1"), _optimized(temp_dir / "two" / "Util.cs", "2")],
            out,
        )

        assert [Path(o.target_path).name for o in report.outcomes] == ["optimized_Util.cs", "optimized_Util_2.cs"]
        assert (out / "optimized_Util.cs").read_text() == "1"
        assert (out / "optimized_Util_2.cs").read_text() == "2"

    def test_idempotent(self, manager, temp_dir):
        results = [_optimized(temp_dir / "A.cs", "v1")]
        manager.save_to_directory(results, temp_dir / "out")
        report = manager.save_to_directory(results, temp_dir / "out")

        assert len(report.succeeded) == 1
        assert sorted(p.name for p in (temp_dir / "out").iterdir()) == ["optimized_A.cs"]

    def test_unwritable_output_dir_reported(self, manager, temp_dir):
        blocker = temp_dir / "file"
        blocker.write_text("not a dir")

        report = manager.save_to_directory([_optimized(temp_dir / "A.cs")], blocker / "out")

        assert len(report.failed) == 1
        assert report.outcomes[0].state is WriteState.SAVE_FAILED


class TestOverwriteInPlace:
    """Tests for overwrite_in_place."""

    def test_backup_then_overwrite(self, manager, temp_dir):
        original = temp_dir / "Service.cs"
        original.write_text("original")
        backups = temp_dir / "backup"

        report = manager.overwrite_in_place([_optimized(original, "optimized")], backups)

        outcome = report.outcomes[0]
        assert outcome.state is WriteState.OVERWRITTEN
        assert outcome.success is True
        assert original.read_text() == "optimized"
        assert (backups / "Service.cs").read_text() == "original"
        assert outcome.backup_path == str(backups / "Service.cs")

    def test_missing_original_is_backup_failed(self, manager, temp_dir):
        """No backup, no overwrite: the file is not created."""
        missing = temp_dir / "Gone.cs"
        result = FileResult(
            path=str(missing),
            original_code="",
            optimized_code="new",
            suggestions=(Suggestion(category="LINQ"),),
        )

        report = manager.overwrite_in_place([result], temp_dir / "backup")

        assert report.outcomes[0].state is WriteState.BACKUP_FAILED
        assert report.outcomes[0].success is False
        assert not missing.exists()

    def test_unverified_backup_blocks_overwrite(self, manager, temp_dir):
        original = temp_dir / "A.cs"
        original.write_text("original")

        with patch("codeopt.infrastructure.agents.file_writer.filecmp.cmp", return_value=False):
            report = manager.overwrite_in_place([_optimized(original)], temp_dir / "backup")

        assert report.outcomes[0].state is WriteState.BACKUP_FAILED
        assert original.read_text() == "original"

    def test_write_failure_keeps_original_and_backup(self, manager, temp_dir):
        original = temp_dir / "A.cs"
        original.write_text("original")
        backups = temp_dir / "backup"

        with patch(
            "codeopt.infrastructure.agents.file_writer.os.replace",
            side_effect=PermissionError("locked"),
        ):
            report = manager.overwrite_in_place([_optimized(original)], backups)

        outcome = report.outcomes[0]
        assert outcome.state is WriteState.OVERWRITE_FAILED
        assert outcome.success is False
        assert "locked" in outcome.error
        assert original.read_text() == "original"
        assert (backups / "A.cs").read_text() == "original"
        assert sorted(p.name for p in temp_dir.iterdir()) == ["A.cs", "backup"]

    def test_one_failure_does_not_stop_others(self, manager, temp_dir):
        good = temp_dir / "Good.cs"
        good.write_text("g")

        report = manager.overwrite_in_place(
            [_optimized(temp_dir / "Missing.cs"), _optimized(good, "better")],
            temp_dir / "backup",
        )

        assert [o.state for o in report.outcomes] == [WriteState.BACKUP_FAILED, WriteState.OVERWRITTEN]
        assert len(report.failed) == 1
        assert good.read_text() == "better"

    def test_skips_files_without_optimizations(self, manager, temp_dir):
        original = temp_dir / "A.cs"
        original.write_text("same")

        report = manager.overwrite_in_place([_unoptimized(original)], temp_dir / "backup")

        assert report.outcomes == []
        assert original.read_text() == "same"

    def test_duplicate_basenames_backed_up_separately(self, manager, temp_dir):
        for sub in ("one", "two"):
            (temp_dir / sub).mkdir()
            (temp_dir / sub / "Util.cs").write_text(sub)
        backups = temp_dir / "backup"

        manager.overwrite_in_place(
            [_optimized(temp_dir / "one" / "Util.cs"), _optimized(temp_dir / "two" / "Util.cs")],
            backups,
        )

        assert (backups / "Util.cs").read_text() == "one"
        assert (backups / "Util_2.cs").read_text() == "two"

    def test_second_run_keeps_first_backup(self, manager, temp_dir):
        """Two overwrite runs into one backup directory keep the original bytes."""
        original = temp_dir / "A.cs"
        original.write_text("ORIGINAL")
        backups = temp_dir / "backup"

        first = manager.overwrite_in_place([_optimized(original, "V1")], backups)
        second = manager.overwrite_in_place([_optimized(original, "V2")], backups)

        assert original.read_text() == "V2"
        assert (backups / "A.cs").read_text() == "ORIGINAL"
        assert (backups / "A_2.cs").read_text() == "V1"
        assert first.outcomes[0].backup_path == str(backups / "A.cs")
        assert second.outcomes[0].backup_path == str(backups / "A_2.cs")

    def test_existing_backup_file_never_replaced(self, manager, temp_dir):
        original = temp_dir / "A.cs"
        original.write_text("new")
        backups = temp_dir / "backup"
        backups.mkdir()
        (backups / "A.cs").write_text("older")

        report = manager.overwrite_in_place([_optimized(original)], backups)

        assert report.outcomes[0].state is WriteState.OVERWRITTEN
        assert (backups / "A.cs").read_text() == "older"
        assert (backups / "A_2.cs").read_text() == "new"

    def test_backup_never_opened_over_existing_file(self, manager, temp_dir):
        original = temp_dir / "A.cs"
        original.write_text("new")
        taken = temp_dir / "taken.cs"
        taken.write_text("keep")

        with pytest.raises(BackupPreconditionError, match="already exists"):
            manager._create_backup(original, taken)

        assert taken.read_text() == "keep"


class TestRestoreAndHelpers:
    """Tests for restore_backup, default_backup_dir and atomic_write_text."""

    def test_restore_backup(self, manager, temp_dir):
        original = temp_dir / "A.cs"
        original.write_text("original")
        backups = temp_dir / "backup"
        manager.overwrite_in_place([_optimized(original, "changed")], backups)

        outcome = manager.restore_backup(backups / "A.cs", original)

        assert outcome.success is True
        assert original.read_text() == "original"

    def test_restore_missing_backup(self, manager, temp_dir):
        outcome = manager.restore_backup(temp_dir / "nope.cs", temp_dir / "A.cs")

        assert outcome.success is False
        assert "Backup not found" in outcome.error

    def test_default_backup_dir_next_to_root(self, temp_dir):
        root = temp_dir / "MySolution"
        path = WriteBackManager.default_backup_dir(root, now=datetime(2024, 3, 9, 7, 5, 1))

        assert path == root.resolve().parent / "backup_20240309_070501"

    def test_atomic_write_preserves_mode(self, temp_dir):
        target = temp_dir / "a.cs"
        target.write_text("old")
        os.chmod(target, 0o644)

        atomic_write_text(target, "new\r\nline")

        assert target.read_bytes() == b"new\r\nline"
        assert target.stat().st_mode & 0o777 == 0o644
