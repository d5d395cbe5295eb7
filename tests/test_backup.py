# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import json
from pathlib import Path

import pytest

from attachtranslate.backup.manager import SECONDS_PER_DAY, BackupManager
from attachtranslate.errors import BackupError

T0 = 1_700_000_000


class Clock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _source(tmp_path: Path, name: str = "report.txt", content: str = "original") -> Path:
    path = tmp_path / "work" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_backup_copies_file_and_records_entry(tmp_path):
    manager = BackupManager(tmp_path / "backups", clock=Clock())
    record = manager.backup(_source(tmp_path))

    assert Path(record.backup).read_text(encoding="utf-8") == "original"
    assert Path(record.backup).name == f"{record.id}_report.txt"
    assert record.expires_at == T0 + 30 * SECONDS_PER_DAY
    meta = json.loads(manager.meta_path.read_text(encoding="utf-8"))
    assert [entry["id"] for entry in meta["entries"]] == [record.id]


def test_backup_is_kept_within_retention_and_pruned_after(tmp_path):
    clock = Clock()
    manager = BackupManager(tmp_path / "backups", ttl_days=30, clock=clock)
    record = manager.backup(_source(tmp_path))

    clock.now = T0 + 29 * SECONDS_PER_DAY
    assert manager.prune() == []
    assert Path(record.backup).exists()

    clock.now = T0 + 31 * SECONDS_PER_DAY
    removed = manager.prune()
    assert [r.id for r in removed] == [record.id]
    assert not Path(record.backup).exists()
    assert manager.records() == []


def test_expired_backups_are_pruned_before_the_next_backup(tmp_path):
    clock = Clock()
    manager = BackupManager(tmp_path / "backups", ttl_days=1, clock=clock)
    first = manager.backup(_source(tmp_path, "a.txt"))

    clock.now = T0 + 2 * SECONDS_PER_DAY
    second = manager.backup(_source(tmp_path, "b.txt"))

    assert [r.id for r in manager.records()] == [second.id]
    assert not Path(first.backup).exists()


def test_prune_with_ttl_measures_from_creation(tmp_path):
    clock = Clock()
    manager = BackupManager(tmp_path / "backups", ttl_days=30, clock=clock)
    manager.backup(_source(tmp_path))

    clock.now = T0 + 8 * SECONDS_PER_DAY
    assert len(manager.prune(ttl_days=7)) == 1


def test_vanished_backup_files_are_dropped_from_meta(tmp_path):
    manager = BackupManager(tmp_path / "backups", clock=Clock())
    record = manager.backup(_source(tmp_path))
    Path(record.backup).unlink()
    assert [r.id for r in manager.prune()] == [record.id]


def test_zero_ttl_means_default(tmp_path):
    assert BackupManager(tmp_path, ttl_days=0).ttl_days == 30


def test_names_are_sanitized(tmp_path):
    manager = BackupManager(tmp_path / "backups", clock=Clock())
    record = manager.backup(_source(tmp_path, "résumé final.txt"))
    assert Path(record.backup).name == f"{record.id}_r_sum__final.txt"


def test_missing_source_raises(tmp_path):
    with pytest.raises(BackupError):
        BackupManager(tmp_path / "backups").backup(tmp_path / "nope.txt")


def test_corrupt_meta_raises(tmp_path):
    root = tmp_path / "backups"
    root.mkdir()
    (root / "meta.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(BackupError):
        BackupManager(root).records()


def test_backup_exactly_at_ttl_is_kept(tmp_path):
    clock = Clock()
    manager = BackupManager(tmp_path / "backups", ttl_days=30, clock=clock)
    record = manager.backup(_source(tmp_path))

    clock.now = T0 + 30 * SECONDS_PER_DAY
    assert manager.prune() == []
    assert Path(record.backup).exists()

    clock.now += 1
    assert [r.id for r in manager.prune()] == [record.id]
