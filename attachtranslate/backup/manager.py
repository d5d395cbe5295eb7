# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import hashlib
import json
import logging
import shutil
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from threading import Lock
from typing import Callable

from attachtranslate.errors import BackupError
from attachtranslate.logger import global_logger
from attachtranslate.utils.fileio import write_json_atomic
from attachtranslate.utils.text_utils import sanitize_filename

META_FILE_NAME = "meta.json"
SECONDS_PER_DAY = 86_400
DEFAULT_TTL_DAYS = 30


@dataclass
class BackupRecord:
    id: str
    src: str
    backup: str
    created_at: int
    expires_at: int


class BackupManager:
    """
    Keeps a copy of every file before it is overwritten in place.

    Copies live in ``root`` as ``<id>_<name>`` and are listed in ``meta.json``.
    Expired or vanished entries are pruned before each backup.
    """

    def __init__(self, root: Path | str, ttl_days: int = DEFAULT_TTL_DAYS,
                 clock: Callable[[], float] = time.time, logger: logging.Logger = global_logger):
        self.root = Path(root)
        self.ttl_days = ttl_days or DEFAULT_TTL_DAYS
        self.clock = clock
        self.logger = logger
        self._lock = Lock()

    @property
    def meta_path(self) -> Path:
        return self.root / META_FILE_NAME

    def _read_meta(self) -> list[BackupRecord]:
        if not self.meta_path.exists():
            return []
        try:
            data = json.loads(self.meta_path.read_text(encoding="utf-8"))
            return [BackupRecord(**entry) for entry in data.get("entries", [])]
        except (OSError, ValueError, TypeError) as e:
            raise BackupError(f"failed to read backup meta {self.meta_path}: {e}") from e

    def _write_meta(self, records: list[BackupRecord]):
        try:
            write_json_atomic(self.meta_path, {"entries": [asdict(r) for r in records]})
        except OSError as e:
            raise BackupError(f"failed to write backup meta {self.meta_path}: {e}") from e

    def _prune(self, records: list[BackupRecord], now: int, ttl_days: int | None) -> tuple[list, list]:
        kept, removed = [], []
        for record in records:
            expires_at = record.expires_at
            if ttl_days:
                expires_at = record.created_at + ttl_days * SECONDS_PER_DAY
            backup_path = Path(record.backup)
            # expired once strictly older than the ttl
            if now > expires_at or not backup_path.exists():
                backup_path.unlink(missing_ok=True)
                removed.append(record)
            else:
                kept.append(record)
        return kept, removed

    def backup(self, path: Path | str, ttl_days: int | None = None) -> BackupRecord:
        src = Path(path)
        if not src.is_file():
            raise BackupError(f"backup source is not a file: {src}")
        ttl_days = ttl_days or self.ttl_days
        now = int(self.clock())
        with self._lock:
            self.root.mkdir(parents=True, exist_ok=True)
            records, removed = self._prune(self._read_meta(), now, None)
            if removed:
                self.logger.info(f"backup: pruned {len(removed)} expired backup(s)")
            record_id = hashlib.md5(f"{now}:{src}".encode("utf-8")).hexdigest()
            backup_path = self.root / f"{record_id}_{sanitize_filename(src.name)}"
            try:
                shutil.copy2(src, backup_path)
            except OSError as e:
                raise BackupError(f"failed to copy backup from {src} to {backup_path}: {e}") from e
            record = BackupRecord(
                id=record_id,
                src=str(src),
                backup=str(backup_path),
                created_at=now,
                expires_at=now + ttl_days * SECONDS_PER_DAY,
            )
            records.append(record)
            self._write_meta(records)
        self.logger.info(f"backup: {src} -> {backup_path}")
        return record

    def prune(self, ttl_days: int | None = None, now: float | None = None) -> list[BackupRecord]:
        """Delete expired backups. ``ttl_days`` measures age from creation instead of each entry's own expiry."""
        now = int(self.clock() if now is None else now)
        with self._lock:
            records = self._read_meta()
            kept, removed = self._prune(records, now, ttl_days)
            if removed or self.meta_path.exists():
                self._write_meta(kept)
        return removed

    def records(self) -> list[BackupRecord]:
        with self._lock:
            return self._read_meta()
