# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from threading import Lock
from typing import Callable

from attachtranslate.logger import global_logger
from attachtranslate.utils.fileio import write_json_atomic

MODEL_CACHE_TTL = 24 * 60 * 60
DEFAULT_HISTORY_LIMIT = 100
HISTORY_FILE_NAME = "history.json"

ModelFetcher = Callable[[str], list[str]]


@dataclass
class ModelListCacheEntry:
    provider: str
    fetched_at: float
    models: list[str] = field(default_factory=list)

    def is_fresh(self, now: float, ttl: float = MODEL_CACHE_TTL) -> bool:
        return now - self.fetched_at < ttl


@dataclass
class HistoryRecord:
    timestamp: float
    source_lang: str
    target_lang: str
    excerpt: str
    model: str | None = None
    source: str | None = None
    output: str | None = None


class MetadataCache:
    """
    Process-scoped store for provider model lists and translation history.

    State is read with ``load()`` and persisted with ``flush()``. Every mutation holds the lock,
    and files are replaced atomically.
    """

    def __init__(self, root: Path | str, history_limit: int = DEFAULT_HISTORY_LIMIT,
                 fetcher: ModelFetcher | None = None, clock: Callable[[], float] = time.time,
                 ttl: float = MODEL_CACHE_TTL, logger: logging.Logger = global_logger):
        self.root = Path(root)
        self.history_limit = history_limit if history_limit > 0 else DEFAULT_HISTORY_LIMIT
        self.fetcher = fetcher
        self.clock = clock
        self.ttl = ttl
        self.logger = logger
        self._lock = Lock()
        self._models: dict[str, ModelListCacheEntry] = {}
        self._history: list[HistoryRecord] = []
        self._dirty_models: set[str] = set()
        self._dirty_history = False

    def _model_path(self, provider: str) -> Path:
        return self.root / f"models_{provider}.json"

    @property
    def history_path(self) -> Path:
        return self.root / HISTORY_FILE_NAME

    def _read_model_file(self, provider: str) -> ModelListCacheEntry | None:
        path = self._model_path(provider)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return ModelListCacheEntry(provider=provider, fetched_at=float(data["fetched_at"]),
                                       models=list(data.get("models", [])))
        except (OSError, ValueError, KeyError, TypeError) as e:
            self.logger.warning(f"ignoring unreadable model cache {path}: {e}")
            return None

    def load(self):
        with self._lock:
            self._models.clear()
            for path in sorted(self.root.glob("models_*.json")):
                provider = path.stem.removeprefix("models_")
                entry = self._read_model_file(provider)
                if entry is not None:
                    self._models[provider] = entry
            self._history = []
            if self.history_path.exists():
                try:
                    data = json.loads(self.history_path.read_text(encoding="utf-8"))
                    self._history = [HistoryRecord(**item) for item in data]
                except (OSError, ValueError, TypeError) as e:
                    self.logger.warning(f"ignoring unreadable history {self.history_path}: {e}")
            self._history = self._history[-self.history_limit:]
            self._dirty_models.clear()
            self._dirty_history = False
        return self

    def flush(self):
        with self._lock:
            for provider in sorted(self._dirty_models):
                entry = self._models[provider]
                write_json_atomic(self._model_path(provider),
                                  {"fetched_at": entry.fetched_at, "models": entry.models})
            if self._dirty_history:
                write_json_atomic(self.history_path, [asdict(r) for r in self._history])
            self._dirty_models.clear()
            self._dirty_history = False

    def get_or_refresh(self, provider: str, force: bool = False) -> list[str]:
        """Cached model list while younger than the TTL, otherwise fetched and stored."""
        now = self.clock()
        with self._lock:
            entry = self._models.get(provider)
            if entry is not None and not force and entry.is_fresh(now, self.ttl):
                return list(entry.models)
        if self.fetcher is None:
            raise RuntimeError("no model fetcher configured")
        self.logger.info(f"models: fetching list for {provider}")
        models = sorted(self.fetcher(provider))
        with self._lock:
            self._models[provider] = ModelListCacheEntry(provider=provider, fetched_at=now, models=models)
            self._dirty_models.add(provider)
        self.flush()
        return list(models)

    def record_history(self, entry: HistoryRecord):
        with self._lock:
            self._history.append(entry)
            overflow = len(self._history) - self.history_limit
            if overflow > 0:
                del self._history[:overflow]
            self._dirty_history = True

    def histories(self) -> list[HistoryRecord]:
        with self._lock:
            return list(self._history)
