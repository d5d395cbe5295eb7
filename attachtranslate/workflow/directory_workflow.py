# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import asyncio
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from attachtranslate.agents.oracle import TranslationOracle
from attachtranslate.backup.manager import BackupManager
from attachtranslate.cacher.metadata_cache import MetadataCache
from attachtranslate.errors import AmbiguousMime, UnsupportedKind
from attachtranslate.ignore.matcher import DEFAULT_IGNORE_FILE, IgnoreMatcher
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentJob
from attachtranslate.logger import global_logger
from attachtranslate.output.resolver import DEFAULT_SUFFIX, resolve_in_tree, validate_directory_output
from attachtranslate.utils.fileio import write_bytes_atomic
from attachtranslate.workflow.attachment_workflow import AttachmentWorkflow, AttachmentWorkflowConfig

DEFAULT_CONCURRENCY = 3
MAX_LISTED_FAILURES = 20


@dataclass
class Success:
    output_path: Path


@dataclass
class Failure:
    error: Exception
    output_path: Path | None = None  # where the original bytes were copied


@dataclass
class Skipped:
    reason: str
    output_path: Path | None = None


Outcome = Success | Failure | Skipped


@dataclass
class DirectoryTranslationTask:
    relative_path: Path
    job: AttachmentJob | None = None
    outcome: Outcome | None = None


@dataclass
class DirectoryReport:
    root: Path
    output_root: Path
    tasks: list[DirectoryTranslationTask] = field(default_factory=list)
    ignored: list[Path] = field(default_factory=list)

    def _count(self, kind: type) -> int:
        return sum(1 for task in self.tasks if isinstance(task.outcome, kind))

    @property
    def translated(self) -> int:
        return self._count(Success)

    @property
    def skipped(self) -> int:
        return self._count(Skipped)

    @property
    def failed(self) -> int:
        return self._count(Failure)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0

    def failures(self) -> list[DirectoryTranslationTask]:
        return [task for task in self.tasks if isinstance(task.outcome, Failure)]

    def summary_line(self) -> str:
        total = len(self.tasks) + len(self.ignored)
        return (f"files: {self.translated} translated, {len(self.ignored)} copied, "
                f"{self.skipped} skipped, {self.failed} failed (total {total})")

    def failure_lines(self, limit: int = MAX_LISTED_FAILURES) -> list[str]:
        failures = self.failures()
        lines = [f"  {task.relative_path.as_posix()}: {task.outcome.error}" for task in failures[:limit]]
        if len(failures) > limit:
            lines.append(f"  ... and {len(failures) - limit} more")
        return lines

    def to_dict(self) -> dict:
        def outcome_dict(outcome: Outcome | None) -> dict:
            match outcome:
                case Success(output_path=path):
                    return {"status": "success", "output": str(path)}
                case Failure(error=error, output_path=path):
                    return {"status": "failure", "error": str(error), "error_type": type(error).__name__,
                            "output": str(path) if path else None}
                case Skipped(reason=reason, output_path=path):
                    return {"status": "skipped", "reason": reason, "output": str(path) if path else None}
            return {"status": "pending"}

        return {
            "root": str(self.root),
            "output_root": str(self.output_root),
            "summary": {
                "translated": self.translated,
                "copied": len(self.ignored),
                "skipped": self.skipped,
                "failed": self.failed,
            },
            "tasks": [{"path": task.relative_path.as_posix(), **outcome_dict(task.outcome)} for task in self.tasks],
            "ignored": [p.as_posix() for p in self.ignored],
        }


@dataclass(kw_only=True)
class DirectoryWorkflowConfig:
    logger: logging.Logger = global_logger
    concurrency: int = DEFAULT_CONCURRENCY
    strict: bool = False  # unsupported files fail instead of being skipped
    suffix: str = DEFAULT_SUFFIX
    ignore_file: str = DEFAULT_IGNORE_FILE
    ignore_patterns: list[str] = field(default_factory=list)
    overwrite: bool = False
    out: Path | None = None
    attachment_config: AttachmentWorkflowConfig = field(default_factory=AttachmentWorkflowConfig)


class DirectoryWorkflow:
    """
    Translates every file under a root with a fixed pool of workers.

    Each file is an isolated task: a failure is recorded in the report and the original bytes
    are copied to the output location, the rest of the run carries on.
    """

    def __init__(self, oracle: TranslationOracle, config: DirectoryWorkflowConfig | None = None,
                 metadata_cache: MetadataCache | None = None, backup_manager: BackupManager | None = None):
        self.config = config or DirectoryWorkflowConfig()
        if self.config.overwrite and backup_manager is None:
            raise ValueError("overwrite requires a backup manager")
        self.logger = self.config.logger
        self.backup_manager = backup_manager
        self.metadata_cache = metadata_cache
        self.attachment = AttachmentWorkflow(oracle, self.config.attachment_config,
                                             metadata_cache=metadata_cache, backup_manager=backup_manager)

    def output_root(self, root: Path) -> Path:
        return validate_directory_output(root, self.config.out, self.config.overwrite, suffix=self.config.suffix)

    def collect(self, root: Path, output_root: Path | None = None) -> tuple[list[Path], list[Path]]:
        """Relative paths of files to translate and of ignored files, both sorted."""
        matcher = IgnoreMatcher.from_root(root, self.config.ignore_file, self.config.ignore_patterns)
        skip_dir = output_root.resolve() if output_root is not None and output_root != root else None
        accepted, ignored = [], []
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            kept_dirs = []
            for name in sorted(dirnames):
                path = current / name
                if skip_dir is not None and path.resolve() == skip_dir:
                    continue
                rel = path.relative_to(root)
                if matcher.is_ignored(rel, is_dir=True):
                    ignored.extend(p.relative_to(root) for p in sorted(path.rglob("*")) if p.is_file())
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs
            for name in filenames:
                rel = (current / name).relative_to(root)
                if rel.as_posix() == self.config.ignore_file or matcher.is_ignored(rel):
                    ignored.append(rel)
                else:
                    accepted.append(rel)
        return sorted(accepted), sorted(ignored)

    def _copy_through(self, src: Path, dest: Path):
        if src.resolve() == dest.resolve():
            return
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)

    def process(self, root: Path, output_root: Path, rel: Path) -> DirectoryTranslationTask:
        """Run one file end to end. Never raises: the outcome records what happened."""
        task = DirectoryTranslationTask(relative_path=rel)
        src = root / rel
        plain_dest = output_root / rel
        try:
            document = Document.from_path(src)
            task.job = self.attachment.build_job(document)
        except (UnsupportedKind, AmbiguousMime) as e:
            if self.config.strict:
                return self._fail(task, src, plain_dest, e)
            try:
                self._copy_through(src, plain_dest)
            except OSError as copy_error:
                return self._fail(task, src, plain_dest, copy_error)
            task.outcome = Skipped(reason=str(e), output_path=plain_dest)
            self.logger.info(f"{rel.as_posix()}: skipped ({e})")
            return task
        except Exception as e:
            return self._fail(task, src, plain_dest, e)

        try:
            translated = self.attachment.run_job(task.job)
            dest = resolve_in_tree(root, output_root, src, task.job.mime.mime, translated.mime)
            if self.config.overwrite:
                self.backup_manager.backup(src)
            write_bytes_atomic(dest, translated.content)
            self.attachment.record_history(document, translated)
            task.outcome = Success(output_path=dest)
            self.logger.info(f"{rel.as_posix()}: translated -> {dest}")
        except Exception as e:
            return self._fail(task, src, plain_dest, e)
        return task

    def _fail(self, task: DirectoryTranslationTask, src: Path, dest: Path, error: Exception):
        self.logger.error(f"{task.relative_path.as_posix()}: {error}")
        copied = None
        try:
            self._copy_through(src, dest)
            copied = dest
        except OSError as e:
            self.logger.error(f"{task.relative_path.as_posix()}: copy-through failed: {e}")
        task.outcome = Failure(error=error, output_path=copied)
        return task

    async def run_async(self, root: Path | str) -> DirectoryReport:
        root = Path(root)
        if not root.is_dir():
            raise NotADirectoryError(f"not a directory: {root}")
        output_root = self.output_root(root)
        accepted, ignored = self.collect(root, output_root)
        report = DirectoryReport(root=root, output_root=output_root, ignored=ignored)

        if output_root != root:
            for rel in ignored:
                await asyncio.to_thread(self._copy_through, root / rel, output_root / rel)

        concurrency = max(1, self.config.concurrency)
        total = len(accepted)
        self.logger.info(f"{root}: {total} file(s) to translate, {len(ignored)} ignored; concurrency: {concurrency}")

        pending: asyncio.Queue[Path | None] = asyncio.Queue()
        results: asyncio.Queue[tuple[Path, DirectoryTranslationTask]] = asyncio.Queue()
        for rel in accepted:
            pending.put_nowait(rel)
        for _ in range(concurrency):
            pending.put_nowait(None)

        async def worker():
            while True:
                rel = await pending.get()
                if rel is None:
                    return
                task = await asyncio.to_thread(self.process, root, output_root, rel)
                await results.put((rel, task))

        workers = [asyncio.create_task(worker()) for _ in range(concurrency)]
        done: dict[Path, DirectoryTranslationTask] = {}
        while len(done) < total:
            rel, task = await results.get()
            done[rel] = task
            self.logger.info(f"progress: {len(done)}/{total}")
        await asyncio.gather(*workers)

        report.tasks = [done[rel] for rel in accepted]
        if self.metadata_cache is not None:
            await asyncio.to_thread(self.metadata_cache.flush)
        self.logger.info(report.summary_line())
        return report

    def run(self, root: Path | str) -> DirectoryReport:
        return asyncio.run(self.run_async(root))
