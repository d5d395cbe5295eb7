# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Self

from attachtranslate.agents.oracle import TranslationOracle
from attachtranslate.agents.translation_cache import TranslationCache
from attachtranslate.backup.manager import BackupManager
from attachtranslate.cacher.metadata_cache import HistoryRecord, MetadataCache
from attachtranslate.handlers.base import HandlerConfig
from attachtranslate.handlers.registry import Collaborators, handler_for
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentJob, LanguagePair, StyleOptions
from attachtranslate.logger import global_logger
from attachtranslate.mime.resolver import extension_from_mime, resolve
from attachtranslate.utils.fileio import write_bytes_atomic

EXCERPT_LENGTH = 80


@dataclass(kw_only=True)
class AttachmentWorkflowConfig:
    logger: logging.Logger = global_logger
    language_pair: LanguagePair = field(default_factory=LanguagePair)
    style_options: StyleOptions = field(default_factory=StyleOptions)
    mime_hint: str = "auto"
    handler_config: HandlerConfig = field(default_factory=HandlerConfig)
    collaborators: Collaborators | None = None
    model_id: str | None = None  # recorded in history only


def _excerpt(document: Document) -> str:
    if document.mime and (document.mime.startswith("text/") or document.mime.endswith(("json", "xml"))):
        text = document.content[:EXCERPT_LENGTH * 4].decode("utf-8", errors="replace")
        return " ".join(text.split())[:EXCERPT_LENGTH]
    return document.name or "stdin"


class AttachmentWorkflow:
    """
    Translates one attachment: classify it, run the matching handler, and optionally write the result.

    Used directly for single files and stdin, and once per file by the directory workflow.
    """

    def __init__(self, oracle: TranslationOracle, config: AttachmentWorkflowConfig | None = None,
                 metadata_cache: MetadataCache | None = None, backup_manager: BackupManager | None = None):
        self.oracle = oracle
        self.config = config or AttachmentWorkflowConfig()
        self.logger = self.config.logger
        self.metadata_cache = metadata_cache
        self.backup_manager = backup_manager
        self.document_original: Document | None = None
        self.document_translated: Document | None = None

    def read_path(self, path: Path | str) -> Self:
        self.document_original = Document.from_path(path)
        self.document_translated = None
        return self

    def read_bytes(self, content: bytes, name: str | None = None) -> Self:
        stem, suffix = (Path(name).stem, Path(name).suffix) if name else (None, "")
        self.document_original = Document.from_bytes(content, suffix=suffix, stem=stem)
        self.document_translated = None
        return self

    def build_job(self, document: Document) -> AttachmentJob:
        resolution = resolve(
            document.content,
            self.config.mime_hint,
            name=document.name,
            force=self.config.handler_config.force,
        )
        source = document.copy()
        source.mime = resolution.mime
        self.logger.info(f"{document.name or 'stdin'}: {resolution.kind.value} ({resolution.mime}, via {resolution.source})")
        return AttachmentJob(
            source=source,
            mime=resolution,
            language_pair=self.config.language_pair,
            style_options=self.config.style_options,
        )

    def run_job(self, job: AttachmentJob) -> Document:
        handler = handler_for(job.mime.kind, self.config.handler_config, job.language_pair,
                              self.config.collaborators)
        cache = TranslationCache(self.oracle, job.language_pair, job.style_options, logger=self.logger)
        translated = handler.translate(job.source, cache)
        self.logger.info(f"{job.source.name or 'stdin'}: {cache.calls} oracle call(s)")
        return translated

    def translate_document(self, document: Document) -> Document:
        translated = self.run_job(self.build_job(document))
        self.record_history(document, translated)
        return translated

    def record_history(self, original: Document, translated: Document):
        if self.metadata_cache is None:
            return
        self.metadata_cache.record_history(HistoryRecord(
            timestamp=time.time(),
            source_lang=self.config.language_pair.source_lang,
            target_lang=self.config.language_pair.target_lang,
            excerpt=_excerpt(translated),
            model=self.config.model_id,
            source=str(original.path) if original.path else original.name,
        ))

    def translate(self) -> Self:
        if self.document_original is None:
            raise RuntimeError("File has not been read yet. Call read_path or read_bytes first.")
        self.document_translated = self.translate_document(self.document_original)
        return self

    async def translate_async(self) -> Self:
        if self.document_original is None:
            raise RuntimeError("File has not been read yet. Call read_path or read_bytes first.")
        self.document_translated = await asyncio.to_thread(self.translate_document, self.document_original)
        return self

    def output_extension(self) -> str | None:
        """Extension for a translated document whose name carries none (stdin, extensionless files)."""
        translated = self.document_translated
        if translated is None or translated.suffix or not translated.mime:
            return None
        return extension_from_mime(translated.mime)

    def save(self, out_path: Path, overwrite: bool = False) -> Path:
        """
        Write the translated bytes. In-place overwrites are backed up first.

        Raises:
            ValueError: ``overwrite`` targets an existing file and no backup manager is configured.
        """
        if self.document_translated is None:
            raise RuntimeError("Nothing translated yet. Call translate first.")
        if overwrite and out_path.exists():
            if self.backup_manager is None:
                raise ValueError(f"refusing to overwrite {out_path} without a backup manager")
            self.backup_manager.backup(out_path)
        write_bytes_atomic(out_path, self.document_translated.content)
        if self.metadata_cache is not None:
            self.metadata_cache.flush()
        self.logger.info(f"wrote {out_path}")
        return out_path
