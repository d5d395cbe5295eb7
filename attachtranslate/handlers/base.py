# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from attachtranslate.agents.translation_cache import TranslationCache
from attachtranslate.errors import ExtractionError
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentKind, TranslationUnit
from attachtranslate.logger import global_logger


@dataclass(kw_only=True)
class HandlerConfig:
    logger: logging.Logger = global_logger
    with_comments: bool = False  # markup: translate comment bodies only
    force: bool = False  # lossy decoding, keep low-confidence OCR lines
    debug_ocr: bool = False  # write OCR bbox image and JSON next to the source
    debug_dir: Path | None = None


class AttachmentHandler(ABC):
    """
    Translates one kind of attachment in three steps: extract units, translate them, reconstruct bytes.
    """
    kind: AttachmentKind

    def __init__(self, config: HandlerConfig | None = None):
        self.config = config or HandlerConfig()
        self.logger = self.config.logger

    @abstractmethod
    def extract(self, document: Document) -> list[TranslationUnit]: ...

    @abstractmethod
    def reconstruct(self, document: Document, units: list[TranslationUnit], translations: list[str]) -> bytes: ...

    def output_mime(self, document: Document) -> str | None:
        return document.mime

    def translate_units(self, units: list[TranslationUnit], cache: TranslationCache) -> list[str]:
        return [cache.translate_preserve_whitespace(unit.text) for unit in units]

    def translate(self, document: Document, cache: TranslationCache) -> Document:
        units = self.extract(document)
        if not units:
            self.logger.info(f"{document.name or 'input'}: no translatable text found, content kept as is")
            translated = document.copy()
            translated.mime = self.output_mime(document)
            return translated
        translations = self.translate_units(units, cache)
        translated = document.copy()
        translated.content = self.reconstruct(document, units, translations)
        translated.mime = self.output_mime(document)
        return translated

    async def translate_async(self, document: Document, cache: TranslationCache) -> Document:
        return await asyncio.to_thread(self.translate, document, cache)


def decode_text(document: Document, force: bool = False) -> tuple[str, bool]:
    """
    Decode the document as UTF-8. Returns (text, had_bom).

    Invalid UTF-8 raises ExtractionError unless ``force`` is set, in which case it is decoded lossily.
    """
    raw = document.content
    had_bom = raw.startswith(b"\xef\xbb\xbf")
    if had_bom:
        raw = raw[3:]
    try:
        return raw.decode("utf-8"), had_bom
    except UnicodeDecodeError as e:
        if not force:
            raise ExtractionError(f"{document.name or 'input'} is not valid UTF-8: {e}") from e
        return raw.decode("utf-8", errors="replace"), had_bom


def encode_text(text: str, had_bom: bool) -> bytes:
    data = text.encode("utf-8")
    return b"\xef\xbb\xbf" + data if had_bom else data
