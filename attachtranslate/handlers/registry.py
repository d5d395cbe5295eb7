# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import logging
from dataclasses import dataclass, field

from attachtranslate.audio.speech import EspeakSynthesizer, SpeechToText, TextToSpeech, WhisperCliTranscriber
from attachtranslate.handlers.audio_handler import AudioHandler
from attachtranslate.handlers.base import AttachmentHandler, HandlerConfig
from attachtranslate.handlers.image_handler import ImageHandler
from attachtranslate.handlers.markup_handler import MarkupHandler
from attachtranslate.handlers.office_handler import OfficeHandler
from attachtranslate.handlers.pdf_handler import PdfHandler
from attachtranslate.handlers.text_handler import TextHandler
from attachtranslate.ir.types import AttachmentKind, LanguagePair
from attachtranslate.logger import global_logger
from attachtranslate.ocr.extractor import OcrExtractor, TesseractExtractor, tesseract_languages
from attachtranslate.ocr.rasterizer import DEFAULT_DPI, PdfRasterizer, PyMuPDFRasterizer
from attachtranslate.overlay.renderer import OverlayRenderer, RendererConfig
from attachtranslate.overlay.style import OverlayStyle


@dataclass(kw_only=True)
class Collaborators:
    """External engines the handlers lean on. Unset ones get the default implementation."""
    logger: logging.Logger = global_logger
    extractor: OcrExtractor | None = None
    rasterizer: PdfRasterizer | None = None
    transcriber: SpeechToText | None = None
    synthesizer: TextToSpeech | None = None
    style: OverlayStyle = field(default_factory=OverlayStyle)
    min_confidence: float = 0.5
    pdf_dpi: int = DEFAULT_DPI


def build_renderer(collaborators: Collaborators, config: HandlerConfig, source_lang: str) -> OverlayRenderer:
    extractor = collaborators.extractor or TesseractExtractor(
        languages=tesseract_languages(source_lang), logger=collaborators.logger
    )
    return OverlayRenderer(extractor, RendererConfig(
        logger=collaborators.logger,
        style=collaborators.style,
        min_confidence=collaborators.min_confidence,
        force=config.force,
    ))


def handler_for(kind: AttachmentKind, config: HandlerConfig, language_pair: LanguagePair,
                collaborators: Collaborators | None = None) -> AttachmentHandler:
    """One handler per job; handlers hold no state across jobs."""
    collaborators = collaborators or Collaborators(logger=config.logger)
    match kind:
        case AttachmentKind.TEXT:
            return TextHandler(config=config)
        case AttachmentKind.MARKUP:
            return MarkupHandler(config=config)
        case AttachmentKind.OFFICE:
            return OfficeHandler(config=config)
        case AttachmentKind.IMAGE:
            return ImageHandler(build_renderer(collaborators, config, language_pair.source_lang), config=config)
        case AttachmentKind.PDF:
            return PdfHandler(
                build_renderer(collaborators, config, language_pair.source_lang),
                collaborators.rasterizer or PyMuPDFRasterizer(),
                config=config,
                dpi=collaborators.pdf_dpi,
            )
        case AttachmentKind.AUDIO:
            return AudioHandler(
                collaborators.transcriber or WhisperCliTranscriber(logger=collaborators.logger),
                collaborators.synthesizer or EspeakSynthesizer(logger=collaborators.logger),
                config=config,
                source_lang=language_pair.source_lang,
                target_lang=language_pair.target_lang,
            )
    raise ValueError(f"no handler for {kind}")
