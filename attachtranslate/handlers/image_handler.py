# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from attachtranslate.agents.translation_cache import TranslationCache
from attachtranslate.handlers.base import AttachmentHandler, HandlerConfig
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentKind, TranslationUnit
from attachtranslate.mime.resolver import sniff_mime
from attachtranslate.overlay.annotations import TranslatedRegion
from attachtranslate.overlay.debug import DEFAULT_DEBUG_DIR, OcrDebugConfig
from attachtranslate.overlay.renderer import OverlayRenderer


def debug_config_for(document: Document, config: HandlerConfig) -> OcrDebugConfig | None:
    if not config.debug_ocr:
        return None
    return OcrDebugConfig.build(
        src_path=document.path,
        name=document.name,
        default_dir=config.debug_dir or DEFAULT_DEBUG_DIR,
    )


class ImageHandler(AttachmentHandler):
    """Raster images go through the OCR overlay; the output keeps the input's raster format."""
    kind = AttachmentKind.IMAGE

    def __init__(self, renderer: OverlayRenderer, config: HandlerConfig | None = None):
        super().__init__(config=config)
        self.renderer = renderer

    @staticmethod
    def _input_mime(document: Document) -> str:
        return sniff_mime(document.content) or document.mime or "image/png"

    def extract(self, document: Document) -> list[TranslationUnit]:
        regions = self.renderer.extract_regions(document.content, mime=self._input_mime(document))
        return [TranslationUnit(text=r.text, key=i, region=r.bbox) for i, r in enumerate(regions)]

    def reconstruct(self, document: Document, units: list[TranslationUnit], translations: list[str]) -> bytes:
        translated = [
            TranslatedRegion(original=unit.text.strip(), reading=None, translated=text, bbox=unit.region)
            for unit, text in zip(units, translations)
        ]
        return self.renderer.compose(document.content, translated, mime=self._input_mime(document),
                                     output_mime=document.mime)

    def translate(self, document: Document, cache: TranslationCache) -> Document:
        output = self.renderer.render(
            document.content,
            cache,
            mime=self._input_mime(document),
            output_mime=document.mime,
            source_lang=cache.language_pair.source_lang,
            allow_empty=False,
            debug=debug_config_for(document, self.config),
        )
        translated = document.copy()
        translated.content = output
        return translated
