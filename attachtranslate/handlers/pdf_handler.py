# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from attachtranslate.agents.translation_cache import TranslationCache
from attachtranslate.errors import RenderError
from attachtranslate.handlers.base import AttachmentHandler, HandlerConfig
from attachtranslate.handlers.image_handler import debug_config_for
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentKind, TranslationUnit
from attachtranslate.ocr.rasterizer import DEFAULT_DPI, PdfRasterizer, encode_pdf
from attachtranslate.overlay.annotations import TranslatedRegion
from attachtranslate.overlay.renderer import OverlayRenderer


class PdfHandler(AttachmentHandler):
    """
    Each page is rasterized, overlaid like an image, and the pages are re-encoded as a PDF.
    The result is image-only: its text can no longer be selected. Pages without text pass through.
    """
    kind = AttachmentKind.PDF

    def __init__(self, renderer: OverlayRenderer, rasterizer: PdfRasterizer,
                 config: HandlerConfig | None = None, dpi: int = DEFAULT_DPI):
        super().__init__(config=config)
        self.renderer = renderer
        self.rasterizer = rasterizer
        self.dpi = dpi

    def _source(self, document: Document):
        return document.path if document.path is not None and document.path.exists() else document.content

    def _pages(self, document: Document) -> list[bytes]:
        source = self._source(document)
        count = self.rasterizer.page_count(source)
        if count == 0:
            raise RenderError("no pages found in pdf")
        self.logger.info(f"{document.name or 'pdf'}: rendering {count} page(s) at {self.dpi} dpi")
        return [self.rasterizer.render_page(source, page_no, self.dpi) for page_no in range(count)]

    def extract(self, document: Document) -> list[TranslationUnit]:
        units = []
        for page_no, page in enumerate(self._pages(document)):
            for i, region in enumerate(self.renderer.extract_regions(page)):
                units.append(TranslationUnit(text=region.text, key=(page_no, i), region=region.bbox))
        return units

    def reconstruct(self, document: Document, units: list[TranslationUnit], translations: list[str]) -> bytes:
        pages = self._pages(document)
        per_page: dict[int, list[TranslatedRegion]] = {}
        for unit, text in zip(units, translations):
            page_no, _ = unit.key
            per_page.setdefault(page_no, []).append(
                TranslatedRegion(original=unit.text.strip(), reading=None, translated=text, bbox=unit.region)
            )
        output = []
        for page_no, page in enumerate(pages):
            regions = per_page.get(page_no)
            output.append(self.renderer.compose(page, regions, output_mime="image/png") if regions else page)
        return encode_pdf(output, dpi=self.dpi)

    def translate(self, document: Document, cache: TranslationCache) -> Document:
        debug = debug_config_for(document, self.config)
        output = []
        for page_no, page in enumerate(self._pages(document)):
            self.logger.info(f"page {page_no + 1}: OCR overlay")
            output.append(self.renderer.render(
                page,
                cache,
                mime="image/png",
                source_lang=cache.language_pair.source_lang,
                allow_empty=True,
                debug=debug.for_page(page_no) if debug else None,
            ))
        translated = document.copy()
        translated.content = encode_pdf(output, dpi=self.dpi)
        return translated
