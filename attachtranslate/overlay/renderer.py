# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import io
import logging
import math
import os
from dataclasses import dataclass, field
from enum import Enum

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from attachtranslate.agents.translation_cache import TranslationCache
from attachtranslate.errors import AttachmentError, RenderError
from attachtranslate.logger import global_logger
from attachtranslate.ocr.extractor import OcrExtractor, OcrRegion
from attachtranslate.overlay.annotations import OverlayAnnotation, TranslatedRegion, number_annotations, reading_order
from attachtranslate.overlay.debug import OcrDebugConfig, write_debug_artifacts
from attachtranslate.overlay.style import OverlayStyle
from attachtranslate.utils.text_utils import (
    collapse_whitespace,
    contains_non_latin_script,
    is_latin_reading,
    is_numeric_like,
    sanitize_ocr_text,
    should_filter_by_source_lang,
    should_keep_cjk_line,
)

PIL_FORMATS = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
    "image/bmp": "BMP",
    "image/tiff": "TIFF",
}

FONT_CANDIDATES = [
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/System/Library/Fonts/Hiragino Sans GB.ttc",
    "/System/Library/Fonts/Supplemental/Arial Unicode.ttf",
    "/Library/Fonts/Arial Unicode.ttf",
    "C:/Windows/Fonts/msgothic.ttc",
    "C:/Windows/Fonts/arial.ttf",
]


class OverlayStage(Enum):
    EXTRACTED = 1
    TRANSLATED = 2
    DEDUPLICATED = 3
    COMPOSITED = 4
    WRITTEN = 5


@dataclass(kw_only=True)
class RendererConfig:
    logger: logging.Logger = global_logger
    style: OverlayStyle = field(default_factory=OverlayStyle)
    min_confidence: float = 0.5
    force: bool = False


class OverlayPass:
    """
    One image on its way through the overlay. Stages only move forward, one step at a time.
    """

    def __init__(self, image_bytes: bytes, mime: str):
        self.image_bytes = image_bytes
        self.mime = mime
        self.stage: OverlayStage | None = None
        self.regions: list[OcrRegion] = []
        self.translated: list[TranslatedRegion] = []
        self.annotations: list[OverlayAnnotation] = []
        self.canvas: Image.Image | None = None
        self.output: bytes | None = None

    def advance(self, stage: OverlayStage):
        if self.stage is None:
            expected = OverlayStage.EXTRACTED
        elif self.stage is OverlayStage.WRITTEN:
            expected = None
        else:
            expected = OverlayStage(self.stage.value + 1)
        if stage != expected:
            raise RenderError(f"illegal overlay transition {self.stage} -> {stage}")
        self.stage = stage


class FontSet:
    def __init__(self, font_path: str | None = None):
        paths = [font_path] if font_path else []
        paths.extend(FONT_CANDIDATES)
        self.paths = [p for p in paths if p and os.path.exists(p)]
        self._cache: dict[int, ImageFont.ImageFont] = {}

    def get(self, size: float) -> ImageFont.ImageFont:
        size = int(max(6, round(size)))
        if size in self._cache:
            return self._cache[size]
        font = None
        for path in self.paths:
            try:
                font = ImageFont.truetype(path, size=size)
                break
            except OSError:
                continue
        if font is None:
            font = ImageFont.load_default(size=size)
        self._cache[size] = font
        return font


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> list[str]:
    if draw.textlength(text, font=font) <= max_width:
        return [text]
    # break on spaces when there are any, otherwise per character (CJK)
    tokens = text.split(" ") if " " in text else list(text)
    joiner = " " if " " in text else ""
    lines: list[str] = []
    current = ""
    for token in tokens:
        candidate = f"{current}{joiner}{token}" if current else token
        if current and draw.textlength(candidate, font=font) > max_width:
            lines.append(current)
            current = token
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


class OverlayRenderer:
    """
    Annotates an image with numbered markers over each text region and a footer legend
    mapping every number to its original text, optional reading and translation.
    """

    def __init__(self, extractor: OcrExtractor, config: RendererConfig | None = None):
        self.extractor = extractor
        self.config = config or RendererConfig()
        self.logger = self.config.logger
        self.fonts = FontSet(self.config.style.font_path)

    # --- stages ---

    def _extract(self, state: OverlayPass, source_lang: str):
        try:
            regions = self.extractor.extract(state.image_bytes)
        except AttachmentError:
            raise
        except Exception as e:
            raise RenderError(f"OCR failed: {e}") from e
        kept = []
        for region in regions:
            if region.confidence < self.config.min_confidence and not self.config.force:
                continue
            cleaned = sanitize_ocr_text(collapse_whitespace(region.text))
            if not cleaned.strip() or is_numeric_like(cleaned.strip()):
                continue
            kept.append(region)
        if should_filter_by_source_lang(source_lang):
            kept = [r for r in kept if should_keep_cjk_line(r.text)]
        state.regions = kept
        state.advance(OverlayStage.EXTRACTED)

    def _translate(self, state: OverlayPass, cache: TranslationCache):
        ordered = sorted(state.regions, key=lambda r: (r.bbox.y, r.bbox.x))
        for region in ordered:
            original = sanitize_ocr_text(collapse_whitespace(region.text)).strip()
            result = cache.translate_ocr_line(region.text)
            reading = None
            if result.reading and contains_non_latin_script(original) and is_latin_reading(result.reading):
                reading = collapse_whitespace(result.reading.strip())
            state.translated.append(TranslatedRegion(
                original=original,
                reading=reading,
                translated=result.translated,
                bbox=region.bbox,
            ))
        state.advance(OverlayStage.TRANSLATED)

    def _deduplicate(self, state: OverlayPass):
        state.annotations = number_annotations(reading_order(state.translated))
        state.advance(OverlayStage.DEDUPLICATED)

    def _composite(self, state: OverlayPass):
        style = self.config.style
        try:
            image = Image.open(io.BytesIO(state.image_bytes))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise RenderError(f"cannot decode image: {e}") from e
        image = image.convert("RGBA")
        width, height = image.size

        footer_font_size = max(style.font_size or 14, 10)
        footer_padding = min(max(footer_font_size * 0.7, 6), 16)
        footer_inner_w = max(width - footer_padding * 2, 40)
        footer_font = self.fonts.get(footer_font_size)
        line_height = footer_font_size * 1.2

        measure = ImageDraw.Draw(image)
        footer_lines: list[str] = []
        for annotation in state.annotations:
            footer_lines.extend(_wrap(measure, annotation.footer_line(), footer_font, footer_inner_w))
        footer_height = len(footer_lines) * line_height + footer_padding * 2 if footer_lines else 0

        canvas = Image.new("RGBA", (width, height + math.ceil(footer_height)), style.fill_color)
        canvas.paste(image, (0, 0))
        draw = ImageDraw.Draw(canvas)

        for annotation in state.annotations:
            for box in annotation.regions:
                draw.rectangle([box.x, box.y, box.right, box.bottom], outline=style.stroke_color, width=2)
                self._draw_marker(draw, annotation.marker, box, height)

        if footer_lines:
            draw.rectangle([0, height, width, canvas.height], fill=style.fill_color)
            draw.line([0, height, width, height], fill=style.stroke_color, width=1)
            y = height + footer_padding
            for line in footer_lines:
                draw.text((footer_padding, y), line, fill=style.text_color, font=footer_font)
                y += line_height
        state.canvas = canvas
        state.advance(OverlayStage.COMPOSITED)

    def _draw_marker(self, draw: ImageDraw.ImageDraw, label: str, box, layout_height: int):
        style = self.config.style
        font_size = style.font_size or box.height * 0.8
        font_size = min(max(font_size, 10), max(10, layout_height * 0.2))
        font = self.fonts.get(font_size)
        pad = max(2, int(font_size * 0.2))
        left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
        box_w = right - left + pad * 2
        box_h = bottom - top + pad * 2
        x = box.x
        y = box.y - box_h - 2 if box.y - box_h - 2 >= 0 else box.y
        draw.rectangle([x, y, x + box_w, y + box_h], fill=style.fill_color, outline=style.stroke_color, width=2)
        draw.text((x + pad - left, y + pad - top), label, fill=style.text_color, font=font)

    def _write(self, state: OverlayPass, output_mime: str):
        fmt = PIL_FORMATS.get(output_mime, "PNG")
        canvas = state.canvas
        if fmt in ("JPEG", "BMP", "GIF"):
            canvas = canvas.convert("RGB")
        out = io.BytesIO()
        try:
            canvas.save(out, format=fmt)
        except (OSError, ValueError, KeyError) as e:
            raise RenderError(f"cannot encode {output_mime}: {e}") from e
        state.output = out.getvalue()
        state.advance(OverlayStage.WRITTEN)

    # --- entry point ---

    def render(self, image_bytes: bytes, cache: TranslationCache, *, mime: str = "image/png",
               output_mime: str | None = None, source_lang: str = "auto", allow_empty: bool = False,
               debug: OcrDebugConfig | None = None) -> bytes:
        """
        Run the overlay pass on one image.

        With ``allow_empty`` an image without usable text is returned unchanged (PDF pages);
        otherwise it raises RenderError. Any failure discards the partial pass.
        """
        state = self._annotated_pass(image_bytes, cache, mime=mime, source_lang=source_lang,
                                     allow_empty=allow_empty, debug=debug)
        if state is None:
            self.logger.info("no text found on page, kept as is")
            return image_bytes
        self._composite(state)
        self._write(state, output_mime or mime)
        self.logger.info(f"overlay: {len(state.regions)} region(s), {len(state.annotations)} footer entries")
        return state.output

    def _annotated_pass(self, image_bytes: bytes, cache: TranslationCache, *, mime: str, source_lang: str,
                        allow_empty: bool, debug: OcrDebugConfig | None) -> OverlayPass | None:
        state = OverlayPass(image_bytes, mime)
        self._extract(state, source_lang)
        if not state.regions:
            if allow_empty:
                return None
            raise RenderError("no text found in image")
        if debug is not None:
            try:
                write_debug_artifacts(debug, image_bytes, state.regions, logger=self.logger)
            except (OSError, UnidentifiedImageError) as e:
                raise RenderError(f"cannot write OCR debug output: {e}") from e
        self._translate(state, cache)
        self._deduplicate(state)
        return state

    def annotate(self, image_bytes: bytes, cache: TranslationCache, *, mime: str = "image/png",
                 source_lang: str = "auto") -> list[OverlayAnnotation]:
        """The numbered footer entries ``render`` would draw, without compositing."""
        state = self._annotated_pass(image_bytes, cache, mime=mime, source_lang=source_lang,
                                     allow_empty=True, debug=None)
        return state.annotations if state is not None else []

    def extract_regions(self, image_bytes: bytes, source_lang: str = "auto", mime: str = "image/png") -> list[OcrRegion]:
        state = OverlayPass(image_bytes, mime)
        self._extract(state, source_lang)
        return sorted(state.regions, key=lambda r: (r.bbox.y, r.bbox.x))

    def compose(self, image_bytes: bytes, translated: list[TranslatedRegion], *, mime: str = "image/png",
                output_mime: str | None = None) -> bytes:
        """Number, composite and encode regions that were translated elsewhere."""
        state = OverlayPass(image_bytes, mime)
        state.regions = []
        state.advance(OverlayStage.EXTRACTED)
        state.translated = list(translated)
        state.advance(OverlayStage.TRANSLATED)
        self._deduplicate(state)
        self._composite(state)
        self._write(state, output_mime or mime)
        return state.output
