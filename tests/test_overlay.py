# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import io
import json

import pytest
from PIL import Image

from conftest import FakeExtractor, FakeOracle, make_png, region
from attachtranslate.agents.translation_cache import TranslationCache
from attachtranslate.errors import RenderError
from attachtranslate.handlers.base import HandlerConfig
from attachtranslate.handlers.registry import Collaborators, handler_for
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentKind, BBox, LanguagePair
from attachtranslate.overlay.annotations import OverlayAnnotation, TranslatedRegion, number_annotations
from attachtranslate.overlay.debug import OcrDebugConfig
from attachtranslate.overlay.renderer import OverlayPass, OverlayRenderer, OverlayStage, RendererConfig

CAT_ORACLE = {"子猫": "Cat", "ねこ": "Cat", "大きい犬": "Big dog"}


def _cache(oracle: FakeOracle) -> TranslationCache:
    return TranslationCache(oracle, LanguagePair("ja", "en"))


def _renderer(regions, **config) -> OverlayRenderer:
    return OverlayRenderer(FakeExtractor(regions), RendererConfig(**config))


def test_numbering_follows_first_seen_translation():
    regions = [
        TranslatedRegion("ねこ", None, "Cat", BBox(10, 40, 30, 12)),
        TranslatedRegion("子猫", "koneko", "Cat", BBox(10, 10, 30, 12)),
        TranslatedRegion("犬", None, "Dog", BBox(60, 10, 30, 12)),
    ]
    annotations = number_annotations(regions)
    assert [(a.index, a.translated) for a in annotations] == [(1, "Cat"), (2, "Dog")]
    # the top-left region is seen first and names the entry
    assert annotations[0].original == "子猫"
    assert annotations[0].reading == "koneko"
    assert annotations[0].regions == [BBox(10, 10, 30, 12), BBox(10, 40, 30, 12)]


def test_translations_differing_only_in_whitespace_share_an_index():
    box = BBox(0, 0, 10, 10)
    annotations = number_annotations([
        TranslatedRegion("a", None, "Cat ", box),
        TranslatedRegion("b", None, " Cat", BBox(0, 20, 10, 10)),
        TranslatedRegion("a", None, "Cat", box),
    ])
    assert len(annotations) == 1
    assert annotations[0].regions == [box, BBox(0, 20, 10, 10)]


def test_footer_line_format():
    with_reading = OverlayAnnotation(index=1, original="子猫", reading="koneko", translated="Cat")
    plain = OverlayAnnotation(index=2, original="Hund", reading=None, translated="Dog")
    assert with_reading.footer_line() == "(1) 子猫 (koneko) : Cat"
    assert plain.footer_line() == "(2) Hund: Dog"
    assert plain.marker == "(2)"


def test_renderer_merges_identical_translations(png_bytes):
    oracle = FakeOracle(CAT_ORACLE, readings={"子猫": "koneko", "ねこ": "neko"})
    renderer = _renderer([
        region("ねこ", 10, 40),
        region("子猫", 10, 10),
        region("大きい犬", 60, 10),
    ])
    annotations = renderer.annotate(png_bytes, _cache(oracle), source_lang="ja")

    assert [a.footer_line() for a in annotations] == ["(1) 子猫 (koneko) : Cat", "(2) 大きい犬: Big dog"]
    assert annotations[0].regions == [BBox(10, 10, 40, 16), BBox(10, 40, 40, 16)]


def test_reading_dropped_when_not_latin(png_bytes):
    oracle = FakeOracle(CAT_ORACLE, readings={"子猫": "こねこ"})
    annotations = _renderer([region("子猫", 10, 10)]).annotate(png_bytes, _cache(oracle))
    assert annotations[0].reading is None


def test_low_confidence_and_numeric_lines_are_dropped(png_bytes):
    regions = [region("子猫", 10, 10), region("ねこ", 10, 40, confidence=0.2), region("2024", 60, 10)]
    oracle = FakeOracle(CAT_ORACLE)
    annotations = _renderer(regions).annotate(png_bytes, _cache(oracle))
    assert len(annotations) == 1
    assert annotations[0].regions == [BBox(10, 10, 40, 16)]
    assert oracle.requests == ["子猫"]


def test_force_keeps_low_confidence_lines(png_bytes):
    regions = [region("子猫", 10, 10), region("ねこ", 10, 40, confidence=0.2)]
    annotations = _renderer(regions, force=True).annotate(png_bytes, _cache(FakeOracle(CAT_ORACLE)))
    assert len(annotations[0].regions) == 2


def test_render_adds_footer_below_image(png_bytes):
    renderer = _renderer([region("子猫", 10, 10), region("ねこ", 10, 40)])
    output = renderer.render(png_bytes, _cache(FakeOracle(CAT_ORACLE)), mime="image/png")
    image = Image.open(io.BytesIO(output))
    assert image.format == "PNG"
    assert image.width == 120
    assert image.height > 80


def test_render_keeps_requested_output_format(png_bytes):
    renderer = _renderer([region("子猫", 10, 10)])
    output = renderer.render(png_bytes, _cache(FakeOracle(CAT_ORACLE)), mime="image/png", output_mime="image/jpeg")
    assert output.startswith(b"\xff\xd8\xff")


def test_image_without_text_fails(png_bytes):
    with pytest.raises(RenderError):
        _renderer([]).render(png_bytes, _cache(FakeOracle()))


def test_page_without_text_is_kept_when_allowed(png_bytes):
    assert _renderer([]).render(png_bytes, _cache(FakeOracle()), allow_empty=True) == png_bytes


def test_extractor_failure_becomes_render_error(png_bytes):
    class Broken:
        def extract(self, image_bytes):
            raise RuntimeError("tesseract exploded")

    with pytest.raises(RenderError, match="tesseract exploded"):
        OverlayRenderer(Broken()).render(png_bytes, _cache(FakeOracle()))


def test_debug_artifacts_are_written_and_rendering_continues(tmp_path):
    image = make_png(200, 100)
    debug = OcrDebugConfig.build(name="shot.png", default_dir=tmp_path)
    output = _renderer([region("子猫", 10, 10)]).render(image, _cache(FakeOracle(CAT_ORACLE)), debug=debug)

    assert (tmp_path / "shot_ocr_bbox.png").is_file()
    entries = json.loads((tmp_path / "shot_ocr.json").read_text(encoding="utf-8"))
    assert entries == [{"text": "子猫", "bbox": {"x": 10, "y": 10, "w": 40, "h": 16}, "confidence": 0.9}]
    assert Image.open(io.BytesIO(output)).height > 100


def test_overlay_stages_only_move_forward(png_bytes):
    state = OverlayPass(png_bytes, "image/png")
    state.advance(OverlayStage.EXTRACTED)
    with pytest.raises(RenderError):
        state.advance(OverlayStage.COMPOSITED)


# --- image and PDF handlers ---

class StubRasterizer:
    def __init__(self, pages: list[bytes]):
        self.pages = pages

    def page_count(self, source):
        return len(self.pages)

    def render_page(self, source, page_no, dpi=200):
        return self.pages[page_no]


def _collaborators(regions, rasterizer=None) -> Collaborators:
    return Collaborators(extractor=FakeExtractor(regions), rasterizer=rasterizer)


def test_image_handler_writes_debug_artifacts_next_to_source(tmp_path):
    src = tmp_path / "menu.png"
    src.write_bytes(make_png())
    document = Document.from_path(src)
    document.mime = "image/png"
    handler = handler_for(AttachmentKind.IMAGE, HandlerConfig(debug_ocr=True), LanguagePair(),
                          _collaborators([region("子猫", 10, 10)]))

    out = handler.translate(document, _cache(FakeOracle(CAT_ORACLE)))

    assert (tmp_path / "menu_ocr_bbox.png").is_file()
    assert (tmp_path / "menu_ocr.json").is_file()
    assert Image.open(io.BytesIO(out.content)).format == "PNG"


def test_pdf_pages_are_overlaid_and_reencoded():
    rasterizer = StubRasterizer([make_png(), make_png()])
    extractor_regions = [region("子猫", 10, 10)]
    handler = handler_for(AttachmentKind.PDF, HandlerConfig(), LanguagePair(),
                          _collaborators(extractor_regions, rasterizer))
    document = Document.from_bytes(b"%PDF-1.4 stub", suffix=".pdf", stem="flyer", mime="application/pdf")
    oracle = FakeOracle(CAT_ORACLE)

    out = handler.translate(document, _cache(oracle))

    assert out.content.startswith(b"%PDF")
    assert out.mime == "application/pdf"
    # the same line on both pages reaches the oracle once
    assert oracle.requests == ["子猫"]


def test_pdf_page_without_text_passes_through():
    blank = make_png(color="gray")
    handler = handler_for(AttachmentKind.PDF, HandlerConfig(), LanguagePair(),
                          _collaborators([], StubRasterizer([blank])))
    document = Document.from_bytes(b"%PDF-1.4 stub", suffix=".pdf", stem="blank", mime="application/pdf")
    out = handler.translate(document, _cache(FakeOracle()))
    assert out.content.startswith(b"%PDF")
