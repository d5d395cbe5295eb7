# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import io

import pytest
from PIL import Image

from attachtranslate.agents.oracle import OracleResult
from attachtranslate.errors import OracleError
from attachtranslate.ir.types import BBox
from attachtranslate.ocr.extractor import OcrRegion


class FakeOracle:
    """Answers from a fixed table; anything unknown comes back upper-cased."""

    def __init__(self, table: dict[str, str] | None = None, readings: dict[str, str] | None = None,
                 fail_on: set[str] | None = None):
        self.table = table or {}
        self.readings = readings or {}
        self.fail_on = fail_on or set()
        self.requests: list[str] = []

    def translate(self, text, source_lang, target_lang, style="casual", slang=False):
        self.requests.append(text)
        if text in self.fail_on:
            raise OracleError(f"provider refused: {text}")
        return OracleResult(translated=self.table.get(text, text.upper()), reading=self.readings.get(text))


class FakeExtractor:
    def __init__(self, regions: list[OcrRegion]):
        self.regions = regions
        self.calls = 0

    def extract(self, image_bytes):
        self.calls += 1
        return list(self.regions)


def region(text: str, x: int, y: int, w: int = 40, h: int = 16, confidence: float = 0.9) -> OcrRegion:
    return OcrRegion(text=text, bbox=BBox(x, y, w, h), confidence=confidence)


def make_png(width: int = 120, height: int = 80, color: str = "white") -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()
