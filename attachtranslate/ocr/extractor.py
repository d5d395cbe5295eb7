# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import io
import logging
from dataclasses import dataclass
from typing import Protocol

import pytesseract
from PIL import Image, UnidentifiedImageError

from attachtranslate.errors import RenderError
from attachtranslate.ir.types import BBox
from attachtranslate.logger import global_logger


@dataclass
class OcrRegion:
    text: str
    bbox: BBox
    confidence: float  # 0.0 - 1.0

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "bbox": {"x": self.bbox.x, "y": self.bbox.y, "w": self.bbox.width, "h": self.bbox.height},
            "confidence": round(self.confidence, 4),
        }


class OcrExtractor(Protocol):
    def extract(self, image_bytes: bytes) -> list[OcrRegion]: ...


# Tesseract language codes for the source languages we know how to map
TESSERACT_LANGS = {
    "en": "eng",
    "ja": "jpn",
    "jp": "jpn",
    "zh": "chi_sim",
    "zh-cn": "chi_sim",
    "zh-tw": "chi_tra",
    "ko": "kor",
    "fr": "fra",
    "de": "deu",
    "es": "spa",
    "it": "ita",
    "pt": "por",
    "ru": "rus",
}


def tesseract_languages(source_lang: str | None, default: str = "eng+jpn") -> str:
    lang = (source_lang or "").strip().lower()
    if not lang or lang == "auto":
        return default
    code = TESSERACT_LANGS.get(lang) or TESSERACT_LANGS.get(lang.split("-")[0])
    if code is None:
        return default
    return code if code == "eng" else f"{code}+eng"


class TesseractExtractor:
    """
    Line-level OCR through pytesseract. Words are grouped by (block, paragraph, line);
    the line box is the union of its word boxes and its confidence the mean word confidence.
    """

    def __init__(self, languages: str = "eng+jpn", psm: int = 3, logger: logging.Logger = global_logger):
        self.languages = languages
        self.psm = psm
        self.logger = logger

    def extract(self, image_bytes: bytes) -> list[OcrRegion]:
        try:
            image = Image.open(io.BytesIO(image_bytes))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise RenderError(f"cannot decode image for OCR: {e}") from e
        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.languages,
                config=f"--psm {self.psm}",
                output_type=pytesseract.Output.DICT,
            )
        except pytesseract.TesseractNotFoundError as e:
            raise RenderError("tesseract is not installed or not on PATH") from e
        except pytesseract.TesseractError as e:
            raise RenderError(f"tesseract failed: {e}") from e

        lines: dict[tuple[int, int, int], dict] = {}
        for idx, token in enumerate(data.get("text", [])):
            text_value = (token or "").strip()
            if not text_value:
                continue
            try:
                confidence = max(0.0, min(1.0, float(data["conf"][idx]) / 100.0))
            except (TypeError, ValueError):
                confidence = 0.0
            box = BBox(int(data["left"][idx]), int(data["top"][idx]),
                       int(data["width"][idx]), int(data["height"][idx]))
            key = (int(data["block_num"][idx]), int(data["par_num"][idx]), int(data["line_num"][idx]))
            line = lines.get(key)
            if line is None:
                lines[key] = {"words": [text_value], "bbox": box, "conf": [confidence]}
            else:
                line["words"].append(text_value)
                line["bbox"] = line["bbox"].union(box)
                line["conf"].append(confidence)

        regions = []
        for line in lines.values():
            # CJK scripts come back one glyph per word; join them without spaces
            words = line["words"]
            joined = "".join(words) if all(not w.isascii() for w in words) else " ".join(words)
            regions.append(OcrRegion(
                text=joined,
                bbox=line["bbox"],
                confidence=sum(line["conf"]) / len(line["conf"]),
            ))
        self.logger.debug(f"OCR: {len(regions)} line(s) found")
        return regions


def image_size(image_bytes: bytes) -> tuple[int, int]:
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return image.size
    except (UnidentifiedImageError, OSError) as e:
        raise RenderError(f"cannot decode image: {e}") from e
