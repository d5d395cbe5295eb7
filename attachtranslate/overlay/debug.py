# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import io
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Self

from PIL import Image, ImageDraw

from attachtranslate.logger import global_logger
from attachtranslate.ocr.extractor import OcrRegion

DEFAULT_DEBUG_DIR = Path.home() / ".cache" / "attachtranslate" / "ocr"
BBOX_COLOR = "#00c853"


def sanitize_label(value: str) -> str:
    value = re.sub(r"\s", "_", value)
    value = re.sub(r"[^A-Za-z0-9_-]", "", value)
    return value or "input"


@dataclass
class OcrDebugConfig:
    """Where OCR debug artifacts go: ``<label>_ocr_bbox.png`` and ``<label>_ocr.json``."""
    output_dir: Path
    base_name: str

    @classmethod
    def build(cls, src_path: Path | None = None, name: str | None = None,
              default_dir: Path = DEFAULT_DEBUG_DIR) -> Self:
        if src_path is not None:
            output_dir, base = src_path.parent, src_path.stem
        elif name:
            output_dir, base = default_dir, Path(name).stem
        else:
            output_dir, base = default_dir, "stdin"
        output_dir.mkdir(parents=True, exist_ok=True)
        return cls(output_dir=output_dir, base_name=sanitize_label(base))

    def page_label(self, page: int | None = None) -> str:
        if page is None:
            return self.base_name
        return f"{self.base_name}_page{page + 1:02d}"

    def for_page(self, page: int) -> Self:
        return self.__class__(output_dir=self.output_dir, base_name=self.page_label(page))

    def bbox_path(self, label: str | None = None) -> Path:
        return self.output_dir / f"{label or self.base_name}_ocr_bbox.png"

    def json_path(self, label: str | None = None) -> Path:
        return self.output_dir / f"{label or self.base_name}_ocr.json"


def write_debug_artifacts(config: OcrDebugConfig, image_bytes: bytes, regions: list[OcrRegion],
                          logger: logging.Logger = global_logger) -> tuple[Path, Path]:
    image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    draw = ImageDraw.Draw(image)
    for region in regions:
        box = region.bbox
        draw.rectangle([box.x, box.y, box.right, box.bottom], outline=BBOX_COLOR, width=2)
    bbox_path = config.bbox_path()
    image.save(bbox_path, format="PNG")

    json_path = config.json_path()
    json_path.write_text(
        json.dumps([r.to_dict() for r in regions], ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    logger.info(f"debug: wrote ocr bbox {bbox_path}")
    return bbox_path, json_path
