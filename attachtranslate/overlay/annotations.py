# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from dataclasses import dataclass, field
from typing import Iterable

from attachtranslate.ir.types import BBox


@dataclass
class OverlayAnnotation:
    """
    One footer entry. Every region whose translation equals ``translated`` shares ``index``;
    ``regions`` keeps them in reading order without duplicates.
    """
    index: int
    original: str
    reading: str | None
    translated: str
    regions: list[BBox] = field(default_factory=list)

    def footer_line(self) -> str:
        if self.reading:
            return f"({self.index}) {self.original} ({self.reading}) : {self.translated}"
        return f"({self.index}) {self.original}: {self.translated}"

    @property
    def marker(self) -> str:
        return f"({self.index})"


@dataclass
class TranslatedRegion:
    original: str
    reading: str | None
    translated: str
    bbox: BBox


def reading_order(regions: Iterable[TranslatedRegion]) -> list[TranslatedRegion]:
    return sorted(regions, key=lambda r: (r.bbox.y, r.bbox.x))


def number_annotations(regions: Iterable[TranslatedRegion]) -> list[OverlayAnnotation]:
    """
    Assign footer indices by first occurrence of the trimmed translated text, counting from 1.

    Regions are visited in reading order (top-to-bottom, then left-to-right). The first region to
    produce a translation decides that entry's original and reading.
    """
    by_text: dict[str, OverlayAnnotation] = {}
    for region in reading_order(regions):
        key = region.translated.strip()
        annotation = by_text.get(key)
        if annotation is None:
            annotation = OverlayAnnotation(
                index=len(by_text) + 1,
                original=region.original.strip(),
                reading=region.reading,
                translated=key,
            )
            by_text[key] = annotation
        if region.bbox not in annotation.regions:
            annotation.regions.append(region.bbox)
    return list(by_text.values())
