# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from attachtranslate.ir.document import Document


class AttachmentKind(Enum):
    TEXT = "text"
    MARKUP = "markup"
    OFFICE = "office"
    IMAGE = "image"
    PDF = "pdf"
    AUDIO = "audio"


ResolutionSource = Literal["hint", "extension", "sniff", "force"]


@dataclass(frozen=True)
class MimeResolution:
    kind: AttachmentKind
    mime: str
    source: ResolutionSource = "extension"


@dataclass(frozen=True)
class BBox:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def union(self, other: "BBox") -> "BBox":
        x0 = min(self.x, other.x)
        y0 = min(self.y, other.y)
        x1 = max(self.right, other.right)
        y1 = max(self.bottom, other.bottom)
        return BBox(x0, y0, x1 - x0, y1 - y0)


@dataclass
class TranslationUnit:
    """
    One translatable span.

    ``key`` locates the span inside the source (line number, byte offset, zip entry + node index);
    ``region`` is only set for units read off an image.
    """
    text: str
    key: object = None
    region: BBox | None = None


@dataclass(frozen=True)
class LanguagePair:
    source_lang: str = "auto"
    target_lang: str = "en"


@dataclass(frozen=True)
class StyleOptions:
    style: str = "casual"
    slang: bool = False


@dataclass
class AttachmentJob:
    source: Document
    mime: MimeResolution
    language_pair: LanguagePair = field(default_factory=LanguagePair)
    style_options: StyleOptions = field(default_factory=StyleOptions)
