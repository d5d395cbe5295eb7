# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from attachtranslate.handlers.base import AttachmentHandler, decode_text, encode_text
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentKind, TranslationUnit


class TextHandler(AttachmentHandler):
    """
    Plain text: the decoded body is one unit, so sentences that wrap across lines keep their context.
    The BOM and the whitespace around the body survive untouched.
    """
    kind = AttachmentKind.TEXT

    def extract(self, document: Document) -> list[TranslationUnit]:
        text, _ = decode_text(document, force=self.config.force)
        if not text.strip():
            return []
        return [TranslationUnit(text=text)]

    def reconstruct(self, document: Document, units: list[TranslationUnit], translations: list[str]) -> bytes:
        _, had_bom = decode_text(document, force=self.config.force)
        return encode_text(translations[0], had_bom)
