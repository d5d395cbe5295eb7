# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import re

from attachtranslate.handlers.base import AttachmentHandler, decode_text, encode_text
from attachtranslate.handlers.html_spans import markup_spans
from attachtranslate.handlers.po_spans import po_spans
from attachtranslate.handlers.script_spans import mermaid_spans, script_spans
from attachtranslate.handlers.spans import Span, core_span, escape_text, unit_text
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentKind, TranslationUnit
from attachtranslate.mime.resolver import (
    HTML_MIME,
    JS_MIME,
    JSON_MIME,
    MARKDOWN_MIME,
    MERMAID_MIME,
    PO_MIME,
    TS_MIME,
    TSX_MIME,
    XML_MIME,
    YAML_MIME,
)
from attachtranslate.utils.text_utils import should_translate_text

_HTML_COMMENT_RE = re.compile(r"<!--(.*?)-->", re.DOTALL)
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_MD_PREFIX_RE = re.compile(r"^(\s*(?:#{1,6}\s+|[-*+]\s+|\d+[.)]\s+|>\s?)*)")
_JSON_STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"')
_YAML_KEY_RE = re.compile(r"^(\s*(?:-\s+)?(?:\"[^\"]*\"|'[^']*'|[^\s#'\"][^:#]*?)\s*:\s+|\s*-\s+)(?=\S)")
_YAML_KEYWORDS = {"true", "false", "yes", "no", "on", "off", "null", "~"}


def _has_letters(text: str) -> bool:
    return any(ch.isalpha() for ch in text)


class MarkupHandler(AttachmentHandler):
    """
    HTML, XML, Markdown, YAML, JSON, gettext PO, JavaScript/TypeScript/TSX and Mermaid.

    Units are character spans of the decoded body; reconstruction splices translations into those
    spans and leaves every other character where it was. With ``with_comments`` only comment bodies
    are translated, otherwise the document text (and never the comments).
    """
    kind = AttachmentKind.MARKUP

    def _spans(self, text: str, mime: str | None) -> list[Span]:
        comments = self.config.with_comments
        if mime in (HTML_MIME, XML_MIME):
            return markup_spans(text, html_mode=mime == HTML_MIME, comments=comments)
        if mime == MARKDOWN_MIME:
            return self._comment_spans(text) if comments else self._markdown_spans(text)
        if mime == YAML_MIME:
            return self._yaml_comment_spans(text) if comments else self._yaml_value_spans(text)
        if mime == JSON_MIME:
            return [] if comments else self._json_value_spans(text)
        if mime == PO_MIME:
            return po_spans(text, comments=comments)
        if mime in (JS_MIME, TS_MIME, TSX_MIME):
            return script_spans(text, comments=comments, jsx=mime == TSX_MIME)
        if mime == MERMAID_MIME:
            return mermaid_spans(text, comments=comments)
        self.logger.warning(f"no markup rules for mime '{mime}', treating the body as one unit")
        core = core_span(text, 0, len(text))
        return [Span(*core)] if core else []

    # --- Markdown ---

    def _comment_spans(self, text: str) -> list[Span]:
        spans = []
        for m in _HTML_COMMENT_RE.finditer(text):
            core = core_span(text, m.start(1), m.end(1))
            if core:
                spans.append(Span(*core, escape="comment"))
        return spans

    def _markdown_spans(self, text: str) -> list[Span]:
        spans = []
        in_fence = False
        offset = 0
        for line in text.splitlines(keepends=True):
            body = line.rstrip("\r\n")
            if _FENCE_RE.match(body):
                in_fence = not in_fence
            elif not in_fence and not body.lstrip().startswith("<!--"):
                prefix = _MD_PREFIX_RE.match(body).end()
                core = core_span(text, offset + prefix, offset + len(body))
                if core:
                    spans.append(Span(*core))
            offset += len(line)
        return spans

    # --- YAML ---

    @staticmethod
    def _yaml_comment_start(body: str) -> int | None:
        quote = None
        for i, ch in enumerate(body):
            if quote:
                if ch == quote:
                    quote = None
            elif ch in ("'", '"'):
                quote = ch
            elif ch == "#" and (i == 0 or body[i - 1].isspace()):
                return i
        return None

    def _yaml_comment_spans(self, text: str) -> list[Span]:
        spans = []
        offset = 0
        for line in text.splitlines(keepends=True):
            body = line.rstrip("\r\n")
            hash_at = self._yaml_comment_start(body)
            if hash_at is not None:
                core = core_span(text, offset + hash_at + 1, offset + len(body))
                if core:
                    spans.append(Span(*core))
            offset += len(line)
        return spans

    def _yaml_value_spans(self, text: str) -> list[Span]:
        spans = []
        offset = 0
        for line in text.splitlines(keepends=True):
            body = line.rstrip("\r\n")
            m = _YAML_KEY_RE.match(body)
            if m and not body.lstrip().startswith("#"):
                start = m.end()
                end = len(body)
                hash_at = self._yaml_comment_start(body[start:])
                if hash_at is not None:
                    end = start + hash_at
                value = body[start:end].rstrip()
                end = start + len(value)
                span = None
                if len(value) >= 2 and value[0] == value[-1] == '"':
                    span = Span(offset + start + 1, offset + end - 1, "yaml_double")
                elif len(value) >= 2 and value[0] == value[-1] == "'":
                    span = Span(offset + start + 1, offset + end - 1, "yaml_single")
                elif value and value[0] not in "|>&*{[!%@`" and value.lower() not in _YAML_KEYWORDS:
                    span = Span(offset + start, offset + end)
                if span and span.end > span.start:
                    spans.append(span)
            offset += len(line)
        return spans

    # --- JSON ---

    def _json_value_spans(self, text: str) -> list[Span]:
        spans = []
        for m in _JSON_STRING_RE.finditer(text):
            rest = text[m.end():].lstrip()
            if rest.startswith(":"):
                continue
            spans.append(Span(m.start() + 1, m.end() - 1, "json"))
        return spans

    # --- units ---

    def extract(self, document: Document) -> list[TranslationUnit]:
        text, _ = decode_text(document, force=self.config.force)
        units = []
        for span in self._spans(text, document.mime):
            value = span.value if span.value is not None else unit_text(text[span.start:span.end], span.escape)
            if not _has_letters(value) or not should_translate_text(value):
                continue
            units.append(TranslationUnit(text=value, key=span))
        return units

    def reconstruct(self, document: Document, units: list[TranslationUnit], translations: list[str]) -> bytes:
        text, had_bom = decode_text(document, force=self.config.force)
        pieces = []
        pos = 0
        for unit, translated in sorted(zip(units, translations), key=lambda pair: pair[0].key.start):
            span: Span = unit.key
            pieces.append(text[pos:span.start])
            pieces.append(f"{span.before}{escape_text(translated, span.escape)}{span.after}")
            pos = span.end
        pieces.append(text[pos:])
        return encode_text("".join(pieces), had_bom)
