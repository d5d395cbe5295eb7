# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
"""
Locates translatable text in HTML and XML.

BeautifulSoup parses the document; every node it reports is then pinned to its exact place in the
source so translations can be spliced in without re-serializing the markup. A node whose raw text
does not decode back to what the parser saw is left alone.
"""
import html
import re
import warnings

from bs4 import BeautifulSoup, CData, Comment, NavigableString, Tag, XMLParsedAsHTMLWarning
from bs4.element import PreformattedString

from attachtranslate.handlers.spans import Span, core_span

# Elements whose content is code, styling or literal input; nothing inside them is translated.
NON_TRANSLATABLE_TAGS: set[str] = {
    "script",
    "style",
    "noscript",
    "code",
    "pre",
    "kbd",
    "samp",
    "textarea",
}

# Attributes whose values are read by people.
TRANSLATABLE_ATTRIBUTES: tuple[str, ...] = (
    "title",
    "alt",
    "placeholder",
    "aria-label",
    "aria-description",
)

# html.parser reads '<' followed by one of these as markup, anything else is text.
_MARKUP_START_RE = re.compile(r"<[A-Za-z/!?]")
_END_TAG_RE = re.compile(r"</[A-Za-z][^>]*>")
_TAG_NAME_RE = re.compile(r"<[^\s/>]+")
_ATTR_RE = re.compile(r"""([^\s"'<>/=]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'=<>`]+)))?""")


def _line_starts(text: str) -> list[int]:
    starts = [0]
    starts.extend(m.end() for m in re.finditer("\n", text))
    return starts


def _start_tag_end(text: str, start: int) -> int:
    """Index just past the '>' closing the start tag at ``start``; quoted attribute values may hold '>'."""
    i, n = start + 1, len(text)
    while i < n:
        ch = text[i]
        if ch == ">":
            return i + 1
        if ch == "=":
            i += 1
            while i < n and text[i].isspace():
                i += 1
            if i < n and text[i] in "\"'":
                close = text.find(text[i], i + 1)
                if close == -1:
                    return n
                i = close + 1
            continue
        i += 1
    return n


def _is_skipped(node, skip_tags: set[str]) -> bool:
    return any(parent.name in skip_tags for parent in node.parents if isinstance(parent, Tag))


class _Locator:
    def __init__(self, text: str, html_mode: bool, comments: bool):
        self.text = text
        self.html_mode = html_mode
        self.comments = comments
        self.skip_tags = NON_TRANSLATABLE_TAGS if html_mode else set()
        self.line_starts = _line_starts(text)
        self.cursor = 0
        self.spans: list[Span] = []

    def _tag_offset(self, tag: Tag) -> int | None:
        if tag.sourceline is None or tag.sourcepos is None:
            return None
        line = min(tag.sourceline, len(self.line_starts)) - 1
        offset = self.line_starts[line] + tag.sourcepos
        if not self.text.startswith("<", offset):
            return None
        return offset

    def _literal(self, opener: str, body: str, closer: str) -> tuple[int, int] | None:
        start = self.text.find(f"{opener}{body}{closer}", self.cursor)
        if start == -1:
            return None
        start += len(opener)
        return start, start + len(body)

    def _text_node(self, node: NavigableString) -> tuple[int, int] | None:
        if node.parent is not None and node.parent.name in ("script", "style"):
            return self._literal("", str(node), "")
        pos = self.cursor
        while m := _END_TAG_RE.match(self.text, pos):
            pos = m.end()
        m = _MARKUP_START_RE.search(self.text, pos)
        end = m.start() if m else len(self.text)
        if html.unescape(self.text[pos:end]) != str(node):
            return None
        return pos, end

    def _add(self, start: int, end: int, escape: str):
        core = core_span(self.text, start, end)
        if core:
            self.spans.append(Span(*core, escape=escape))

    def _attributes(self, tag: Tag, start: int, end: int):
        name = _TAG_NAME_RE.match(self.text, start)
        if name is None:
            return
        for m in _ATTR_RE.finditer(self.text, name.end(), end - 1):
            attr = m.group(1).lower()
            if attr not in TRANSLATABLE_ATTRIBUTES:
                continue
            group = next((g for g in (2, 3, 4) if m.group(g) is not None), None)
            if group is None:
                continue
            value_start, value_end = m.span(group)
            if html.unescape(self.text[value_start:value_end]) != tag.get(attr):
                continue
            if group == 4:
                # unquoted values gain quotes so a translation with spaces stays one attribute
                self.spans.append(Span(value_start, value_end, escape="attr", before='"', after='"'))
            else:
                self._add(value_start, value_end, "attr")

    def visit(self, node):
        if isinstance(node, Tag):
            start = self._tag_offset(node)
            if start is None:
                return
            end = _start_tag_end(self.text, start)
            if self.html_mode and not self.comments and not _is_skipped(node, self.skip_tags):
                self._attributes(node, start, end)
            self.cursor = end
        elif isinstance(node, Comment):
            located = self._literal("<!--", str(node), "-->")
            if located is None:
                return
            self.cursor = located[1] + 3
            if self.comments:
                start, end = located
                core = core_span(self.text, start, end)
                if core:
                    self.spans.append(Span(*core, escape="comment"))
        elif isinstance(node, CData):
            located = self._literal("<![CDATA[", str(node), "]]>")
            if located is None:
                return
            self.cursor = located[1] + 3
            if not self.comments and not self.html_mode and not _is_skipped(node, self.skip_tags):
                self._add(*located, "cdata")
        elif isinstance(node, PreformattedString):
            # doctype, declarations and processing instructions
            lt = self.text.find("<", self.cursor)
            gt = self.text.find(">", lt) if lt != -1 else -1
            if gt != -1:
                self.cursor = gt + 1
        elif isinstance(node, NavigableString):
            located = self._text_node(node)
            if located is None:
                return
            self.cursor = located[1]
            if not self.comments and not _is_skipped(node, self.skip_tags):
                self._add(*located, "html")


def markup_spans(text: str, *, html_mode: bool, comments: bool) -> list[Span]:
    """
    Spans of an HTML or XML body: text nodes and, for HTML, the readable attributes; with
    ``comments`` the comment bodies only.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
        soup = BeautifulSoup(text, "html.parser")
    locator = _Locator(text, html_mode, comments)
    for node in soup.descendants:
        locator.visit(node)
    spans = []
    end = 0
    # a tree the parser re-nested can point two nodes at the same source text
    for span in sorted(locator.spans, key=lambda span: span.start):
        if span.start >= end:
            spans.append(span)
            end = span.end
    return spans
