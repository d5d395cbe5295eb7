# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
"""
JavaScript, TypeScript, TSX and Mermaid sources.

Whole-body mode translates string literals (template literals without ``${}``), JSX text in TSX
and node or edge labels in Mermaid; comment mode translates ``//``, ``/* */`` and ``%%`` comments.
"""
import re

from attachtranslate.handlers.spans import Span, core_span

# a '/' after one of these starts a regular expression literal, not a division
_REGEX_PREFIX = set("(,=:[!&|?{};+-*%<>~^")
_JSX_PREFIX = set("({[=:,?!;>&|")
_KEYWORD_BEFORE_RE = re.compile(r"(?:^|[^\w$])(return|typeof|case|yield|await)\s*$")
_MODULE_SPECIFIER_RE = re.compile(r"(?:\bfrom|\bimport|\brequire\s*\(|\bimport\s*\()\s*$")
_JSX_TAG_CHAR_RE = re.compile(r"[A-Za-z/>!]")
_STRING_ESCAPES = {'"': "js_double", "'": "js_single"}
_DIRECTIVES = {"use strict", "use client", "use server"}


def _string_end(text: str, start: int) -> tuple[int, bool]:
    """End of the quoted literal at ``start`` and whether it was closed on the same line."""
    quote = text[start]
    i, n = start + 1, len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1, True
        if ch == "\n":
            return i, False
        i += 1
    return n, False


def _balanced_end(text: str, start: int) -> int:
    """Index just past the '}' matching the '{' at ``start``; quoted strings are skipped."""
    depth = 0
    i, n = start, len(text)
    while i < n:
        ch = text[i]
        if ch in "'\"":
            i, _ = _string_end(text, i)
            continue
        if ch == "`":
            i, _ = _template_end(text, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return n


def _template_end(text: str, start: int) -> tuple[int, bool]:
    """End of the template literal at ``start`` and whether it holds ``${}`` expressions."""
    has_expr = False
    i, n = start + 1, len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "`":
            return i + 1, has_expr
        if ch == "$" and text.startswith("{", i + 1):
            has_expr = True
            i = _balanced_end(text, i + 1)
            continue
        i += 1
    return n, has_expr


def _regex_end(text: str, start: int) -> int:
    in_class = False
    i, n = start + 1, len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            return i
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            i += 1
            while i < n and text[i].isalpha():
                i += 1
            return i
        i += 1
    return n


def _jsx_tag_end(text: str, start: int) -> int:
    """Index just past the '>' closing the JSX tag at ``start``; braces and quotes are skipped."""
    i, n = start + 1, len(text)
    while i < n:
        ch = text[i]
        if ch in "'\"":
            i, _ = _string_end(text, i)
            continue
        if ch == "{":
            i = _balanced_end(text, i)
            continue
        if ch == ">":
            return i + 1
        i += 1
    return n


def _block_comment_spans(text: str, start: int, end: int) -> list[Span]:
    spans = []
    offset = start
    for line in text[start:end].split("\n"):
        body_start = offset + len(line) - len(line.lstrip())
        if text.startswith("*", body_start):
            body_start += 1
        core = core_span(text, body_start, offset + len(line))
        if core:
            spans.append(Span(*core, escape="block_comment"))
        offset += len(line) + 1
    return spans


class _ScriptScanner:
    def __init__(self, text: str, comments: bool, jsx: bool):
        self.text = text
        self.comments = comments
        self.jsx = jsx
        self.spans: list[Span] = []
        self.prev = ""  # last significant character outside literals and comments
        self.jsx_depth = 0

    def _add(self, start: int, end: int, escape: str):
        core = core_span(self.text, start, end)
        if core:
            self.spans.append(Span(*core, escape=escape))

    def _expression_start(self, i: int, prefixes: set[str]) -> bool:
        if not self.prev or self.prev in prefixes:
            return True
        return _KEYWORD_BEFORE_RE.search(self.text, max(0, i - 12), i) is not None

    def _jsx_tag(self, i: int) -> int:
        end = _jsx_tag_end(self.text, i)
        raw = self.text[i:end]
        if raw.startswith("</"):
            self.jsx_depth = max(0, self.jsx_depth - 1)
        elif not raw.endswith("/>"):
            self.jsx_depth += 1
        self.prev = ">"
        return end

    def _jsx_children(self, i: int) -> int:
        text = self.text
        if text[i] == "<" and _JSX_TAG_CHAR_RE.match(text, i + 1):
            return self._jsx_tag(i)
        if text[i] == "{":
            return _balanced_end(text, i)
        j = i + 1 if text[i] == "<" else i
        while j < len(text) and text[j] not in "<{":
            j += 1
        if not self.comments:
            self._add(i, j, "jsx")
        return j

    def scan(self) -> list[Span]:
        text = self.text
        i, n = 0, len(text)
        while i < n:
            if self.jsx and self.jsx_depth > 0:
                i = self._jsx_children(i)
                continue
            ch = text[i]
            nxt = text[i + 1] if i + 1 < n else ""
            if ch == "/" and nxt == "/":
                end = text.find("\n", i)
                end = n if end == -1 else end
                if self.comments:
                    self._add(i + 2, end, "line_comment")
                i = end
            elif ch == "/" and nxt == "*":
                close = text.find("*/", i + 2)
                end = n if close == -1 else close
                if self.comments:
                    self.spans.extend(_block_comment_spans(text, i + 2, end))
                i = n if close == -1 else close + 2
            elif ch == "/" and self._expression_start(i, _REGEX_PREFIX):
                i = _regex_end(text, i)
                self.prev = "/"
            elif ch in _STRING_ESCAPES:
                end, closed = _string_end(text, i)
                skip = _MODULE_SPECIFIER_RE.search(text, max(0, i - 20), i) is not None \
                    or text[i + 1:end - 1] in _DIRECTIVES
                if closed and not skip and not self.comments:
                    self.spans.append(Span(i + 1, end - 1, escape=_STRING_ESCAPES[ch]))
                i = end
                self.prev = ch
            elif ch == "`":
                end, has_expr = _template_end(text, i)
                if not has_expr and not self.comments and text[end - 1] == "`" and end - 1 > i:
                    self.spans.append(Span(i + 1, end - 1, escape="js_template"))
                i = end
                self.prev = ch
            elif self.jsx and ch == "<" and _JSX_TAG_CHAR_RE.match(nxt or " ") \
                    and self._expression_start(i, _JSX_PREFIX):
                i = self._jsx_tag(i)
            else:
                if not ch.isspace():
                    self.prev = ch
                i += 1
        return self.spans


def script_spans(text: str, *, comments: bool, jsx: bool = False) -> list[Span]:
    return _ScriptScanner(text, comments, jsx).scan()


def _mermaid_bracket(line: str, start: int) -> tuple[int, int, int] | None:
    """(inner start, inner end, end) of a node shape opened at ``start``: [..], [[..]], (..), ((..)), {..}, {{..}}."""
    opener = line[start]
    closer = {"[": "]", "(": ")", "{": "}"}[opener]
    width = 2 if line.startswith(opener * 2, start) else 1
    inner = start + width
    close = line.find(closer * width, inner)
    if close == -1:
        return None
    return inner, close, close + width


def _mermaid_line_spans(line: str, offset: int) -> list[Span]:
    spans = []
    i, n = 0, len(line)
    while i < n:
        ch = line[i]
        if ch in _STRING_ESCAPES:
            end, closed = _string_end(line, i)
            if closed:
                spans.append(Span(offset + i + 1, offset + end - 1, escape=_STRING_ESCAPES[ch]))
            i = end
            continue
        if ch == "|":
            close = line.find("|", i + 1)
            if close != -1:
                core = core_span(line, i + 1, close)
                if core:
                    spans.append(Span(offset + core[0], offset + core[1], escape="mermaid"))
                i = close + 1
                continue
        if ch in "[({":
            shape = _mermaid_bracket(line, i)
            if shape is not None:
                inner, close, end = shape
                body = line[inner:close].strip()
                if len(body) >= 2 and body[0] == body[-1] and body[0] in _STRING_ESCAPES:
                    quote_at = line.index(body[0], inner)
                    spans.append(Span(offset + quote_at + 1, offset + quote_at + len(body) - 1,
                                      escape=_STRING_ESCAPES[body[0]]))
                else:
                    core = core_span(line, inner, close)
                    if core:
                        spans.append(Span(offset + core[0], offset + core[1], escape="mermaid"))
                i = end
                continue
        i += 1
    return spans


def mermaid_spans(text: str, *, comments: bool) -> list[Span]:
    spans = []
    offset = 0
    for line in text.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        stripped = body.lstrip()
        if stripped.startswith("%%"):
            # %%{init: ...}%% is a directive, not a comment
            if comments and not stripped.startswith("%%{"):
                start = offset + len(body) - len(stripped) + 2
                core = core_span(text, start, offset + len(body))
                if core:
                    spans.append(Span(*core, escape="line_comment"))
        elif not comments:
            spans.extend(_mermaid_line_spans(body, offset))
        offset += len(line)
    return spans
