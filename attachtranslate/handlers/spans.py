# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
"""
Character spans of a decoded body and the escaping rules for writing a translation back into them.
"""
import html
import json
import re
from dataclasses import dataclass
from typing import Literal

from attachtranslate.utils.text_utils import split_text_bounds

Escape = Literal[
    "none", "html", "attr", "comment", "cdata", "json", "yaml_double", "yaml_single", "po",
    "js_single", "js_double", "js_template", "jsx", "line_comment", "block_comment", "mermaid",
]

_JS_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}
_JS_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\r\n|[\s\S])")
_PO_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", '"': '"', "\\": "\\"}


@dataclass(frozen=True)
class Span:
    """
    ``[start, end)`` of the decoded body is replaced by ``before + escape(translation) + after``.

    ``value`` carries the source text when it is not simply the unescaped slice (PO msgstr
    blocks are filled from their msgid).
    """
    start: int
    end: int
    escape: Escape = "none"
    value: str | None = None
    before: str = ""
    after: str = ""


def core_span(text: str, start: int, end: int) -> tuple[int, int] | None:
    bounds = split_text_bounds(text[start:end])
    if bounds is None:
        return None
    return start + bounds[0], start + bounds[1]


def unescape_js(raw: str) -> str:
    def replace(m: re.Match) -> str:
        token = m.group(1)
        if token.startswith("u{"):
            return chr(int(token[2:-1], 16))
        if token.startswith("u") and len(token) == 5:
            return chr(int(token[1:], 16))
        if token.startswith("x") and len(token) == 3:
            return chr(int(token[1:], 16))
        if token in ("\n", "\r\n", "\u2028", "\u2029"):
            return ""
        return _JS_ESCAPES.get(token, token)

    return _JS_ESCAPE_RE.sub(replace, raw)


def escape_js(value: str, quote: str) -> str:
    value = value.replace("\\", "\\\\").replace(quote, f"\\{quote}")
    return value.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")


def unescape_po(raw: str) -> str:
    out = []
    i = 0
    while i < len(raw):
        ch = raw[i]
        if ch == "\\" and i + 1 < len(raw):
            nxt = raw[i + 1]
            out.append(_PO_ESCAPES.get(nxt, f"\\{nxt}"))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def escape_po(value: str) -> str:
    value = value.replace("\\", "\\\\").replace('"', '\\"')
    return value.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")


def unit_text(raw: str, escape: Escape) -> str:
    """The text the oracle should see for a raw slice of the body."""
    match escape:
        case "html" | "attr" | "jsx":
            return html.unescape(raw)
        case "json":
            return json.loads(f'"{raw}"')
        case "yaml_single":
            return raw.replace("''", "'")
        case "yaml_double":
            try:
                return json.loads(f'"{raw}"')
            except ValueError:
                return raw
        case "po":
            return unescape_po(raw)
        case "js_single" | "js_double" | "js_template":
            return unescape_js(raw)
    return raw


def escape_text(value: str, escape: Escape) -> str:
    """Make a translation safe to splice into a span of the given kind."""
    match escape:
        case "html":
            return html.escape(value, quote=False)
        case "attr":
            return html.escape(value, quote=True)
        case "jsx":
            return html.escape(value, quote=False).replace("{", "&#123;").replace("}", "&#125;")
        case "comment":
            return value.replace("--", "- -")
        case "cdata":
            return value.replace("]]>", "]]]]><![CDATA[>")
        case "json" | "yaml_double":
            return json.dumps(value, ensure_ascii=False)[1:-1]
        case "yaml_single":
            return value.replace("'", "''")
        case "po":
            return escape_po(value)
        case "js_single":
            return escape_js(value, "'")
        case "js_double":
            return escape_js(value, '"')
        case "js_template":
            return value.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")
        case "line_comment":
            return " ".join(value.splitlines())
        case "block_comment":
            return " ".join(value.splitlines()).replace("*/", "* /")
        case "mermaid":
            return " ".join(value.splitlines()).replace('"', "#quot;")
    return value
