# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
"""
Gettext catalogues. Each entry's ``msgstr`` block is rewritten from the translated ``msgid``
(``msgstr[0]``/``msgstr[1]`` for plural entries); comment mode translates translator and
extracted comments instead. The header entry (empty msgid) is never touched.
"""
from attachtranslate.handlers.spans import Span, core_span, unescape_po

# references, flags, previous msgids and obsolete entries are machine-read
_SKIPPED_COMMENTS = ("#:", "#,", "#|", "#~")


def _lines(text: str) -> list[tuple[int, str]]:
    out = []
    offset = 0
    for line in text.splitlines(keepends=True):
        out.append((offset, line.rstrip("\r\n")))
        offset += len(line)
    return out


def _entries(text: str) -> list[list[tuple[int, str]]]:
    entries, current = [], []
    for offset, body in _lines(text):
        if body.strip():
            current.append((offset, body))
        elif current:
            entries.append(current)
            current = []
    if current:
        entries.append(current)
    return entries


def _quoted(fragment: str) -> str:
    """Value of the first quoted string in ``fragment``."""
    start = fragment.find('"')
    if start == -1:
        return ""
    raw = []
    i = start + 1
    while i < len(fragment):
        ch = fragment[i]
        if ch == "\\" and i + 1 < len(fragment):
            raw.append(fragment[i:i + 2])
            i += 2
            continue
        if ch == '"':
            break
        raw.append(ch)
        i += 1
    return unescape_po("".join(raw))


def _comment_span(offset: int, body: str) -> Span | None:
    stripped = body.lstrip()
    if not stripped.startswith("#") or stripped.startswith(_SKIPPED_COMMENTS):
        return None
    start = len(body) - len(stripped) + 1
    if start < len(body) and body[start] == ".":
        start += 1
    core = core_span(body, start, len(body))
    if core is None:
        return None
    return Span(offset + core[0], offset + core[1], escape="line_comment")


def _msgstr_spans(lines: list[tuple[int, str]]) -> list[Span]:
    msgid = plural = None
    field = None
    anchor = None  # end of the last msgid line, where a missing msgstr goes
    blocks: list[list[int]] = []
    for offset, body in lines:
        stripped = body.lstrip()
        line_end = offset + len(body)
        if stripped.startswith("#"):
            field = None
        elif stripped.startswith("msgid_plural"):
            field, plural, anchor = "plural", _quoted(stripped), line_end
        elif stripped.startswith("msgid"):
            field, msgid, anchor = "msgid", _quoted(stripped), line_end
        elif stripped.startswith("msgstr"):
            field = "msgstr"
            blocks.append([offset + len(body) - len(stripped), line_end])
        elif stripped.startswith('"'):
            if field == "msgid":
                msgid += _quoted(stripped)
                anchor = line_end
            elif field == "plural":
                plural += _quoted(stripped)
                anchor = line_end
            elif field == "msgstr":
                blocks[-1][1] = line_end
        else:
            field = None

    if msgid is None or not msgid.strip() or anchor is None:
        return []
    if plural is None:
        if blocks:
            return [Span(blocks[0][0], blocks[-1][1], "po", value=msgid, before='msgstr "', after='"')]
        return [Span(anchor, anchor, "po", value=msgid, before='\nmsgstr "', after='"')]

    spans = []
    if blocks:
        spans.append(Span(blocks[0][0], blocks[0][1], "po", value=msgid, before='msgstr[0] "', after='"'))
    else:
        spans.append(Span(anchor, anchor, "po", value=msgid, before='\nmsgstr[0] "', after='"'))
    if len(blocks) > 1:
        spans.append(Span(blocks[1][0], blocks[-1][1], "po", value=plural, before='msgstr[1] "', after='"'))
    else:
        tail = blocks[0][1] if blocks else anchor
        spans.append(Span(tail, tail, "po", value=plural, before='\nmsgstr[1] "', after='"'))
    return spans


def po_spans(text: str, *, comments: bool) -> list[Span]:
    spans = []
    for entry in _entries(text):
        if comments:
            spans.extend(span for offset, body in entry if (span := _comment_span(offset, body)))
        else:
            spans.extend(_msgstr_spans(entry))
    return spans
