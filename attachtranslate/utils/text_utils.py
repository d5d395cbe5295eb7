# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import re
import unicodedata

_WS_RE = re.compile(r"\s+")
_IGNORABLE_SYMBOLS = set("|¦·•―—–…")
_NOISE_PUNCT = set("!！?？・…")
_EDGE_NOISE_EXTRA = set("「」『』《》〈〉【】（）・、。，．※")
_NUMERIC_KEEP = set("%％+-.,．，")
_IDENT_SPECIAL = set("_-/.:@")


def is_cjk(ch: str) -> bool:
    cp = ord(ch)
    return (0x4E00 <= cp <= 0x9FFF or 0x3040 <= cp <= 0x30FF or 0x31F0 <= cp <= 0x31FF
            or 0x3400 <= cp <= 0x4DBF or 0xAC00 <= cp <= 0xD7AF)


def collapse_whitespace(value: str) -> str:
    return _WS_RE.sub(" ", value)


def split_text_bounds(text: str) -> tuple[int, int] | None:
    """Return (start, end) of the non-whitespace core of ``text``, or None when it is blank."""
    stripped = text.strip()
    if not stripped:
        return None
    start = len(text) - len(text.lstrip())
    return start, start + len(stripped)


def _is_edge_noise(ch: str) -> bool:
    return (ch.isascii() and not ch.isalnum() and ch.isprintable() and not ch.isspace()) or ch in _EDGE_NOISE_EXTRA


def _trim_edges(value: str, predicate) -> str:
    start, end = 0, len(value)
    while start < end and predicate(value[start]):
        start += 1
    while end > start and predicate(value[end - 1]):
        end -= 1
    return value[start:end]


def sanitize_ocr_text(value: str) -> str:
    """
    Clean a line read by OCR: drop control characters, collapse whitespace and repeated
    separator glyphs, and trim stray punctuation at the edges.
    """
    out = []
    last_space = last_punct = False
    for ch in value:
        if unicodedata.category(ch) == "Cc" and not ch.isspace():
            continue
        if ch.isspace():
            if not last_space:
                out.append(" ")
                last_space = True
            last_punct = False
            continue
        if ch in _IGNORABLE_SYMBOLS:
            if not last_punct:
                out.append(ch)
                last_punct = True
            last_space = False
            continue
        out.append(ch)
        last_space = last_punct = False

    chars = "".join(out).strip()
    kept = []
    for i, ch in enumerate(chars):
        if ch in _NOISE_PUNCT:
            prev = chars[i - 1] if i > 0 else ""
            nxt = chars[i + 1] if i + 1 < len(chars) else ""
            if (prev and is_cjk(prev)) or (nxt and (is_cjk(nxt) or nxt.isdigit())):
                continue
        kept.append(ch)
    cleaned = "".join(kept).strip()

    if is_numeric_only_like(cleaned):
        cleaned = _trim_edges(cleaned, lambda c: not c.isdigit() and c not in _NUMERIC_KEEP and _is_edge_noise(c))
    else:
        cleaned = _trim_edges(cleaned, _is_edge_noise)
    return cleaned.strip()


def is_numeric_like(value: str) -> bool:
    """True for values made of digits and separators only (prices, dates, page numbers)."""
    digits = letters = others = 0
    for ch in value:
        if ch.isascii() and ch.isdigit():
            digits += 1
        elif ch.isalpha() or is_cjk(ch):
            letters += 1
        elif not ch.isspace():
            others += 1
    if letters:
        return False
    return digits > 0 and digits / max(digits + others, 1) >= 0.6


def is_numeric_only_like(value: str) -> bool:
    digits = letters = 0
    for ch in value:
        if ch.isascii() and ch.isdigit():
            digits += 1
        elif ch.isalpha() or is_cjk(ch):
            letters += 1
    return digits > 0 and letters == 0


def _is_all_uppercase(value: str) -> bool:
    has_alpha = False
    for ch in value:
        if ch.isascii() and ch.isalpha():
            has_alpha = True
            if not ch.isupper():
                return False
    return has_alpha


def _looks_like_identifier(value: str) -> bool:
    if all(ch.isascii() and ch.isalpha() for ch in value):
        return False
    has_special = any(ch in _IDENT_SPECIAL for ch in value)
    has_digit = any(ch.isdigit() for ch in value)
    has_camel = any(a.islower() and b.isupper() for a, b in zip(value, value[1:]))
    allowed = all((ch.isascii() and ch.isalnum()) or ch in _IDENT_SPECIAL or ch == "$" for ch in value)
    if allowed and (has_special or has_digit or has_camel):
        return True
    return _is_all_uppercase(value)


def looks_like_code(value: str) -> bool:
    trimmed = value.strip()
    if not trimmed:
        return False
    if "://" in trimmed:
        return True
    if any(token in trimmed for token in ("{{", "}}", "${", "=>", "->", "::")):
        return True
    if "<" in trimmed and ">" in trimmed:
        return True
    if not any(ch.isspace() for ch in trimmed) and trimmed.isascii() and _looks_like_identifier(trimmed):
        return True
    return False


def should_translate_text(value: str) -> bool:
    trimmed = value.strip()
    if not trimmed or is_numeric_like(trimmed):
        return False
    return not looks_like_code(trimmed)


def contains_non_latin_script(value: str) -> bool:
    return any(ch.isalpha() and not ch.isascii() and not _is_latin_letter(ch) for ch in value)


def _is_latin_letter(ch: str) -> bool:
    try:
        return "LATIN" in unicodedata.name(ch)
    except ValueError:
        return False


def is_latin_reading(value: str) -> bool:
    """A usable romanization: has ASCII letters and no letters from any other script."""
    if not any(ch.isascii() and ch.isalpha() for ch in value):
        return False
    return not any(ch.isalpha() and not ch.isascii() for ch in value)


def should_filter_by_source_lang(source_lang: str) -> bool:
    lang = (source_lang or "").strip().lower()
    if lang in ("", "auto", "und", "mul"):
        return False
    return lang in ("ja", "jpn", "jp") or lang.startswith(("zh", "ko"))


def should_keep_cjk_line(text: str) -> bool:
    if is_numeric_like(text.strip()):
        return True
    chars = [ch for ch in text if not ch.isspace()]
    cjk = sum(1 for ch in chars if is_cjk(ch))
    if cjk >= 2:
        return cjk / max(len(chars), 1) >= 0.35 or len(chars) <= 6
    return False


def sanitize_filename(name: str) -> str:
    cleaned = "".join(ch if (ch.isascii() and ch.isalnum()) or ch in "._-" else "_" for ch in name)
    return cleaned or "file"
