# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from io import BytesIO
from pathlib import Path
from typing import BinaryIO
import zipfile

from attachtranslate.errors import AmbiguousMime, UnreadableInput, UnsupportedKind
from attachtranslate.ir.types import AttachmentKind, MimeResolution

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PPTX_MIME = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIME = "application/pdf"
DOC_MIME = "application/msword"
ZIP_MIME = "application/zip"
TEXT_MIME = "text/plain"
HTML_MIME = "text/html"
XML_MIME = "application/xml"
MARKDOWN_MIME = "text/markdown"
JSON_MIME = "application/json"
YAML_MIME = "text/yaml"
PO_MIME = "text/x-po"
JS_MIME = "text/javascript"
TS_MIME = "text/x-typescript"
TSX_MIME = "text/x-tsx"
MERMAID_MIME = "text/vnd.mermaid"
MP3_MIME = "audio/mpeg"
WAV_MIME = "audio/wav"
M4A_MIME = "audio/mp4"
FLAC_MIME = "audio/flac"
OGG_MIME = "audio/ogg"

MIME_KINDS: dict[str, AttachmentKind] = {
    TEXT_MIME: AttachmentKind.TEXT,
    HTML_MIME: AttachmentKind.MARKUP,
    XML_MIME: AttachmentKind.MARKUP,
    MARKDOWN_MIME: AttachmentKind.MARKUP,
    JSON_MIME: AttachmentKind.MARKUP,
    YAML_MIME: AttachmentKind.MARKUP,
    PO_MIME: AttachmentKind.MARKUP,
    JS_MIME: AttachmentKind.MARKUP,
    TS_MIME: AttachmentKind.MARKUP,
    TSX_MIME: AttachmentKind.MARKUP,
    MERMAID_MIME: AttachmentKind.MARKUP,
    DOCX_MIME: AttachmentKind.OFFICE,
    PPTX_MIME: AttachmentKind.OFFICE,
    XLSX_MIME: AttachmentKind.OFFICE,
    PDF_MIME: AttachmentKind.PDF,
    "image/png": AttachmentKind.IMAGE,
    "image/jpeg": AttachmentKind.IMAGE,
    "image/gif": AttachmentKind.IMAGE,
    "image/webp": AttachmentKind.IMAGE,
    "image/bmp": AttachmentKind.IMAGE,
    "image/tiff": AttachmentKind.IMAGE,
    MP3_MIME: AttachmentKind.AUDIO,
    WAV_MIME: AttachmentKind.AUDIO,
    M4A_MIME: AttachmentKind.AUDIO,
    FLAC_MIME: AttachmentKind.AUDIO,
    OGG_MIME: AttachmentKind.AUDIO,
}

EXTENSION_MIMES: dict[str, str] = {
    "txt": TEXT_MIME,
    "text": TEXT_MIME,
    "html": HTML_MIME,
    "htm": HTML_MIME,
    "xhtml": HTML_MIME,
    "xml": XML_MIME,
    "md": MARKDOWN_MIME,
    "markdown": MARKDOWN_MIME,
    "json": JSON_MIME,
    "yaml": YAML_MIME,
    "yml": YAML_MIME,
    "po": PO_MIME,
    "js": JS_MIME,
    "mjs": JS_MIME,
    "cjs": JS_MIME,
    "ts": TS_MIME,
    "mts": TS_MIME,
    "cts": TS_MIME,
    "tsx": TSX_MIME,
    "jsx": TSX_MIME,
    "mmd": MERMAID_MIME,
    "mermaid": MERMAID_MIME,
    "pdf": PDF_MIME,
    "doc": DOC_MIME,
    "docx": DOCX_MIME,
    "pptx": PPTX_MIME,
    "xlsx": XLSX_MIME,
    "mp3": MP3_MIME,
    "wav": WAV_MIME,
    "m4a": M4A_MIME,
    "flac": FLAC_MIME,
    "ogg": OGG_MIME,
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "heic": "image/heic",
}

# Aliases accepted as an explicit hint, in addition to the extensions above.
HINT_ALIASES: dict[str, str] = {
    "docs": DOCX_MIME,
    "application/x-yaml": YAML_MIME,
    "application/yaml": YAML_MIME,
    "text/x-yaml": YAML_MIME,
    "text/xml": XML_MIME,
    "text/x-gettext-translation": PO_MIME,
    "application/x-gettext-translation": PO_MIME,
    "application/javascript": JS_MIME,
    "application/x-javascript": JS_MIME,
    "text/x-javascript": JS_MIME,
    "application/typescript": TS_MIME,
    "text/typescript": TS_MIME,
    "text/x-mermaid": MERMAID_MIME,
    "audio/mp3": MP3_MIME,
    "audio/x-wav": WAV_MIME,
    "audio/x-flac": FLAC_MIME,
    "audio/m4a": M4A_MIME,
    "image/jpg": "image/jpeg",
}

_MIME_EXTENSIONS: dict[str, str] = {
    TEXT_MIME: "txt",
    HTML_MIME: "html",
    XML_MIME: "xml",
    MARKDOWN_MIME: "md",
    JSON_MIME: "json",
    YAML_MIME: "yaml",
    PO_MIME: "po",
    JS_MIME: "js",
    TS_MIME: "ts",
    TSX_MIME: "tsx",
    MERMAID_MIME: "mmd",
    PDF_MIME: "pdf",
    DOC_MIME: "doc",
    DOCX_MIME: "docx",
    PPTX_MIME: "pptx",
    XLSX_MIME: "xlsx",
    MP3_MIME: "mp3",
    WAV_MIME: "wav",
    M4A_MIME: "m4a",
    FLAC_MIME: "flac",
    OGG_MIME: "ogg",
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
    "image/heic": "heic",
}

SNIFF_LENGTH = 8192


def extension_from_mime(mime: str) -> str | None:
    return _MIME_EXTENSIONS.get(mime)


def _office_mime_in_zip(data: bytes) -> str | None:
    try:
        with zipfile.ZipFile(BytesIO(data)) as zf:
            names = zf.namelist()
    except zipfile.BadZipFile:
        names = None
    if names is not None:
        for prefix, mime in (("word/", DOCX_MIME), ("ppt/", PPTX_MIME), ("xl/", XLSX_MIME)):
            if any(name.startswith(prefix) for name in names):
                return mime
        return None
    # Truncated stream: fall back to scanning the local file headers.
    for needle, mime in ((b"word/", DOCX_MIME), (b"ppt/", PPTX_MIME), (b"xl/", XLSX_MIME)):
        if needle in data:
            return mime
    return None


def sniff_mime(data: bytes) -> str | None:
    """
    Identify the content by its magic bytes. Returns None when nothing matches confidently.
    """
    head = data[:SNIFF_LENGTH]
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if head.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if head.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    if head[:4] == b"RIFF" and head[8:12] == b"WAVE":
        return WAV_MIME
    if head.startswith(b"BM") and len(head) > 14:
        return "image/bmp"
    if head.startswith((b"II*\x00", b"MM\x00*")):
        return "image/tiff"
    if head.startswith(b"%PDF-"):
        return PDF_MIME
    if head.startswith(b"PK\x03\x04"):
        return _office_mime_in_zip(data) or ZIP_MIME
    if head.startswith(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"):
        return DOC_MIME
    if head.startswith(b"ID3") or (len(head) > 1 and head[0] == 0xFF and head[1] & 0xE0 == 0xE0):
        return MP3_MIME
    if head.startswith(b"OggS"):
        return OGG_MIME
    if head.startswith(b"fLaC"):
        return FLAC_MIME
    if head[4:8] == b"ftyp" and head[8:11] in (b"M4A", b"mp4", b"iso"):
        return M4A_MIME
    stripped = head.lstrip(b"\xef\xbb\xbf \t\r\n").lower()
    if stripped.startswith((b"<!doctype html", b"<html")):
        return HTML_MIME
    if stripped.startswith(b"<?xml"):
        return XML_MIME
    return None


def _kind_for(mime: str, source: str) -> MimeResolution:
    kind = MIME_KINDS.get(mime)
    if kind is None:
        raise UnsupportedKind(f"no handler for mime '{mime}'", mime=mime)
    return MimeResolution(kind=kind, mime=mime, source=source)


def _read_source(source: Path | str | bytes | BinaryIO) -> tuple[bytes, Path | None]:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source), None
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            with open(path, "rb") as f:
                return f.read(), path
        except OSError as e:
            raise UnreadableInput(f"cannot open {path}: {e}") from e
    try:
        return source.read(), None
    except (OSError, ValueError) as e:
        raise UnreadableInput(f"cannot read stream: {e}") from e


def _resolve_hint(hint: str, data: bytes) -> MimeResolution:
    lower = hint.strip().lower()
    if lower in ("image", "image/*"):
        detected = sniff_mime(data)
        if detected is None or not detected.startswith("image/"):
            raise AmbiguousMime(f"mime hint '{hint}' requires image data (detected '{detected}')")
        return _kind_for(detected, "hint")
    if lower in ("office", "zip"):
        detected = sniff_mime(data)
        if detected not in (DOCX_MIME, PPTX_MIME, XLSX_MIME):
            raise AmbiguousMime(f"mime hint '{hint}' requires an office package (detected '{detected}')")
        return _kind_for(detected, "hint")
    mime = EXTENSION_MIMES.get(lower) or HINT_ALIASES.get(lower)
    if mime is None and (lower in MIME_KINDS or lower in _MIME_EXTENSIONS):
        mime = lower
    if mime is None and lower.startswith(("image/", "audio/")):
        mime = lower
    if mime is None:
        raise AmbiguousMime(
            f"unsupported mime hint '{hint}' (expected auto, image, pdf, docx, pptx, xlsx, txt, html, "
            f"xml, md, json, yaml, po, js, ts, tsx, mmd, mp3, wav, m4a, flac, ogg, png, jpg, gif, webp, bmp, tiff)"
        )
    return _kind_for(mime, "hint")


def resolve(source: Path | str | bytes | BinaryIO, explicit_hint: str | None = "auto", *,
            name: str | None = None, force: bool = False) -> MimeResolution:
    """
    Classify a path, a byte string or a readable stream.

    Precedence is explicit hint, then the file extension, then content sniffing.
    With ``force`` an unrecognised source is treated as plain text instead of failing.

    Raises:
        UnreadableInput: the source cannot be opened.
        AmbiguousMime: nothing matched and the source carries no extension to blame.
        UnsupportedKind: the source was recognised but no handler exists for it.
    """
    data, path = _read_source(source)
    hint = (explicit_hint or "auto").strip()
    if not hint:
        raise AmbiguousMime("mime hint is empty")
    if hint.lower() != "auto":
        return _resolve_hint(hint, data)

    file_name = name or (path.name if path is not None else None)
    ext = Path(file_name).suffix.lower().lstrip(".") if file_name else ""
    if ext and ext in EXTENSION_MIMES:
        return _kind_for(EXTENSION_MIMES[ext], "extension")

    detected = sniff_mime(data)
    if detected is not None:
        return _kind_for(detected, "sniff")

    if force:
        return MimeResolution(kind=AttachmentKind.TEXT, mime=TEXT_MIME, source="force")
    label = file_name or "stdin"
    if ext:
        raise UnsupportedKind(f"unsupported file type '.{ext}' for {label}")
    raise AmbiguousMime(f"unable to detect a supported mime for {label}")
