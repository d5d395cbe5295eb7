# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import io
import zipfile

import pytest

from attachtranslate.errors import AmbiguousMime, UnreadableInput, UnsupportedKind
from attachtranslate.ir.types import AttachmentKind
from attachtranslate.mime.resolver import DOCX_MIME, PDF_MIME, XLSX_MIME, extension_from_mime, resolve, sniff_mime


def _zip(entries: dict[str, bytes]) -> bytes:
    out = io.BytesIO()
    with zipfile.ZipFile(out, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return out.getvalue()


def test_extension_decides_kind(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("# Title\n", encoding="utf-8")
    resolution = resolve(path)
    assert resolution.kind is AttachmentKind.MARKUP
    assert resolution.mime == "text/markdown"
    assert resolution.source == "extension"


def test_explicit_hint_beats_extension(tmp_path):
    path = tmp_path / "page.txt"
    path.write_text("<p>hello</p>", encoding="utf-8")
    resolution = resolve(path, "html")
    assert resolution.kind is AttachmentKind.MARKUP
    assert resolution.source == "hint"


def test_sniff_png_without_name(png_bytes):
    resolution = resolve(png_bytes)
    assert resolution.kind is AttachmentKind.IMAGE
    assert resolution.mime == "image/png"
    assert resolution.source == "sniff"


def test_sniff_office_package_from_entries():
    data = _zip({"[Content_Types].xml": b"<Types/>", "xl/workbook.xml": b"<workbook/>"})
    assert sniff_mime(data) == XLSX_MIME
    assert resolve(data).kind is AttachmentKind.OFFICE


def test_plain_zip_is_unsupported():
    data = _zip({"readme.txt": b"hi"})
    with pytest.raises(UnsupportedKind):
        resolve(data)


def test_pdf_magic():
    assert resolve(b"%PDF-1.7\n...").mime == PDF_MIME


def test_image_hint_requires_image_bytes():
    with pytest.raises(AmbiguousMime):
        resolve(b"just some text", "image")


def test_office_hint_resolves_concrete_package():
    data = _zip({"word/document.xml": b"<document/>"})
    assert resolve(data, "office").mime == DOCX_MIME


def test_unknown_hint_is_ambiguous():
    with pytest.raises(AmbiguousMime):
        resolve(b"data", "spreadsheet-ish")


@pytest.mark.parametrize(("name", "mime"), [
    ("strings.po", "text/x-po"),
    ("app.js", "text/javascript"),
    ("lib.mjs", "text/javascript"),
    ("util.ts", "text/x-typescript"),
    ("App.tsx", "text/x-tsx"),
    ("Widget.jsx", "text/x-tsx"),
    ("flow.mmd", "text/vnd.mermaid"),
])
def test_source_and_catalogue_extensions_are_markup(name, mime):
    resolution = resolve(b"whatever", name=name)
    assert resolution.kind is AttachmentKind.MARKUP
    assert resolution.mime == mime


def test_script_hint_aliases():
    assert resolve(b"let a = 1;", "application/javascript").mime == "text/javascript"
    assert resolve(b"graph TD", "text/x-mermaid").mime == "text/vnd.mermaid"


@pytest.mark.parametrize("name", ["legacy.doc", "photo.heic"])
def test_recognised_but_unhandled_extensions(name):
    with pytest.raises(UnsupportedKind):
        resolve(b"whatever", name=name)


def test_unknown_extension_is_unsupported():
    with pytest.raises(UnsupportedKind):
        resolve(b"\x00\x01", name="blob.xyz")


def test_no_extension_and_no_magic_is_ambiguous():
    with pytest.raises(AmbiguousMime):
        resolve(b"plain words")


def test_force_falls_back_to_text():
    resolution = resolve(b"plain words", force=True)
    assert resolution.kind is AttachmentKind.TEXT
    assert resolution.source == "force"


def test_stream_source():
    assert resolve(io.BytesIO(b"<!DOCTYPE html><html></html>")).mime == "text/html"


def test_missing_file_is_unreadable(tmp_path):
    with pytest.raises(UnreadableInput):
        resolve(tmp_path / "missing.txt")


def test_extension_from_mime():
    assert extension_from_mime("image/jpeg") == "jpg"
    assert extension_from_mime("application/x-unknown") is None
