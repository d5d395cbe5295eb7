# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import zipfile
from io import BytesIO

from lxml import etree

from attachtranslate.errors import ExtractionError
from attachtranslate.handlers.base import AttachmentHandler
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentKind, TranslationUnit
from attachtranslate.mime.resolver import DOCX_MIME, PPTX_MIME, XLSX_MIME
from attachtranslate.utils.text_utils import split_text_bounds

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
S_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

# mime -> (entry prefix, xpath selecting the text nodes)
OFFICE_PARTS = {
    DOCX_MIME: ("word/", "//w:t", {"w": W_NS}),
    PPTX_MIME: ("ppt/", "//a:t", {"a": A_NS}),
    XLSX_MIME: ("xl/", "//s:si//s:t[not(ancestor::s:rPh)] | //s:is//s:t[not(ancestor::s:rPh)]", {"s": S_NS}),
}

_PARSER = etree.XMLParser(resolve_entities=False, remove_blank_text=False, huge_tree=True)


class OfficeHandler(AttachmentHandler):
    """
    DOCX / PPTX / XLSX. The package is a zip of XML parts; text nodes in the body parts are units.
    Every other entry is copied through with its original compression.
    """
    kind = AttachmentKind.OFFICE

    @staticmethod
    def _rules(document: Document):
        try:
            return OFFICE_PARTS[document.mime]
        except KeyError:
            raise ExtractionError(f"not an office package mime: {document.mime}") from None

    @staticmethod
    def _open(document: Document) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(BytesIO(document.content))
        except zipfile.BadZipFile as e:
            raise ExtractionError(f"{document.name or 'input'} is not a valid zip package: {e}") from e

    @staticmethod
    def _is_text_part(name: str, prefix: str) -> bool:
        return name.startswith(prefix) and name.endswith(".xml")

    @staticmethod
    def _parse(name: str, data: bytes):
        try:
            return etree.fromstring(data, parser=_PARSER)
        except etree.XMLSyntaxError as e:
            raise ExtractionError(f"cannot parse {name}: {e}") from e

    def extract(self, document: Document) -> list[TranslationUnit]:
        prefix, xpath, ns = self._rules(document)
        units = []
        with self._open(document) as zf:
            for info in zf.infolist():
                if not self._is_text_part(info.filename, prefix):
                    continue
                root = self._parse(info.filename, zf.read(info))
                for index, node in enumerate(root.xpath(xpath, namespaces=ns)):
                    if node.text and node.text.strip():
                        units.append(TranslationUnit(text=node.text, key=(info.filename, index)))
        return units

    def reconstruct(self, document: Document, units: list[TranslationUnit], translations: list[str]) -> bytes:
        prefix, xpath, ns = self._rules(document)
        by_entry: dict[str, dict[int, str]] = {}
        for unit, translated in zip(units, translations):
            entry, index = unit.key
            by_entry.setdefault(entry, {})[index] = translated

        out = BytesIO()
        with self._open(document) as zf, zipfile.ZipFile(out, "w") as zout:
            for info in zf.infolist():
                data = zf.read(info)
                replacements = by_entry.get(info.filename)
                if replacements:
                    data = self._rewrite_part(info.filename, data, xpath, ns, replacements)
                zout.writestr(info, data, compress_type=info.compress_type)
        return out.getvalue()

    def _rewrite_part(self, name: str, data: bytes, xpath: str, ns: dict, replacements: dict[int, str]) -> bytes:
        root = self._parse(name, data)
        nodes = root.xpath(xpath, namespaces=ns)
        for index, translated in replacements.items():
            if index >= len(nodes):
                raise ExtractionError(f"{name}: text node {index} disappeared while rewriting")
            node = nodes[index]
            node.text = translated
            bounds = split_text_bounds(translated)
            if node.tag == f"{{{W_NS}}}t" and bounds and (bounds[0] > 0 or bounds[1] < len(translated)):
                node.set(XML_SPACE, "preserve")
        tree = root.getroottree()
        return etree.tostring(
            tree,
            xml_declaration=True,
            encoding=tree.docinfo.encoding or "UTF-8",
            standalone=tree.docinfo.standalone,
        )
