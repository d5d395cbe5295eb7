# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from pathlib import Path
from typing import Self

from attachtranslate.errors import UnreadableInput


class Document:
    """
    In-memory carrier of one file: raw bytes plus the naming needed to write it back.
    """

    def __init__(self, content: bytes, suffix: str = "", stem: str | None = None,
                 path: Path | str | None = None, mime: str | None = None):
        self.content = content
        self.suffix = suffix
        self.stem = stem
        self.path = Path(path) if path is not None else None
        self.mime = mime

    @property
    def name(self) -> str | None:
        if self.stem is None:
            return None
        return f"{self.stem}{self.suffix}"

    @classmethod
    def from_bytes(cls, content: bytes, suffix: str = "", stem: str | None = None, mime: str | None = None) -> Self:
        return cls(content=content, suffix=suffix, stem=stem, mime=mime)

    @classmethod
    def from_path(cls, path: Path | str) -> Self:
        path = Path(path)
        try:
            content = path.read_bytes()
        except OSError as e:
            raise UnreadableInput(f"cannot read {path}: {e}") from e
        return cls(content=content, suffix=path.suffix, stem=path.stem, path=path)

    def copy(self) -> Self:
        return self.__class__(content=self.content, suffix=self.suffix, stem=self.stem,
                              path=self.path, mime=self.mime)

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r}, mime={self.mime!r}, size={len(self.content)})"
