# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0


class AttachmentError(Exception):
    """Base class for every failure raised while translating an attachment."""


class UnreadableInput(AttachmentError):
    """The source could not be opened or read."""


class AmbiguousMime(AttachmentError):
    """The kind of the source could not be determined with confidence."""


class UnsupportedKind(AttachmentError):
    """The source was classified but no handler exists for it."""

    def __init__(self, message: str, mime: str | None = None):
        super().__init__(message)
        self.mime = mime


class ExtractionError(AttachmentError):
    """The source is malformed for its kind (corrupt package, undecodable text, no text found)."""


class OracleError(AttachmentError):
    """The translation oracle failed. The message is the provider's, unmodified."""


class RenderError(AttachmentError):
    """The OCR overlay pass could not be completed."""


class BackupError(AttachmentError):
    """A backup could not be created or its index could not be written."""
