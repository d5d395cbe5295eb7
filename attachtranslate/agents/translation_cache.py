# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import logging
from threading import Lock

from attachtranslate.agents.oracle import OracleResult, TranslationOracle
from attachtranslate.ir.types import LanguagePair, StyleOptions
from attachtranslate.logger import global_logger
from attachtranslate.utils.text_utils import (
    collapse_whitespace,
    is_numeric_like,
    sanitize_ocr_text,
    split_text_bounds,
)


class TranslationCache:
    """
    Per-job front of the oracle: identical source strings are sent once.

    One instance lives for one attachment job and is dropped with it.
    """

    def __init__(self, oracle: TranslationOracle, language_pair: LanguagePair,
                 style_options: StyleOptions | None = None, logger: logging.Logger = global_logger):
        self.oracle = oracle
        self.language_pair = language_pair
        self.style_options = style_options or StyleOptions()
        self.logger = logger
        self._results: dict[str, OracleResult] = {}
        self._lock = Lock()
        self.calls = 0

    def lookup(self, text: str) -> OracleResult:
        with self._lock:
            cached = self._results.get(text)
        if cached is not None:
            return cached
        result = self.oracle.translate(
            text,
            self.language_pair.source_lang,
            self.language_pair.target_lang,
            self.style_options.style,
            self.style_options.slang,
        )
        with self._lock:
            self.calls += 1
            self._results.setdefault(text, result)
        return result

    def translate(self, text: str) -> str:
        return self.lookup(text).translated

    def translate_preserve_whitespace(self, text: str) -> str:
        bounds = split_text_bounds(text)
        if bounds is None:
            return text
        start, end = bounds
        return f"{text[:start]}{self.translate(text[start:end])}{text[end:]}"

    def translate_ocr_line(self, text: str) -> OracleResult:
        cleaned = sanitize_ocr_text(collapse_whitespace(text)).strip()
        if not cleaned:
            return OracleResult(translated=text)
        if is_numeric_like(cleaned) or len(cleaned) <= 1:
            return OracleResult(translated=cleaned)
        return self.lookup(cleaned)
