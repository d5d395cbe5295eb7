# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from attachtranslate.ignore.matcher import IgnoreMatcher, IgnorePattern, is_ignored, DEFAULT_IGNORE_FILE

__all__ = ["IgnoreMatcher", "IgnorePattern", "is_ignored", "DEFAULT_IGNORE_FILE"]
