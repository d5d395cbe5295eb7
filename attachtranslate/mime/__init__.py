# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from attachtranslate.mime.resolver import resolve, sniff_mime, extension_from_mime

__all__ = ["resolve", "sniff_mime", "extension_from_mime"]
