# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from dataclasses import dataclass


@dataclass(kw_only=True)
class OverlayStyle:
    text_color: str = "#111111"
    stroke_color: str = "#e53935"
    fill_color: str = "#ffffff"
    font_size: float | None = None  # None: markers follow the box height, footer uses 14
    font_path: str | None = None
