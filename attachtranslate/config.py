# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Self

from attachtranslate.agents.oracle import DEFAULT_BASE_URL, DEFAULT_MODEL, OracleConfig
from attachtranslate.ignore.matcher import DEFAULT_IGNORE_FILE
from attachtranslate.output.resolver import DEFAULT_SUFFIX
from attachtranslate.overlay.style import OverlayStyle
from attachtranslate.utils.dotenv import env_bool, env_float, env_int

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "attachtranslate"
ENV_PREFIX = "ATTACHTRANSLATE_"


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(ENV_PREFIX + name)
    return value.strip() if value and value.strip() else default


@dataclass(kw_only=True)
class Settings:
    """Process-wide settings. Command line flags override these per run."""
    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    model_id: str = DEFAULT_MODEL
    timeout: int = 120
    system_proxy_enable: bool = False
    suffix: str = DEFAULT_SUFFIX
    backup_ttl_days: int = 30
    history_limit: int = 100
    concurrency: int = 3
    ignore_file: str = DEFAULT_IGNORE_FILE
    min_confidence: float = 0.5
    style: OverlayStyle = field(default_factory=OverlayStyle)
    cache_dir: Path = DEFAULT_CACHE_DIR
    backup_dir: Path | None = None
    whisper_model: str = "base"

    @property
    def backup_root(self) -> Path:
        return self.backup_dir or self.cache_dir / "backups"

    @property
    def ocr_debug_dir(self) -> Path:
        return self.cache_dir / "ocr"

    def oracle_config(self, **overrides) -> OracleConfig:
        values = dict(
            base_url=self.base_url,
            api_key=self.api_key,
            model_id=self.model_id,
            timeout=self.timeout,
            system_proxy_enable=self.system_proxy_enable,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return OracleConfig(**values)

    @classmethod
    def from_env(cls) -> Self:
        """Read ``ATTACHTRANSLATE_*`` variables, falling back to ``OPENAI_*`` for the oracle."""
        cache_dir = Path(_env("CACHE_DIR") or DEFAULT_CACHE_DIR).expanduser()
        backup_dir = _env("BACKUP_DIR")
        font_size = env_float(ENV_PREFIX + "OVERLAY_FONT_SIZE", 0.0)
        style = OverlayStyle(
            text_color=_env("OVERLAY_TEXT_COLOR", "#111111"),
            stroke_color=_env("OVERLAY_STROKE_COLOR", "#e53935"),
            fill_color=_env("OVERLAY_FILL_COLOR", "#ffffff"),
            font_size=font_size or None,
            font_path=_env("OVERLAY_FONT"),
        )
        return cls(
            base_url=_env("BASE_URL") or os.getenv("OPENAI_BASE_URL") or os.getenv("BASE_URL") or DEFAULT_BASE_URL,
            api_key=_env("API_KEY") or os.getenv("OPENAI_API_KEY") or os.getenv("API_KEY"),
            model_id=_env("MODEL") or os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
            timeout=env_int(ENV_PREFIX + "TIMEOUT", 120),
            system_proxy_enable=env_bool(ENV_PREFIX + "SYSTEM_PROXY", False),
            suffix=_env("SUFFIX", DEFAULT_SUFFIX),
            backup_ttl_days=env_int(ENV_PREFIX + "BACKUP_TTL_DAYS", 30) or 30,
            history_limit=env_int(ENV_PREFIX + "HISTORY_LIMIT", 100),
            concurrency=max(1, env_int(ENV_PREFIX + "DIR_THREADS", 3)),
            ignore_file=_env("IGNORE_FILE", DEFAULT_IGNORE_FILE),
            min_confidence=env_float(ENV_PREFIX + "OCR_MIN_CONFIDENCE", 0.5),
            style=style,
            cache_dir=cache_dir,
            backup_dir=Path(backup_dir).expanduser() if backup_dir else None,
            whisper_model=_env("WHISPER_MODEL", "base"),
        )
