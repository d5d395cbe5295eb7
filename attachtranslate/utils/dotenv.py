# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

ENV_FILE_VAR = "ATTACHTRANSLATE_ENV_FILE"


def _strip_quotes(val: str) -> tuple[str, bool]:
    val = val.strip()
    if len(val) >= 2 and val[0] == val[-1] and val[0] in ('"', "'"):
        return val[1:-1], True
    return val, False


def parse_env_lines(lines: Iterable[str]) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        if line.lower().startswith('export '):
            line = line[7:].lstrip()
        if '=' not in line:
            continue
        key, value = line.split('=', 1)
        value, quoted = _strip_quotes(value)
        # inline comments only count outside quotes
        if not quoted and ' #' in value:
            value = value.split(' #', 1)[0].rstrip()
        pairs.append((key.strip(), value))
    return pairs


def load_env_file(path: str | Path | None = None, *, override: bool = False) -> tuple[str | None, list[str]]:
    """
    Load environment variables from a .env file.

    Resolution order when path is None:
    1) $ATTACHTRANSLATE_ENV_FILE if set
    2) ./.env in the current working directory

    Existing variables win unless ``override`` is set.
    Returns (path_used, loaded_keys).
    """
    if path is not None:
        candidate = Path(path)
    else:
        env_hint = os.getenv(ENV_FILE_VAR)
        candidate = Path(env_hint) if env_hint else Path.cwd() / '.env'

    if not candidate.is_file():
        return None, []
    try:
        content = candidate.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError):
        return None, []

    keys: list[str] = []
    for k, v in parse_env_lines(content.splitlines()):
        if override or k not in os.environ:
            os.environ[k] = v
            keys.append(k)
    return str(candidate), keys


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"environment variable {name} must be an integer, got {raw!r}") from None


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        raise ValueError(f"environment variable {name} must be a number, got {raw!r}") from None
