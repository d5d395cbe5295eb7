# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import os
from pathlib import Path

import pytest

from attachtranslate.config import Settings
from attachtranslate.utils.dotenv import load_env_file, parse_env_lines
from attachtranslate.utils.i18n import t


@pytest.fixture
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith(("ATTACHTRANSLATE_", "OPENAI_")) or key in ("API_KEY", "BASE_URL"):
            monkeypatch.delenv(key)


def test_defaults(clean_env):
    settings = Settings.from_env()
    assert settings.concurrency == 3
    assert settings.backup_ttl_days == 30
    assert settings.history_limit == 100
    assert settings.suffix == "_translated"
    assert settings.ignore_file == ".translationignore"
    assert settings.min_confidence == 0.5
    assert settings.style.stroke_color == "#e53935"
    assert settings.style.font_size is None
    assert settings.backup_root == settings.cache_dir / "backups"


def test_environment_overrides(clean_env, monkeypatch, tmp_path):
    monkeypatch.setenv("ATTACHTRANSLATE_DIR_THREADS", "8")
    monkeypatch.setenv("ATTACHTRANSLATE_BACKUP_TTL_DAYS", "0")
    monkeypatch.setenv("ATTACHTRANSLATE_OVERLAY_FONT_SIZE", "18")
    monkeypatch.setenv("ATTACHTRANSLATE_CACHE_DIR", str(tmp_path))
    monkeypatch.setenv("OPENAI_API_KEY", "sk-fallback")
    settings = Settings.from_env()
    assert settings.concurrency == 8
    assert settings.backup_ttl_days == 30
    assert settings.style.font_size == 18
    assert settings.api_key == "sk-fallback"
    assert settings.ocr_debug_dir == tmp_path / "ocr"


def test_bad_integer_is_reported(clean_env, monkeypatch):
    monkeypatch.setenv("ATTACHTRANSLATE_DIR_THREADS", "many")
    with pytest.raises(ValueError, match="ATTACHTRANSLATE_DIR_THREADS"):
        Settings.from_env()


def test_oracle_config_overrides_skip_none(clean_env):
    config = Settings(api_key="from-env").oracle_config(api_key=None, model_id="m-1")
    assert config.api_key == "from-env"
    assert config.model_id == "m-1"


def test_parse_env_lines():
    pairs = parse_env_lines([
        "# comment",
        "export A=1",
        'B="quoted # kept"',
        "C=value # dropped",
        "not a pair",
    ])
    assert pairs == [("A", "1"), ("B", "quoted # kept"), ("C", "value")]


def test_load_env_file_does_not_override(tmp_path, monkeypatch):
    env = tmp_path / ".env"
    env.write_text("ATTACHTRANSLATE_X=file\nATTACHTRANSLATE_Y=file\n", encoding="utf-8")
    monkeypatch.setenv("ATTACHTRANSLATE_X", "process")
    monkeypatch.delenv("ATTACHTRANSLATE_Y", raising=False)
    used, keys = load_env_file(env)
    assert used == str(env)
    assert keys == ["ATTACHTRANSLATE_Y"]
    assert os.environ["ATTACHTRANSLATE_X"] == "process"
    monkeypatch.delenv("ATTACHTRANSLATE_Y")


def test_load_env_file_missing(tmp_path):
    assert load_env_file(Path(tmp_path / "nope.env")) == (None, [])


def test_messages_fall_back_to_english():
    assert t("generated", lang="zh", path="x") == "已生成: x"
    assert t("generated", lang="de", path="x") == "Generated: x"
    assert t("unknown_key") == "unknown_key"
