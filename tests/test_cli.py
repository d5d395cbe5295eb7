# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import io
import json
import sys
import time

import pytest

from conftest import FakeOracle
from attachtranslate import __version__, cli
from attachtranslate.agents import oracle as oracle_module

TABLE = {"Hello": "Hi", "World": "Earth"}


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("ATTACHTRANSLATE_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.delenv("ATTACHTRANSLATE_SUFFIX", raising=False)
    monkeypatch.delenv("ATTACHTRANSLATE_LANG", raising=False)


@pytest.fixture
def fake_oracle(monkeypatch):
    fake = FakeOracle(TABLE, fail_on={"Boom"})
    monkeypatch.setattr(oracle_module, "LLMOracle", lambda config: fake)
    return fake


def run(*argv: str) -> int:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--no-env", "-q", *argv])
    return exc.value.code


def test_version(capsys):
    cli.main(["version"])
    assert capsys.readouterr().out.strip() == __version__


def test_translate_file_writes_sibling(tmp_path, fake_oracle):
    src = tmp_path / "a.txt"
    src.write_text("Hello\n", encoding="utf-8")
    assert run("translate", str(src)) == cli.EC_OK
    assert (tmp_path / "a_translated.txt").read_text(encoding="utf-8") == "Hi\n"
    assert src.read_text(encoding="utf-8") == "Hello\n"


def test_translate_overwrite_keeps_a_backup(tmp_path, fake_oracle, capsys):
    src = tmp_path / "a.txt"
    src.write_text("Hello\n", encoding="utf-8")
    assert run("translate", str(src), "--overwrite") == cli.EC_OK
    assert src.read_text(encoding="utf-8") == "Hi\n"

    capsys.readouterr()
    assert run("backups", "list") == cli.EC_OK
    assert str(src) in capsys.readouterr().out


def test_out_and_overwrite_are_exclusive(tmp_path, fake_oracle):
    src = tmp_path / "a.txt"
    src.write_text("Hello\n", encoding="utf-8")
    assert run("translate", str(src), "--out", str(tmp_path / "b.txt"), "--overwrite") == 2


def test_missing_input_is_invalid(tmp_path, fake_oracle):
    assert run("translate", str(tmp_path / "missing.txt")) == cli.EC_INVALID_INPUT


def test_unsupported_file_is_invalid(tmp_path, fake_oracle):
    src = tmp_path / "blob.xyz"
    src.write_bytes(b"\x00")
    assert run("translate", str(src)) == cli.EC_INVALID_INPUT


def test_oracle_failure_exit_code(tmp_path, fake_oracle):
    src = tmp_path / "a.txt"
    src.write_text("Boom\n", encoding="utf-8")
    assert run("translate", str(src)) == cli.EC_LLM_ERROR
    assert not (tmp_path / "a_translated.txt").exists()


def test_missing_dependency_exit_code(tmp_path, monkeypatch):
    def missing(settings, ns):
        raise ModuleNotFoundError("No module named 'pytesseract'", name="pytesseract")

    monkeypatch.setattr(cli, "_build_oracle", missing)
    src = tmp_path / "a.txt"
    src.write_text("Hello\n", encoding="utf-8")
    assert run("translate", str(src)) == cli.EC_DEP_MISSING


def test_directory_with_failures_reports_partial(tmp_path, fake_oracle, capsys):
    root = tmp_path / "docs"
    root.mkdir()
    (root / "a.txt").write_text("Hello\n", encoding="utf-8")
    (root / "b.txt").write_text("Boom\n", encoding="utf-8")
    report = tmp_path / "report.json"

    code = run("translate", str(root), "--out", str(tmp_path / "out"), "--report-json", str(report))

    assert code == cli.EC_PARTIAL_FAILURE
    out = capsys.readouterr().out
    assert "files: 1 translated, 0 copied, 0 skipped, 1 failed (total 2)" in out
    assert "b.txt: provider refused: Boom" in out
    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["summary"]["failed"] == 1
    assert (tmp_path / "out" / "b.txt").read_text(encoding="utf-8") == "Boom\n"


def test_directory_without_failures_succeeds(tmp_path, fake_oracle):
    root = tmp_path / "docs"
    root.mkdir()
    (root / "a.txt").write_text("World\n", encoding="utf-8")
    assert run("translate", str(root), "--concurrency", "1") == cli.EC_OK
    assert (tmp_path / "docs_translated" / "a.txt").read_text(encoding="utf-8") == "Earth\n"


def test_stdin_rejects_overwrite(monkeypatch, fake_oracle):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"Hello\n")))
    assert run("translate", "-", "--overwrite") == cli.EC_INVALID_INPUT


def test_stdin_to_out_file(tmp_path, monkeypatch, fake_oracle):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"Hello\n")))
    out = tmp_path / "result.txt"
    assert run("translate", "-", "--mime", "txt", "--out", str(out)) == cli.EC_OK
    assert out.read_text(encoding="utf-8") == "Hi\n"


def test_history_lists_translations(tmp_path, fake_oracle, capsys):
    src = tmp_path / "a.txt"
    src.write_text("Hello\n", encoding="utf-8")
    run("translate", str(src), "--to-lang", "fr")
    capsys.readouterr()

    assert run("history", "--json") == cli.EC_OK
    [entry] = json.loads(capsys.readouterr().out)
    assert entry["target_lang"] == "fr"
    assert entry["excerpt"] == "Hi"


def test_history_empty(capsys):
    assert run("history") == cli.EC_OK
    assert "No translation history yet." in capsys.readouterr().out


def test_models_served_from_fresh_cache(tmp_path, capsys):
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    (cache_dir / "models_gemini.json").write_text(
        json.dumps({"fetched_at": time.time(), "models": ["gemini-a", "gemini-b"]}), encoding="utf-8"
    )
    assert run("models", "gemini") == cli.EC_OK
    assert capsys.readouterr().out.split() == ["gemini-a", "gemini-b"]


def test_models_without_key_fails(monkeypatch):
    for var in ("ANTHROPIC_API_KEY", "CLAUDE_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    assert run("models", "claude", "--refresh") == cli.EC_LLM_ERROR


def test_backups_prune(capsys):
    assert run("backups", "prune", "--ttl-days", "1") == cli.EC_OK
    assert "Pruned 0 backup(s)" in capsys.readouterr().out
