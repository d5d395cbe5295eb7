# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import argparse
import json
import os
import sys
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any

from attachtranslate.config import Settings
from attachtranslate.errors import (
    AmbiguousMime,
    BackupError,
    ExtractionError,
    OracleError,
    RenderError,
    UnreadableInput,
    UnsupportedKind,
)
from attachtranslate.logger.logger import set_verbosity
from attachtranslate.utils.dotenv import load_env_file
from attachtranslate.utils.i18n import LANG_ENV_VAR, t

# Exit codes for orchestration environments
EC_OK = 0
EC_INVALID_INPUT = 10
EC_DEP_MISSING = 20
EC_LLM_ERROR = 30
EC_EXPORT_ERROR = 40
EC_PARTIAL_FAILURE = 50

PROVIDER_KEY_VARS = {
    "openai": ("OPENAI_API_KEY", "API_KEY"),
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "claude": ("ANTHROPIC_API_KEY", "CLAUDE_API_KEY"),
}


def _exit_code_for(error: BaseException) -> int:
    if isinstance(error, ModuleNotFoundError):
        return EC_DEP_MISSING
    if isinstance(error, OracleError):
        return EC_LLM_ERROR
    if isinstance(error, (RenderError, BackupError, OSError)):
        return EC_EXPORT_ERROR
    if isinstance(error, (UnreadableInput, AmbiguousMime, UnsupportedKind, ExtractionError, ValueError)):
        return EC_INVALID_INPUT
    return EC_EXPORT_ERROR


def _missing_module(e: ModuleNotFoundError) -> str:
    return e.name or (str(e).split("'")[-2] if "'" in str(e) else str(e))


def _build_stores(settings: Settings):
    from attachtranslate.backup.manager import BackupManager
    from attachtranslate.cacher.metadata_cache import MetadataCache
    cache = MetadataCache(settings.cache_dir, history_limit=settings.history_limit).load()
    backups = BackupManager(settings.backup_root, ttl_days=settings.backup_ttl_days)
    return cache, backups


def _attachment_config(settings: Settings, ns: argparse.Namespace):
    from attachtranslate.audio.speech import WhisperCliTranscriber
    from attachtranslate.handlers.base import HandlerConfig
    from attachtranslate.handlers.registry import Collaborators
    from attachtranslate.ir.types import LanguagePair, StyleOptions
    from attachtranslate.workflow.attachment_workflow import AttachmentWorkflowConfig

    handler_config = HandlerConfig(
        with_comments=ns.with_comments,
        force=ns.force,
        debug_ocr=ns.debug_ocr,
        debug_dir=settings.ocr_debug_dir,
    )
    collaborators = Collaborators(
        style=settings.style,
        min_confidence=settings.min_confidence,
        transcriber=WhisperCliTranscriber(model=settings.whisper_model),
    )
    return AttachmentWorkflowConfig(
        language_pair=LanguagePair(source_lang=ns.from_lang, target_lang=ns.to_lang),
        style_options=StyleOptions(style=ns.style, slang=ns.slang),
        mime_hint=ns.mime,
        handler_config=handler_config,
        collaborators=collaborators,
        model_id=ns.model_id or settings.model_id,
    )


def _build_oracle(settings: Settings, ns: argparse.Namespace):
    from attachtranslate.agents.oracle import LLMOracle
    return LLMOracle(settings.oracle_config(
        base_url=ns.base_url,
        api_key=ns.api_key,
        model_id=ns.model_id,
        timeout=ns.timeout,
    ))


def _translate_stdin(settings: Settings, ns: argparse.Namespace, emit) -> int:
    from attachtranslate.workflow.attachment_workflow import AttachmentWorkflow

    if ns.overwrite:
        print(t("invalid_input", lang=ns.lang, error="--overwrite cannot be used with stdin"), file=sys.stderr)
        return EC_INVALID_INPUT
    cache, _ = _build_stores(settings)
    wf = AttachmentWorkflow(_build_oracle(settings, ns), _attachment_config(settings, ns), metadata_cache=cache)
    wf.read_bytes(sys.stdin.buffer.read())
    emit("translate_start")
    wf.translate()
    emit("translate_end")
    if ns.out:
        out_path = wf.save(Path(ns.out))
        print(t("generated", lang=ns.lang, path=str(out_path.resolve())), file=sys.stderr)
    else:
        cache.flush()
        sys.stdout.buffer.write(wf.document_translated.content)
        sys.stdout.buffer.flush()
    return EC_OK


def _translate_file(settings: Settings, ns: argparse.Namespace, input_path: Path, emit) -> int:
    from attachtranslate.output.resolver import resolve_output
    from attachtranslate.workflow.attachment_workflow import AttachmentWorkflow

    if ns.out and ns.overwrite:
        raise ValueError("--out and --overwrite cannot be used together")
    cache, backups = _build_stores(settings)
    wf = AttachmentWorkflow(_build_oracle(settings, ns), _attachment_config(settings, ns),
                            metadata_cache=cache, backup_manager=backups)
    emit("read_start", {"path": str(input_path)})
    wf.read_path(input_path)
    emit("translate_start")
    t0 = time.time()
    wf.translate()
    emit("translate_end", {"ms": int((time.time() - t0) * 1000)})
    out_path = resolve_output(
        input_path,
        out_path=Path(ns.out) if ns.out else None,
        overwrite=ns.overwrite,
        suffix=settings.suffix,
        output_ext=wf.output_extension(),
    )
    wf.save(out_path, overwrite=ns.overwrite)
    emit("export_end", {"path": str(out_path)})
    print(t("generated", lang=ns.lang, path=str(out_path.resolve())))
    return EC_OK


def _translate_directory(settings: Settings, ns: argparse.Namespace, input_path: Path, emit) -> int:
    from attachtranslate.workflow.directory_workflow import DirectoryWorkflow, DirectoryWorkflowConfig

    cache, backups = _build_stores(settings)
    config = DirectoryWorkflowConfig(
        concurrency=ns.concurrency or settings.concurrency,
        strict=ns.strict,
        suffix=settings.suffix,
        ignore_file=settings.ignore_file,
        ignore_patterns=ns.ignore or [],
        overwrite=ns.overwrite,
        out=Path(ns.out) if ns.out else None,
        attachment_config=_attachment_config(settings, ns),
    )
    wf = DirectoryWorkflow(_build_oracle(settings, ns), config, metadata_cache=cache, backup_manager=backups)
    emit("translate_start", {"path": str(input_path)})
    report = wf.run(input_path)
    emit("translate_end", report.to_dict()["summary"])

    print(report.summary_line())
    if report.has_failures:
        print(t("failures_header", lang=ns.lang))
        for line in report.failure_lines():
            print(line)
    if ns.report_json:
        report_path = Path(ns.report_json)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(json.dumps(report.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        print(t("report_written", lang=ns.lang, path=str(report_path.resolve())))
    return EC_PARTIAL_FAILURE if report.has_failures else EC_OK


def _run_translate(settings: Settings, ns: argparse.Namespace) -> int:
    def _emit(event: str, data: dict[str, Any] | None = None):
        if ns.progress == "jsonl":
            payload = {"event": event, "ts": time.time()}
            if data:
                payload.update(data)
            print(json.dumps(payload, ensure_ascii=False), file=sys.stderr)

    try:
        if ns.input == "-":
            return _translate_stdin(settings, ns, _emit)
        input_path = Path(ns.input)
        if not input_path.exists():
            print(t("file_not_found", lang=ns.lang, path=str(input_path)), file=sys.stderr)
            return EC_INVALID_INPUT
        if input_path.is_dir():
            return _translate_directory(settings, ns, input_path, _emit)
        return _translate_file(settings, ns, input_path, _emit)
    except ModuleNotFoundError as e:
        _emit("error", {"stage": "build", "error": str(e)})
        print(t("missing_dependency", lang=ns.lang, missing=_missing_module(e)), file=sys.stderr)
        return EC_DEP_MISSING
    except OracleError as e:
        _emit("error", {"stage": "translate", "error": str(e)})
        print(t("translation_failed", lang=ns.lang, error=str(e)), file=sys.stderr)
        return EC_LLM_ERROR
    except (RenderError, BackupError, OSError) as e:
        _emit("error", {"stage": "export", "error": str(e)})
        print(t("write_failed", lang=ns.lang, error=str(e)), file=sys.stderr)
        return _exit_code_for(e)
    except (UnreadableInput, AmbiguousMime, UnsupportedKind, ExtractionError, ValueError) as e:
        _emit("error", {"stage": "read", "error": str(e)})
        print(t("invalid_input", lang=ns.lang, error=str(e)), file=sys.stderr)
        return EC_INVALID_INPUT


def _run_models(settings: Settings, ns: argparse.Namespace) -> int:
    from attachtranslate.cacher.metadata_cache import MetadataCache
    from attachtranslate.cacher.model_registry import fetch_models

    api_key = ns.api_key or next((os.getenv(v) for v in PROVIDER_KEY_VARS[ns.provider] if os.getenv(v)), None)
    if ns.provider == "openai":
        api_key = api_key or settings.api_key
    base_url = ns.base_url or (settings.base_url if ns.provider == "openai" else None)

    def fetcher(provider: str) -> list[str]:
        return fetch_models(provider, api_key, base_url, trust_env=settings.system_proxy_enable)

    cache = MetadataCache(settings.cache_dir, history_limit=settings.history_limit, fetcher=fetcher).load()
    try:
        models = cache.get_or_refresh(ns.provider, force=ns.refresh)
    except OracleError as e:
        print(t("models_failed", lang=ns.lang, provider=ns.provider, error=str(e)), file=sys.stderr)
        return EC_LLM_ERROR
    for model in models:
        print(model)
    return EC_OK


def _run_history(settings: Settings, ns: argparse.Namespace) -> int:
    from attachtranslate.cacher.metadata_cache import MetadataCache

    records = MetadataCache(settings.cache_dir, history_limit=settings.history_limit).load().histories()
    if ns.json:
        print(json.dumps([asdict(r) for r in records], ensure_ascii=False, indent=2))
        return EC_OK
    if not records:
        print(t("no_history", lang=ns.lang))
        return EC_OK
    for record in records[-ns.limit:] if ns.limit else records:
        when = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.timestamp))
        print(f"{when}  {record.source_lang}->{record.target_lang}  {record.model or '-'}  {record.excerpt}")
    return EC_OK


def _run_backups(settings: Settings, ns: argparse.Namespace) -> int:
    from attachtranslate.backup.manager import BackupManager

    manager = BackupManager(settings.backup_root, ttl_days=settings.backup_ttl_days)
    if ns.backups_cmd == "prune":
        try:
            removed = manager.prune(ttl_days=ns.ttl_days)
        except BackupError as e:
            print(t("write_failed", lang=ns.lang, error=str(e)), file=sys.stderr)
            return EC_EXPORT_ERROR
        print(t("backups_pruned", lang=ns.lang, count=len(removed), path=str(settings.backup_root)))
        return EC_OK
    for record in manager.records():
        expires = time.strftime("%Y-%m-%d", time.localtime(record.expires_at))
        print(f"{record.id}  {record.src}  -> {record.backup}  (expires {expires})")
    return EC_OK


def _add_translate_subparser(subparsers: argparse._SubParsersAction) -> None:
    sp = subparsers.add_parser(
        "translate",
        help="Translate a file, a directory tree, or stdin",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sp.add_argument("input", help="Input file or directory, or '-' for stdin")
    out = sp.add_mutually_exclusive_group()
    out.add_argument("--out", help="Output file or directory (default: sibling with the translated suffix)")
    out.add_argument("--overwrite", action="store_true", help="Translate in place, backing up originals first")
    sp.add_argument("--to-lang", dest="to_lang", default="en", help="Target language")
    sp.add_argument("--from-lang", dest="from_lang", default="auto", help="Source language")
    sp.add_argument("--mime", default="auto", help="Mime or type hint, e.g. pdf, docx, image/png")
    sp.add_argument("--style", default="casual", help="Translation style")
    sp.add_argument("--slang", action="store_true", help="Allow slang in translations")
    sp.add_argument("--with-comments", action="store_true", help="Markup: translate comments only")
    sp.add_argument("--force", action="store_true", help="Treat unknown input as text and keep low-confidence OCR")
    sp.add_argument("--strict", action="store_true", help="Directory: unsupported files count as failures")
    sp.add_argument("--debug-ocr", action="store_true", help="Write OCR bbox image and JSON")
    sp.add_argument("--concurrency", type=int, default=None, help="Directory: parallel files (default: 3)")
    sp.add_argument("--ignore", action="append", help="Extra ignore pattern; can be repeated")
    sp.add_argument("--report-json", help="Directory: write the run report as JSON to this path")
    sp.add_argument("--progress", choices=["none", "jsonl"], default="none", help="Emit progress events on stderr")

    sp.add_argument("--base-url", help="LLM API base URL; defaults to OPENAI_BASE_URL")
    sp.add_argument("--api-key", help="LLM API key; defaults to OPENAI_API_KEY")
    sp.add_argument("--model-id", help="Model ID; defaults to OPENAI_MODEL")
    sp.add_argument("--timeout", type=int, default=None, help="Timeout (seconds)")
    sp.set_defaults(cmd="translate")


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        description="attachtranslate: translate attachments (text, markup, office, images, PDF, audio)",
        epilog=(
            "Examples:\n"
            "  attachtranslate translate ./scan.png --to-lang en\n"
            "  attachtranslate translate ./docs --out ./docs_en --concurrency 4\n"
            "  cat notes.md | attachtranslate translate - --mime md > notes_en.md\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--env-file", help="Load environment variables from file (default: ./.env)", default=None)
    parser.add_argument("--no-env", action="store_true", help="Do not auto-load .env from current directory")
    parser.add_argument("--lang", choices=["en", "zh"], default=os.getenv(LANG_ENV_VAR, "en"),
                        help="Language for CLI messages (default: en)")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Warnings and errors only")
    subparsers = parser.add_subparsers(dest="cmd")

    _add_translate_subparser(subparsers)

    models = subparsers.add_parser("models", help="List models offered by a provider (cached for 24h)")
    models.add_argument("provider", choices=sorted(PROVIDER_KEY_VARS))
    models.add_argument("--refresh", action="store_true", help="Ignore the cache")
    models.add_argument("--api-key", help="Provider API key")
    models.add_argument("--base-url", help="OpenAI-compatible base URL")
    models.set_defaults(cmd="models")

    history = subparsers.add_parser("history", help="Show translation history")
    history.add_argument("--limit", type=int, default=0, help="Show only the most recent N entries")
    history.add_argument("--json", action="store_true", help="Print as JSON")
    history.set_defaults(cmd="history")

    backups = subparsers.add_parser("backups", help="List or prune backups of overwritten files")
    backups_sub = backups.add_subparsers(dest="backups_cmd")
    prune = backups_sub.add_parser("prune", help="Delete expired backups")
    prune.add_argument("--ttl-days", type=int, default=None, help="Delete backups older than this many days")
    backups_sub.add_parser("list", help="List backups")
    backups.set_defaults(cmd="backups", backups_cmd="list")

    ver = subparsers.add_parser("version", help="Show version")
    ver.set_defaults(cmd="version")

    argv = sys.argv[1:] if argv is None else argv
    # No-arg hint
    if not argv:
        parser.print_help()
        sys.exit(EC_OK)

    args = parser.parse_args(argv)
    set_verbosity(verbose=args.verbose, quiet=args.quiet)

    if args.cmd == "version":
        from attachtranslate import __version__
        print(__version__)
        return

    if not args.no_env:
        load_env_file(args.env_file)
    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(t("invalid_input", lang=args.lang, error=str(e)), file=sys.stderr)
        raise SystemExit(EC_INVALID_INPUT)

    match args.cmd:
        case "translate":
            raise SystemExit(_run_translate(settings, args))
        case "models":
            raise SystemExit(_run_models(settings, args))
        case "history":
            raise SystemExit(_run_history(settings, args))
        case "backups":
            raise SystemExit(_run_backups(settings, args))

    # Unknown / fallthrough
    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
