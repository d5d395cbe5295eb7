# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

import os

LANG_ENV_VAR = "ATTACHTRANSLATE_LANG"

MESSAGES = {
    "en": {
        "generated": "Generated: {path}",
        "file_not_found": "File not found: {path}",
        "invalid_input": "Invalid input: {error}",
        "missing_dependency": "Missing dependency: {missing}",
        "translation_failed": "Translation failed: {error}",
        "write_failed": "Could not write output: {error}",
        "report_written": "Report written: {path}",
        "failures_header": "failed files:",
        "no_history": "No translation history yet.",
        "models_failed": "Could not list models for {provider}: {error}",
        "backups_pruned": "Pruned {count} backup(s) from {path}",
        "backup_created": "Backup: {path}",
    },
    "zh": {
        "generated": "已生成: {path}",
        "file_not_found": "找不到文件: {path}",
        "invalid_input": "输入无效: {error}",
        "missing_dependency": "缺少依赖: {missing}",
        "translation_failed": "翻译失败: {error}",
        "write_failed": "无法写入输出: {error}",
        "report_written": "报告已写入: {path}",
        "failures_header": "失败的文件:",
        "no_history": "暂无翻译历史。",
        "models_failed": "无法获取 {provider} 的模型列表: {error}",
        "backups_pruned": "已从 {path} 清理 {count} 个备份",
        "backup_created": "备份: {path}",
    },
}


def t(key: str, *, lang: str | None = None, **kwargs) -> str:
    l = (lang or os.getenv(LANG_ENV_VAR) or "en").lower()
    if l not in MESSAGES:
        l = "en"
    msg = MESSAGES.get(l, {}).get(key) or MESSAGES["en"].get(key) or key
    try:
        return msg.format(**kwargs)
    except (KeyError, IndexError):
        return msg
