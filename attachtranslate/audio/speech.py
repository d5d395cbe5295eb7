# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Protocol

from attachtranslate.errors import ExtractionError, RenderError
from attachtranslate.logger import global_logger

WHISPER_LANGS = {
    "japanese": "ja", "ja": "ja",
    "english": "en", "en": "en",
    "chinese": "zh", "zh": "zh", "zh-cn": "zh", "zh-tw": "zh",
    "korean": "ko", "ko": "ko",
    "french": "fr", "fr": "fr",
    "german": "de", "de": "de",
    "spanish": "es", "es": "es",
    "italian": "it", "it": "it",
    "portuguese": "pt", "pt": "pt",
    "russian": "ru", "ru": "ru",
}

ESPEAK_VOICES = {
    "ja": "ja", "en": "en", "zh": "cmn", "ko": "ko", "fr": "fr",
    "de": "de", "es": "es", "it": "it", "pt": "pt", "ru": "ru",
}


def command_exists(cmd: str) -> bool:
    return shutil.which(cmd) is not None


def whisper_language(lang: str) -> str | None:
    lang = (lang or "").strip().lower()
    if not lang or lang == "auto":
        return None
    return WHISPER_LANGS.get(lang)


def espeak_voice(lang: str) -> str:
    code = whisper_language(lang) or (lang or "").strip().lower()
    return ESPEAK_VOICES.get(code, "en")


def run_ffmpeg(*args: str):
    if not command_exists("ffmpeg"):
        raise ExtractionError("audio translation requires ffmpeg")
    proc = subprocess.run(
        ["ffmpeg", "-hide_banner", "-loglevel", "error", *args],
        stdin=subprocess.DEVNULL,
        capture_output=True,
    )
    if proc.returncode != 0:
        stderr = proc.stderr.decode("utf-8", errors="replace").strip()
        raise ExtractionError(f"ffmpeg failed: {stderr}")


class SpeechToText(Protocol):
    def transcribe(self, audio_path: Path, source_lang: str) -> str: ...


class TextToSpeech(Protocol):
    def synthesize(self, text: str, target_lang: str, out_path: Path) -> None: ...


class WhisperCliTranscriber:
    """Runs the ``whisper`` command line tool and reads back its plain-text transcript."""

    def __init__(self, model: str = "base", command: str = "whisper", logger: logging.Logger = global_logger):
        self.model = model
        self.command = command
        self.logger = logger

    def transcribe(self, audio_path: Path, source_lang: str) -> str:
        if not command_exists(self.command):
            raise ExtractionError(f"speech recognition requires '{self.command}' on PATH")
        out_dir = audio_path.parent
        cmd = [self.command, str(audio_path), "--model", self.model,
               "--output_format", "txt", "--output_dir", str(out_dir), "--task", "transcribe"]
        lang = whisper_language(source_lang)
        if lang:
            cmd += ["--language", lang]
        self.logger.info(f"audio: transcribing with whisper ({self.model})")
        proc = subprocess.run(cmd, stdin=subprocess.DEVNULL, capture_output=True)
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise ExtractionError(f"whisper failed: {stderr}")
        transcript = out_dir / f"{audio_path.stem}.txt"
        if not transcript.exists():
            return ""
        return transcript.read_text(encoding="utf-8")


class EspeakSynthesizer:
    """
    Speech synthesis through macOS ``say`` when present, otherwise ``espeak``.
    Always writes a WAV file at ``out_path``.
    """

    def __init__(self, logger: logging.Logger = global_logger):
        self.logger = logger

    def synthesize(self, text: str, target_lang: str, out_path: Path) -> None:
        text = text.replace("\n", " ")
        if sys.platform == "darwin" and command_exists("say"):
            aiff = out_path.with_suffix(".aiff")
            env = dict(os.environ, OS_ACTIVITY_MODE="disable", OS_ACTIVITY_DT_MODE="0")
            proc = subprocess.run(["say", "-o", str(aiff), text], env=env,
                                  stdin=subprocess.DEVNULL, capture_output=True)
            if proc.returncode != 0:
                raise RenderError("say failed to synthesize audio")
            run_ffmpeg("-y", "-i", str(aiff), str(out_path))
            return
        if command_exists("espeak"):
            voice = espeak_voice(target_lang)
            proc = subprocess.run(["espeak", "-v", voice, "-w", str(out_path), text],
                                  stdin=subprocess.DEVNULL, capture_output=True)
            if proc.returncode != 0:
                raise RenderError("espeak failed to synthesize audio")
            return
        raise RenderError("no TTS engine found (install macOS 'say' or Linux 'espeak')")
