# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import shutil

import pytest

from conftest import FakeOracle
from attachtranslate.agents.translation_cache import TranslationCache
from attachtranslate.audio import speech
from attachtranslate.errors import ExtractionError, RenderError
from attachtranslate.handlers import audio_handler
from attachtranslate.handlers.base import HandlerConfig
from attachtranslate.handlers.registry import Collaborators, handler_for
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentKind, LanguagePair


class ScriptedTranscriber:
    def __init__(self, transcript: str):
        self.transcript = transcript
        self.languages: list[str] = []

    def transcribe(self, audio_path, source_lang):
        assert audio_path.name == "input.wav"
        self.languages.append(source_lang)
        return self.transcript


class TextFileSynthesizer:
    def __init__(self):
        self.spoken: list[tuple[str, str]] = []

    def synthesize(self, text, target_lang, out_path):
        self.spoken.append((text, target_lang))
        out_path.write_text(text, encoding="utf-8")


def fake_ffmpeg(*args: str):
    # "-y -i <src> ... <dst>": a plain copy stands in for transcoding
    src = args[args.index("-i") + 1]
    shutil.copyfile(src, args[-1])


@pytest.fixture
def no_ffmpeg(monkeypatch):
    monkeypatch.setattr(audio_handler, "run_ffmpeg", fake_ffmpeg)


def _handler(transcript: str, synthesizer=None):
    collaborators = Collaborators(transcriber=ScriptedTranscriber(transcript),
                                  synthesizer=synthesizer or TextFileSynthesizer())
    return handler_for(AttachmentKind.AUDIO, HandlerConfig(), LanguagePair("ja", "fr"), collaborators)


def _clip() -> Document:
    return Document.from_bytes(b"ID3 fake mp3", suffix=".mp3", stem="memo", mime="audio/mpeg")


def test_transcript_is_translated_and_spoken(no_ffmpeg):
    synthesizer = TextFileSynthesizer()
    handler = _handler("Hello\nWorld\n", synthesizer)
    cache = TranslationCache(FakeOracle({"Hello": "Bonjour", "World": "Monde"}), LanguagePair("ja", "fr"))

    out = handler.translate(_clip(), cache)

    assert synthesizer.spoken == [("Bonjour\nMonde", "fr")]
    assert out.content == b"Bonjour\nMonde"
    assert out.mime == "audio/mpeg"
    assert handler.transcriber.languages == ["ja"]


def test_silence_is_an_extraction_error(no_ffmpeg):
    with pytest.raises(ExtractionError, match="no speech"):
        _handler("   \n").translate(_clip(), TranslationCache(FakeOracle(), LanguagePair()))


def test_missing_ffmpeg(monkeypatch):
    monkeypatch.setattr(speech, "command_exists", lambda cmd: False)
    with pytest.raises(ExtractionError, match="requires ffmpeg"):
        _handler("Hello").translate(_clip(), TranslationCache(FakeOracle(), LanguagePair()))


def test_no_tts_engine(monkeypatch, tmp_path):
    monkeypatch.setattr(speech, "command_exists", lambda cmd: False)
    with pytest.raises(RenderError, match="no TTS engine"):
        speech.EspeakSynthesizer().synthesize("hi", "en", tmp_path / "out.wav")


@pytest.mark.parametrize(("lang", "expected"), [("auto", None), ("Japanese", "ja"), ("zh-TW", "zh"), ("xx", None)])
def test_whisper_language(lang, expected):
    assert speech.whisper_language(lang) == expected


def test_espeak_voice_defaults_to_english():
    assert speech.espeak_voice("chinese") == "cmn"
    assert speech.espeak_voice("klingon") == "en"
