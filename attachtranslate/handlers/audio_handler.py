# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import tempfile
from pathlib import Path

from attachtranslate.audio.speech import SpeechToText, TextToSpeech, run_ffmpeg
from attachtranslate.errors import ExtractionError
from attachtranslate.handlers.base import AttachmentHandler, HandlerConfig
from attachtranslate.ir.document import Document
from attachtranslate.ir.types import AttachmentKind, TranslationUnit
from attachtranslate.mime.resolver import extension_from_mime


class AudioHandler(AttachmentHandler):
    """
    Speech in, speech out: decode to 16 kHz mono WAV, transcribe, translate the transcript
    line by line, synthesize, and encode back into the input container.
    """
    kind = AttachmentKind.AUDIO

    def __init__(self, transcriber: SpeechToText, synthesizer: TextToSpeech,
                 config: HandlerConfig | None = None, source_lang: str = "auto", target_lang: str = "en"):
        super().__init__(config=config)
        self.transcriber = transcriber
        self.synthesizer = synthesizer
        self.source_lang = source_lang
        self.target_lang = target_lang

    def _input_ext(self, document: Document) -> str:
        return extension_from_mime(document.mime or "") or document.suffix.lstrip(".") or "bin"

    def _transcribe(self, document: Document, workdir: Path) -> str:
        input_path = workdir / f"input.{self._input_ext(document)}"
        input_path.write_bytes(document.content)
        wav_path = workdir / "input.wav"
        self.logger.info("audio: decoding with ffmpeg")
        run_ffmpeg("-y", "-i", str(input_path), "-ar", "16000", "-ac", "1", str(wav_path))
        transcript = self.transcriber.transcribe(wav_path, self.source_lang).strip()
        if not transcript:
            raise ExtractionError("no speech detected in audio")
        self.logger.info(f"audio: transcribed {len(transcript)} chars")
        return transcript

    def extract(self, document: Document) -> list[TranslationUnit]:
        with tempfile.TemporaryDirectory(prefix="attachtranslate-audio-") as tmp:
            transcript = self._transcribe(document, Path(tmp))
        return [TranslationUnit(text=line, key=i) for i, line in enumerate(transcript.splitlines())]

    def reconstruct(self, document: Document, units: list[TranslationUnit], translations: list[str]) -> bytes:
        text = "\n".join(translations).strip()
        if not text:
            raise ExtractionError("translation returned empty text")
        with tempfile.TemporaryDirectory(prefix="attachtranslate-tts-") as tmp:
            workdir = Path(tmp)
            tts_wav = workdir / "tts.wav"
            self.logger.info("audio: synthesizing speech")
            self.synthesizer.synthesize(text, self.target_lang, tts_wav)
            output_path = workdir / f"output.{extension_from_mime(document.mime or '') or 'mp3'}"
            run_ffmpeg("-y", "-i", str(tts_wav), str(output_path))
            return output_path.read_bytes()

