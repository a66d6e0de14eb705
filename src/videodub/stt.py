"""
Speech-to-text transcription providers and long-audio chunking.
"""

import base64
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from openai import OpenAI, OpenAIError

from .errors import MediaToolError, ProviderError, ProviderNotConfigured
from .io_ffmpeg import discard, probe_duration, split_audio
from .transport import HttpProvider

logger = logging.getLogger("videodub")

# Synchronous recognize requests are limited to about one minute of audio.
CHUNK_SECONDS = 55.0

_ENCODINGS = {
    ".wav": "LINEAR16",
    ".flac": "FLAC",
    ".mp3": "MP3",
    ".ogg": "OGG_OPUS",
    ".webm": "WEBM_OPUS",
    ".amr": "AMR",
}

_LOCALES = {
    "en": "en-US",
    "es": "es-ES",
    "fr": "fr-FR",
    "de": "de-DE",
    "it": "it-IT",
    "pt": "pt-BR",
    "ja": "ja-JP",
    "ko": "ko-KR",
    "zh": "zh-CN",
    "ar": "ar-SA",
    "hi": "hi-IN",
    "ru": "ru-RU",
    "nl": "nl-NL",
    "pl": "pl-PL",
    "tr": "tr-TR",
    "vi": "vi-VN",
    "th": "th-TH",
    "id": "id-ID",
}


def audio_encoding(path: str | Path) -> str:
    """Recognition encoding inferred from the file extension."""
    return _ENCODINGS.get(Path(path).suffix.lower(), "LINEAR16")


def normalize_language_code(code: str | None) -> str:
    """Turn a bare language code into a BCP-47 locale (``es`` -> ``es-ES``)."""
    if not code:
        return "en-US"
    if "-" in code:
        return code
    return _LOCALES.get(code.lower(), f"{code.lower()}-{code.upper()}")


class Transcriber(ABC):
    """Transcription capability: audio file in, text out."""

    name = "transcriber"

    @property
    @abstractmethod
    def configured(self) -> bool: ...

    @abstractmethod
    def transcribe(self, audio_path: str | Path, language: str | None = None) -> str:
        """Transcribe one short audio file; raise ProviderError on failure or silence."""


class GoogleSpeechTranscriber(HttpProvider, Transcriber):
    """Google Cloud Speech-to-Text (synchronous recognize)."""

    name = "google-speech"
    URL = "https://speech.googleapis.com/v1/speech:recognize"

    def transcribe(self, audio_path: str | Path, language: str | None = None) -> str:
        key = self.require_key()
        path = Path(audio_path)
        if not path.exists():
            raise ProviderError(self.name, "Audio file not found")

        body = {
            "config": {
                "encoding": audio_encoding(path),
                "sampleRateHertz": 16000,
                "languageCode": normalize_language_code(language),
                "enableAutomaticPunctuation": True,
                "model": "default",
            },
            "audio": {"content": base64.b64encode(path.read_bytes()).decode("ascii")},
        }
        data = self.json(self.request("POST", self.URL, params={"key": key}, json=body), "Speech-to-Text")

        results = data.get("results") or []
        transcript = " ".join(
            (r.get("alternatives") or [{}])[0].get("transcript", "") for r in results
        ).strip()
        if not transcript:
            raise ProviderError(self.name, "No speech detected in audio")
        return transcript


class WhisperTranscriber(Transcriber):
    """Transcription with the OpenAI Whisper API."""

    name = "openai-whisper"

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "whisper-1",
        timeout: float = 120.0,
        client: OpenAI | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ProviderNotConfigured(self.name, "OPENAI_API_KEY is not set")
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def transcribe(self, audio_path: str | Path, language: str | None = None) -> str:
        kwargs = {"model": self.model}
        if language:
            kwargs["language"] = language.split("-")[0].lower()
        try:
            with open(audio_path, "rb") as f:
                logger.info(f"Transcribing with {self.model} (language: {language or 'auto'}) …")
                resp = self.client.audio.transcriptions.create(file=f, **kwargs)
        except OSError as e:
            raise ProviderError(self.name, f"Cannot read audio: {e}") from e
        except OpenAIError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        text = getattr(resp, "text", None)
        if text is None and isinstance(resp, dict):
            text = resp.get("text")
        if not text or not str(text).strip():
            raise ProviderError(self.name, "No speech detected in audio")
        return str(text).strip()


def transcribe_long_audio(
    transcriber: Transcriber,
    audio_path: str | Path,
    language: str | None,
    work_dir: str | Path,
    *,
    chunk_seconds: float = CHUNK_SECONDS,
    timeout: float | None = None,
) -> str:
    """
    Transcribe audio of any length.

    Audio longer than ``chunk_seconds`` is cut into sequential chunks that are
    transcribed one by one and joined in order. Chunks that fail are skipped.
    If the duration cannot be probed or the audio cannot be split, the whole
    file goes out as a single request.
    """
    try:
        duration = probe_duration(audio_path)
    except MediaToolError as e:
        logger.warning("Could not probe %s (%s); sending as one request", Path(audio_path).name, e)
        return transcriber.transcribe(audio_path, language)

    if duration <= chunk_seconds:
        return transcriber.transcribe(audio_path, language)

    try:
        chunks = split_audio(audio_path, work_dir, duration, chunk_seconds, timeout=timeout)
    except MediaToolError as e:
        logger.warning("Chunking failed (%s); sending as one request", e)
        chunks = []
    if not chunks:
        return transcriber.transcribe(audio_path, language)

    logger.info("Processing %d audio chunks for transcription...", len(chunks))
    parts: list[str] = []
    for idx, chunk in enumerate(chunks, 1):
        logger.info("Transcribing chunk %d/%d...", idx, len(chunks))
        try:
            text = transcriber.transcribe(chunk, language)
        except ProviderError as e:
            logger.warning("Chunk %d produced no transcript: %s", idx, e)
            continue
        finally:
            discard(chunk)
        if text.strip():
            parts.append(text.strip())

    if not parts:
        raise ProviderError(transcriber.name, "No speech detected in audio")
    return " ".join(parts)
