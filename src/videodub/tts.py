"""
Text-to-speech synthesis with Google Cloud TTS, OpenAI and ElevenLabs.
"""

import base64
import io
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path

import httpx
from openai import OpenAI, OpenAIError
from pydub import AudioSegment

from .errors import ProviderError, ProviderNotConfigured
from .io_ffmpeg import discard, ensure_dir, unique_name
from .models import AudioAsset, VoiceType
from .transport import HttpProvider

logger = logging.getLogger("videodub")

AUDIO_URL_PREFIX = "/audio"

_SENTENCE_END_RE = re.compile(r"(?<=[.!?。！？])\s+")


def split_for_tts(text: str, max_chars: int) -> list[str]:
    """
    Split text into parts no longer than ``max_chars``.
    Breaks on sentence boundaries; a single overlong sentence is cut on
    whitespace, then hard-cut as a last resort.
    """
    text = text.strip()
    if not text:
        return []
    if len(text) <= max_chars:
        return [text]

    pieces: list[str] = []
    for sentence in _SENTENCE_END_RE.split(text):
        while len(sentence) > max_chars:
            cut = sentence.rfind(" ", 0, max_chars)
            if cut <= 0:
                cut = max_chars
            pieces.append(sentence[:cut].strip())
            sentence = sentence[cut:].strip()
        if sentence:
            pieces.append(sentence)

    parts: list[str] = []
    current = ""
    for piece in pieces:
        candidate = f"{current} {piece}" if current else piece
        if len(candidate) <= max_chars:
            current = candidate
        else:
            parts.append(current)
            current = piece
    if current:
        parts.append(current)
    return parts


class VoiceSynthesizer(ABC):
    """Voice synthesis capability: text in, published audio file out."""

    name = "synthesizer"
    max_chars = 4000
    audio_format = "mp3"
    audio_dir: Path

    @abstractmethod
    def is_available(self) -> bool:
        """True when the provider has a credential it can use."""

    @abstractmethod
    def synthesize_bytes(self, text: str, target_language: str) -> bytes:
        """Synthesize one part of at most ``max_chars`` characters."""

    def synthesize(self, text: str, target_language: str) -> AudioAsset:
        """Synthesize ``text`` and publish it under ``/audio/``."""
        parts = split_for_tts(text, self.max_chars)
        if not parts:
            raise ProviderError(self.name, "No text to synthesize")

        out = ensure_dir(self.audio_dir) / unique_name(self.name, self.audio_format)
        logger.info(
            "Synthesizing %d characters in %d part(s) with %s (%s)",
            len(text),
            len(parts),
            self.name,
            target_language,
        )
        if len(parts) == 1:
            out.write_bytes(self.synthesize_bytes(parts[0], target_language))
        else:
            self._concatenate([self.synthesize_bytes(p, target_language) for p in parts], out)

        if not out.exists() or out.stat().st_size == 0:
            discard(out)
            raise ProviderError(self.name, "No audio content returned")
        return AudioAsset(path=out, url=f"{AUDIO_URL_PREFIX}/{out.name}", provider=self.name)

    def _concatenate(self, chunks: list[bytes], out: Path) -> None:
        combined = AudioSegment.empty()
        try:
            for data in chunks:
                combined += AudioSegment.from_file(io.BytesIO(data), format=self.audio_format)
            combined.export(out, format=self.audio_format)
        except (OSError, IndexError) as e:
            discard(out)
            raise ProviderError(self.name, f"Could not join audio parts: {e}") from e


# Voice names per language for Google Cloud TTS, keyed by lower-case code.
GOOGLE_VOICES = {
    "en": "en-US-Standard-C",
    "en-us": "en-US-Standard-C",
    "en-gb": "en-GB-Standard-A",
    "es": "es-ES-Standard-A",
    "es-es": "es-ES-Standard-A",
    "es-mx": "es-US-Standard-A",
    "fr": "fr-FR-Standard-A",
    "de": "de-DE-Standard-A",
    "it": "it-IT-Standard-A",
    "pt": "pt-BR-Standard-A",
    "pt-br": "pt-BR-Standard-A",
    "pt-pt": "pt-PT-Standard-A",
    "ja": "ja-JP-Standard-A",
    "ko": "ko-KR-Standard-A",
    "zh": "cmn-CN-Standard-A",
    "zh-cn": "cmn-CN-Standard-A",
    "zh-tw": "cmn-TW-Standard-A",
    "ar": "ar-XA-Standard-A",
    "hi": "hi-IN-Standard-A",
    "ru": "ru-RU-Standard-A",
    "nl": "nl-NL-Standard-A",
    "pl": "pl-PL-Standard-A",
    "tr": "tr-TR-Standard-A",
    "vi": "vi-VN-Standard-A",
    "th": "th-TH-Standard-A",
    "id": "id-ID-Standard-A",
    "sv": "sv-SE-Standard-A",
    "da": "da-DK-Standard-A",
    "fi": "fi-FI-Standard-A",
    "nb": "nb-NO-Standard-A",
    "no": "nb-NO-Standard-A",
    "uk": "uk-UA-Standard-A",
    "el": "el-GR-Standard-A",
    "cs": "cs-CZ-Standard-A",
    "ro": "ro-RO-Standard-A",
    "hu": "hu-HU-Standard-A",
    "sk": "sk-SK-Standard-A",
    "bg": "bg-BG-Standard-A",
    "hr": "sr-RS-Standard-A",
    "sr": "sr-RS-Standard-A",
    "ca": "ca-ES-Standard-A",
    "fil": "fil-PH-Standard-A",
    "he": "he-IL-Standard-A",
    "lv": "lv-LV-Standard-A",
    "lt": "lt-LT-Standard-A",
    "ms": "ms-MY-Standard-A",
    "bn": "bn-IN-Standard-A",
    "ta": "ta-IN-Standard-A",
    "te": "te-IN-Standard-A",
    "ml": "ml-IN-Standard-A",
    "kn": "kn-IN-Standard-A",
    "mr": "mr-IN-Standard-A",
    "gu": "gu-IN-Standard-A",
    "pa": "pa-IN-Standard-A",
    "af": "af-ZA-Standard-A",
    "is": "is-IS-Standard-A",
    "eu": "eu-ES-Standard-A",
    "gl": "gl-ES-Standard-A",
}
DEFAULT_GOOGLE_VOICE = "en-US-Standard-C"


def google_voice_for(language: str | None) -> str:
    """Voice name for ``language``: exact code, then base code, then the default."""
    if not language:
        return DEFAULT_GOOGLE_VOICE
    code = language.lower()
    return GOOGLE_VOICES.get(code) or GOOGLE_VOICES.get(code.split("-")[0]) or DEFAULT_GOOGLE_VOICE


class GoogleTTSSynthesizer(HttpProvider, VoiceSynthesizer):
    """Google Cloud Text-to-Speech (REST, MP3 output)."""

    name = "google-tts"
    URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
    max_chars = 4500

    def __init__(
        self,
        api_key: str | None,
        audio_dir: str | Path,
        *,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(api_key, timeout=timeout, client=client)
        self.audio_dir = Path(audio_dir)

    def is_available(self) -> bool:
        return self.configured

    def synthesize_bytes(self, text: str, target_language: str) -> bytes:
        key = self.require_key()
        voice = google_voice_for(target_language)
        body = {
            "input": {"text": text},
            "voice": {
                "languageCode": "-".join(voice.split("-")[:2]),
                "name": voice,
                "ssmlGender": "NEUTRAL",
            },
            "audioConfig": {"audioEncoding": "MP3", "speakingRate": 1.0, "pitch": 0.0},
        }
        data = self.json(self.request("POST", self.URL, params={"key": key}, json=body), "Text-to-Speech")
        content = data.get("audioContent")
        if not content:
            raise ProviderError(self.name, "No audio content returned")
        try:
            return base64.b64decode(content)
        except ValueError as e:
            raise ProviderError(self.name, "Audio content is not valid base64") from e


class OpenAISynthesizer(VoiceSynthesizer):
    """Speech synthesis with the OpenAI audio API."""

    name = "openai-tts"
    max_chars = 4000

    def __init__(
        self,
        api_key: str | None,
        audio_dir: str | Path,
        *,
        model: str = "gpt-4o-mini-tts",
        voice: str = "alloy",
        instructions: str | None = None,
        timeout: float = 120.0,
        client: OpenAI | None = None,
    ) -> None:
        self.api_key = api_key
        self.audio_dir = Path(audio_dir)
        self.model = model
        self.voice = voice
        self.instructions = instructions
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ProviderNotConfigured(self.name, "OPENAI_API_KEY is not set")
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def is_available(self) -> bool:
        return self._client is not None or bool(self.api_key)

    def synthesize_bytes(self, text: str, target_language: str) -> bytes:
        kwargs = {"model": self.model, "voice": self.voice, "input": text, "response_format": "mp3"}
        if self.instructions:
            kwargs["instructions"] = self.instructions
        try:
            resp = self.client.audio.speech.create(**kwargs)
        except OpenAIError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e
        content = getattr(resp, "content", None)
        if not content:
            raise ProviderError(self.name, "No audio content returned")
        return content


# ElevenLabs voice IDs per base language code.
ELEVENLABS_VOICES = {
    "en": "21m00Tcm4TlvDq8ikWAM",
    "es": "AZnzlk1XvdvUeBnXmlld",
    "fr": "EXAVITQu4vr4xnSDxMaL",
    "de": "ErXwobaYiN019PkySvjV",
    "it": "VR6AewLTigWG4xSOukaG",
    "pt": "pNInz6obpgDQGcFmaJgB",
    "pl": "Yko7PKHZNXotIFUBG7I9",
    "ru": "GBv7mTt0atIp3Br8iCZE",
    "ja": "MF3mGyEYCl7XYWbV9V6O",
    "ko": "jsCqWAovK2LkecY7zXl4",
    "zh": "XB0fDUnXU5powFXDhCwa",
    "ar": "ODq5zmih8GrVes37Dizd",
    "hi": "TX3LPaxmHKxFdv7VOQHJ",
    "tr": "g5CIjZEefAph4nQFvHAz",
    "nl": "pFZP5JQG7iQjIQuC4Bku",
    "sv": "N2lVS1w4EtoT3dr4eOWO",
}
DEFAULT_ELEVENLABS_VOICE = "21m00Tcm4TlvDq8ikWAM"


def elevenlabs_voice_for(language: str | None) -> str:
    if not language:
        return DEFAULT_ELEVENLABS_VOICE
    return ELEVENLABS_VOICES.get(language.lower().split("-")[0], DEFAULT_ELEVENLABS_VOICE)


class ElevenLabsSynthesizer(HttpProvider, VoiceSynthesizer):
    """Premium voices from ElevenLabs."""

    name = "elevenlabs"
    BASE_URL = "https://api.elevenlabs.io/v1"
    max_chars = 2500

    def __init__(
        self,
        api_key: str | None,
        audio_dir: str | Path,
        *,
        model_id: str = "eleven_multilingual_v2",
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__(api_key, timeout=timeout, client=client)
        self.audio_dir = Path(audio_dir)
        self.model_id = model_id

    def _headers(self, accept: str) -> dict[str, str]:
        return {"xi-api-key": self.require_key(), "accept": accept}

    def check_credentials(self) -> bool:
        """Validate the key against ``/v1/user``."""
        if not self.configured:
            return False
        try:
            r = self.request("GET", f"{self.BASE_URL}/user", headers=self._headers("application/json"))
        except ProviderError as e:
            logger.warning("ElevenLabs key check failed: %s", e)
            return False
        if r.status_code != 200:
            logger.warning("ElevenLabs key check returned %d", r.status_code)
            return False
        return True

    def is_available(self) -> bool:
        return self.check_credentials()

    def synthesize_bytes(self, text: str, target_language: str) -> bytes:
        voice_id = elevenlabs_voice_for(target_language)
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
                "style": 0.5,
                "use_speaker_boost": True,
            },
        }
        r = self.request(
            "POST",
            f"{self.BASE_URL}/text-to-speech/{voice_id}",
            json=payload,
            headers=self._headers("audio/mpeg"),
        )
        self.check(r, "Text-to-speech")
        ctype = r.headers.get("content-type", "")
        if not ctype.startswith(("audio/", "application/octet-stream")) or not r.content:
            raise ProviderError(self.name, f"Unexpected response type {ctype or 'unknown'}")
        return r.content


def select_synthesizer(
    voice_type: VoiceType | str, registry: dict[VoiceType, VoiceSynthesizer]
) -> VoiceSynthesizer:
    """
    Pick the synthesizer for a job.
    Premium is used only when requested and its credentials validate;
    everything else gets the generic provider.
    """
    requested = VoiceType(voice_type)
    if requested is VoiceType.PREMIUM:
        premium = registry.get(VoiceType.PREMIUM)
        if premium is not None and premium.is_available():
            return premium
        logger.info("Premium voice unavailable, using generic voice")
    generic = registry.get(VoiceType.GENERIC)
    if generic is None:
        raise ProviderNotConfigured("tts", "No voice synthesis provider configured")
    return generic
