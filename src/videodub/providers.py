"""
Assemble the capability providers selected by the settings.
"""

import logging
from dataclasses import dataclass, field

from .captions import CaptionSource
from .config import Settings
from .models import VoiceType
from .stt import GoogleSpeechTranscriber, Transcriber, WhisperTranscriber
from .translation import GoogleTranslator, OpenAITranslator, Translator
from .tts import ElevenLabsSynthesizer, GoogleTTSSynthesizer, OpenAISynthesizer, VoiceSynthesizer

logger = logging.getLogger("videodub")


@dataclass
class Providers:
    """The capability set a conversion runs with."""

    translator: Translator
    transcriber: Transcriber | None
    synthesizers: dict[VoiceType, VoiceSynthesizer] = field(default_factory=dict)
    captions: CaptionSource | None = None

    def status(self) -> dict[str, bool]:
        premium = self.synthesizers.get(VoiceType.PREMIUM)
        generic = self.synthesizers.get(VoiceType.GENERIC)
        return {
            "translation": self.translator.configured,
            "transcription": bool(self.transcriber and self.transcriber.configured),
            "genericVoice": bool(generic and generic.is_available()),
            "premiumVoiceConfigured": bool(premium and getattr(premium, "configured", False)),
        }


def build_providers(settings: Settings) -> Providers:
    """Instantiate providers from ``settings`` (no network calls)."""
    timeout = settings.http_timeout

    if settings.translation_provider == "openai":
        translator: Translator = OpenAITranslator(
            settings.openai_api_key, model=settings.openai_translation_model, timeout=timeout
        )
    else:
        translator = GoogleTranslator(settings.google_api_key, timeout=timeout)

    if settings.stt_provider == "openai":
        transcriber: Transcriber | None = WhisperTranscriber(settings.openai_api_key, timeout=timeout)
    else:
        transcriber = GoogleSpeechTranscriber(settings.google_api_key, timeout=timeout)

    if settings.tts_provider == "openai":
        generic: VoiceSynthesizer = OpenAISynthesizer(
            settings.openai_api_key,
            settings.audio_dir,
            model=settings.openai_tts_model,
            voice=settings.openai_tts_voice,
            timeout=timeout,
        )
    else:
        generic = GoogleTTSSynthesizer(settings.google_api_key, settings.audio_dir, timeout=timeout)

    premium = ElevenLabsSynthesizer(
        settings.elevenlabs_api_key,
        settings.audio_dir,
        model_id=settings.elevenlabs_model_id,
        timeout=timeout,
    )

    logger.info(
        "Providers: translation=%s stt=%s tts=%s",
        translator.name,
        transcriber.name,
        generic.name,
    )
    return Providers(
        translator=translator,
        transcriber=transcriber,
        synthesizers={VoiceType.GENERIC: generic, VoiceType.PREMIUM: premium},
        captions=CaptionSource(timeout=timeout) if settings.fetch_captions else None,
    )
