"""
Shared fakes for the pipeline and API tests.
"""

from pathlib import Path

import pytest

from videodub.config import Settings
from videodub.errors import ProviderError
from videodub.models import Transcript, VoiceType
from videodub.providers import Providers
from videodub.stt import Transcriber
from videodub.translation import Translator
from videodub.tts import VoiceSynthesizer


class FakeTranslator(Translator):
    name = "fake-translate"

    def __init__(self, *, fail: bool = False, result: str | None = None, configured: bool = True):
        self.fail = fail
        self.result = result
        self._configured = configured
        self.calls: list[tuple[str, str, str | None]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def translate(self, text, target_language, source_language=None):
        self.calls.append((text, target_language, source_language))
        if self.fail:
            raise ProviderError(self.name, "Translation failed: 500")
        if self.result is not None:
            return self.result
        return f"[{target_language}] {text}"

    def detect_language(self, text):
        return "en", 0.99


class FakeTranscriber(Transcriber):
    name = "fake-stt"

    def __init__(self, text: str = "Hello from the audio track."):
        self.text = text

    @property
    def configured(self) -> bool:
        return True

    def transcribe(self, audio_path, language=None):
        return self.text


class FakeSynthesizer(VoiceSynthesizer):
    def __init__(self, audio_dir: Path, *, name: str = "fake-tts", available: bool = True, fail: bool = False):
        self.name = name
        self.audio_dir = Path(audio_dir)
        self.available = available
        self.fail = fail
        self.texts: list[str] = []

    def is_available(self) -> bool:
        return self.available

    def synthesize_bytes(self, text, target_language):
        self.texts.append(text)
        if self.fail:
            raise ProviderError(self.name, "Text-to-speech failed: 503")
        return b"ID3fake-mp3-bytes"


class FakeCaptions:
    def __init__(self, transcript: Transcript | None = None):
        self.transcript = transcript
        self.calls: list[str] = []

    def get_transcript(self, url, language=None):
        self.calls.append(url)
        return self.transcript


@pytest.fixture
def settings(tmp_path):
    s = Settings(
        public_dir=tmp_path / "public",
        workers=2,
        fetch_captions=False,
        transcribe_audio=False,
        merge_video=False,
        janitor_interval=3600.0,
    )
    s.ensure_dirs()
    return s


@pytest.fixture
def make_providers(settings):
    def _make(
        *,
        translator: Translator | None = None,
        transcriber: Transcriber | None = None,
        generic: VoiceSynthesizer | None = None,
        premium: VoiceSynthesizer | None = None,
        captions=None,
    ) -> Providers:
        synths = {VoiceType.GENERIC: generic or FakeSynthesizer(settings.audio_dir)}
        if premium is not None:
            synths[VoiceType.PREMIUM] = premium
        return Providers(
            translator=translator or FakeTranslator(),
            transcriber=transcriber,
            synthesizers=synths,
            captions=captions,
        )

    return _make
