"""
Tests for the voice synthesis providers and provider selection.
"""

import base64
import json
from types import SimpleNamespace

import httpx
import pytest

from videodub.errors import ConfigurationError, ProviderError
from videodub.models import VoiceType
from videodub.tts import (
    DEFAULT_ELEVENLABS_VOICE,
    ElevenLabsSynthesizer,
    GoogleTTSSynthesizer,
    OpenAISynthesizer,
    elevenlabs_voice_for,
    google_voice_for,
    select_synthesizer,
    split_for_tts,
)

from conftest import FakeSynthesizer


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_google_voice_lookup():
    assert google_voice_for("es") == "es-ES-Standard-A"
    assert google_voice_for("en-GB") == "en-GB-Standard-A"
    assert google_voice_for("zh-CN") == "cmn-CN-Standard-A"
    assert google_voice_for("fr-CA") == "fr-FR-Standard-A"
    assert google_voice_for("tlh") == "en-US-Standard-C"
    assert google_voice_for(None) == "en-US-Standard-C"


def test_elevenlabs_voice_lookup():
    assert elevenlabs_voice_for("es") == "AZnzlk1XvdvUeBnXmlld"
    assert elevenlabs_voice_for("pt-BR") == "pNInz6obpgDQGcFmaJgB"
    assert elevenlabs_voice_for("fi") == DEFAULT_ELEVENLABS_VOICE


def test_split_for_tts_respects_limit():
    text = "One sentence here. Another one follows! And a third? " * 20
    parts = split_for_tts(text, 120)
    assert len(parts) > 1
    assert all(len(p) <= 120 for p in parts)
    assert " ".join(parts).split() == text.split()
    assert split_for_tts("short", 100) == ["short"]
    assert split_for_tts("   ", 100) == []


def test_google_tts_writes_published_mp3(tmp_path):
    captured = {}

    def handler(request):
        captured.update(json.loads(request.content))
        return httpx.Response(200, json={"audioContent": base64.b64encode(b"ID3audio").decode()})

    synth = GoogleTTSSynthesizer("k", tmp_path / "audio", client=_client(handler))
    asset = synth.synthesize("Hola a todos.", "es")

    assert asset.url == f"/audio/{asset.path.name}"
    assert asset.path.read_bytes() == b"ID3audio"
    assert asset.path.suffix == ".mp3"
    assert captured["voice"] == {"languageCode": "es-ES", "name": "es-ES-Standard-A", "ssmlGender": "NEUTRAL"}
    assert captured["audioConfig"]["audioEncoding"] == "MP3"


def test_google_tts_failures(tmp_path):
    with pytest.raises(ConfigurationError):
        GoogleTTSSynthesizer(None, tmp_path).synthesize("Hello", "en")

    synth = GoogleTTSSynthesizer("k", tmp_path, client=_client(lambda r: httpx.Response(200, json={})))
    with pytest.raises(ProviderError, match="No audio content"):
        synth.synthesize("Hello", "en")
    assert list(tmp_path.glob("*.mp3")) == []


def test_elevenlabs_credential_check_and_synthesis(tmp_path):
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, request.headers.get("xi-api-key")))
        if request.url.path == "/v1/user":
            return httpx.Response(200, json={"subscription": {}})
        body = json.loads(request.content)
        assert body["model_id"] == "eleven_multilingual_v2"
        assert body["voice_settings"]["similarity_boost"] == 0.75
        return httpx.Response(200, content=b"ID3eleven", headers={"content-type": "audio/mpeg"})

    synth = ElevenLabsSynthesizer("xi", tmp_path, client=_client(handler))
    assert synth.is_available()
    asset = synth.synthesize("Bonjour.", "fr")

    assert asset.path.read_bytes() == b"ID3eleven"
    assert seen[-1] == ("POST", "/v1/text-to-speech/EXAVITQu4vr4xnSDxMaL", "xi")


def test_elevenlabs_unavailable_without_valid_key(tmp_path):
    assert not ElevenLabsSynthesizer(None, tmp_path).is_available()
    rejected = ElevenLabsSynthesizer("bad", tmp_path, client=_client(lambda r: httpx.Response(401)))
    assert not rejected.is_available()


def test_elevenlabs_rejects_non_audio_payload(tmp_path):
    synth = ElevenLabsSynthesizer(
        "xi", tmp_path, client=_client(lambda r: httpx.Response(200, json={"detail": "quota"}))
    )
    with pytest.raises(ProviderError, match="Unexpected response type"):
        synth.synthesize("Hi.", "en")


def test_openai_synthesizer(tmp_path):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(content=b"ID3openai")

    client = SimpleNamespace(audio=SimpleNamespace(speech=SimpleNamespace(create=create)))
    asset = OpenAISynthesizer(None, tmp_path, voice="nova", client=client).synthesize("Hello.", "en")

    assert asset.path.read_bytes() == b"ID3openai"
    assert calls[0]["voice"] == "nova"
    assert calls[0]["response_format"] == "mp3"


def test_long_text_is_synthesized_in_parts(tmp_path, monkeypatch):
    synth = FakeSynthesizer(tmp_path)
    synth.max_chars = 25
    joined = []

    def fake_concat(chunks, out):
        joined.append(len(chunks))
        out.write_bytes(b"".join(chunks))

    monkeypatch.setattr(synth, "_concatenate", fake_concat)
    asset = synth.synthesize("First sentence is here. Second sentence is here. Third one.", "en")

    assert len(synth.texts) == 3
    assert joined == [3]
    assert asset.path.stat().st_size > 0


def test_select_synthesizer(tmp_path):
    generic = FakeSynthesizer(tmp_path, name="generic")
    premium = FakeSynthesizer(tmp_path, name="premium")
    registry = {VoiceType.GENERIC: generic, VoiceType.PREMIUM: premium}

    assert select_synthesizer(VoiceType.PREMIUM, registry) is premium
    assert select_synthesizer("elevenlabs", registry) is premium
    assert select_synthesizer(VoiceType.GENERIC, registry) is generic

    premium.available = False
    assert select_synthesizer(VoiceType.PREMIUM, registry) is generic

    with pytest.raises(ConfigurationError):
        select_synthesizer(VoiceType.GENERIC, {})
