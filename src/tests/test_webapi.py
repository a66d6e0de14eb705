"""
Tests for the HTTP API using FastAPI's TestClient and fake providers.
"""

import time

import pytest
from fastapi.testclient import TestClient

from videodub.store import MemoryConversionStore
from videodub.webapi import create_app

from conftest import FakeSynthesizer, FakeTranslator


@pytest.fixture
def client_for(settings, make_providers):
    clients = []

    def _make(**provider_kwargs) -> TestClient:
        app = create_app(settings, store=MemoryConversionStore(), providers=make_providers(**provider_kwargs))
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(client_for):
    return client_for()


def _wait_done(client, job_id, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/convert/video/{job_id}/status").json()
        if body["status"] in ("completed", "failed"):
            return body
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} did not finish")


def test_metadata_endpoints(client):
    health = client.get("/api/health").json()
    assert health["status"] == "ok"
    assert "timestamp" in health

    languages = client.get("/api/languages").json()
    assert {"code": "es", "name": "Spanish"} in languages
    platforms = client.get("/api/platforms").json()
    assert any(p["id"] == "youtube" for p in platforms)

    config = client.get("/api/config").json()
    assert "mp4" in config["supportedFormats"]
    assert config["providers"]["translation"] is True

    stats = client.get("/api/stats").json()
    assert stats["totalConversions"] == 0
    assert stats["languagesSupported"] == len(languages)


def test_convert_video_runs_to_completion(client):
    resp = client.post(
        "/api/convert/video",
        json={"originalUrl": "https://www.youtube.com/watch?v=abc123", "targetLanguage": "es", "userId": "u1"},
    )
    assert resp.status_code == 200
    started = resp.json()
    assert started["status"] == "pending"
    assert started["message"] == "Conversion started"

    status = _wait_done(client, started["id"])
    assert status == {"id": started["id"], "status": "completed", "progress": 100, "error": None}

    record = client.get(f"/api/convert/video/{started['id']}").json()
    assert record["targetLanguage"] == "es"
    assert record["translatedText"].startswith("[es] ")
    assert record["outputAudioUrl"].startswith("/audio/")
    assert client.get(record["outputAudioUrl"]).content == b"ID3fake-mp3-bytes"

    srt = client.get(f"/api/convert/video/{started['id']}/subtitles.srt")
    assert srt.status_code == 200
    assert srt.text.startswith("1\n")
    assert "attachment" in srt.headers["content-disposition"]
    vtt = client.get(f"/api/convert/video/{started['id']}/subtitles.vtt")
    assert vtt.text.startswith("WEBVTT")

    mine = client.get("/api/users/u1/conversions").json()
    assert [c["id"] for c in mine] == [started["id"]]
    assert client.get("/api/stats").json()["totalConversions"] == 1


def test_convert_video_validation(client, client_for):
    assert client.post("/api/convert/video", json={"originalUrl": "https://x"}).status_code == 400
    assert client.post("/api/convert/video", json={"targetLanguage": "es"}).status_code == 400
    bad_voice = client.post(
        "/api/convert/video", json={"originalUrl": "https://x", "targetLanguage": "es", "voiceType": "robot"}
    )
    assert bad_voice.status_code == 400

    unconfigured = client_for(translator=FakeTranslator(configured=False))
    resp = unconfigured.post("/api/convert/video", json={"originalUrl": "https://x", "targetLanguage": "es"})
    assert resp.status_code == 503
    assert unconfigured.get("/api/stats").json()["totalConversions"] == 0


def test_failed_translation_is_reported(client_for):
    client = client_for(translator=FakeTranslator(fail=True))
    job = client.post("/api/convert/video", json={"originalUrl": "https://x", "targetLanguage": "es"}).json()

    status = _wait_done(client, job["id"])
    assert status["status"] == "failed"
    assert status["progress"] == 0
    assert status["error"].startswith("Translation failed")
    assert client.get(f"/api/convert/video/{job['id']}/subtitles.srt").status_code == 404


def test_unknown_ids_are_404(client):
    assert client.get("/api/convert/video/nope").status_code == 404
    assert client.get("/api/convert/video/nope/status").json() == {"detail": "Conversion nope not found"}
    assert client.get("/api/convert/video/nope/subtitles.vtt").status_code == 404
    assert client.delete("/api/convert/video/nope").status_code == 404
    assert client.get("/api/voice/nope").status_code == 404


def test_upload_starts_conversion(client, settings):
    resp = client.post(
        "/api/convert/upload",
        files={"file": ("holiday.mp4", b"fake video", "video/mp4")},
        data={"targetLanguage": "fr", "voiceType": "generic"},
    )
    assert resp.status_code == 200
    job_id = resp.json()["id"]

    record = client.get(f"/api/convert/video/{job_id}").json()
    stored = settings.upload_dir / record["originalFileName"]
    assert stored.read_bytes() == b"fake video"
    assert _wait_done(client, job_id)["status"] == "completed"
    final = client.get(f"/api/convert/video/{job_id}").json()
    assert final["outputVideoUrl"] == f"/uploads/{record['originalFileName']}"


def test_upload_rejects_unsupported_type(client, settings):
    resp = client.post(
        "/api/convert/upload",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        data={"targetLanguage": "fr"},
    )
    assert resp.status_code == 400
    assert list(settings.upload_dir.iterdir()) == []


def test_delete_finished_job_keeps_its_state(client):
    job = client.post("/api/convert/video", json={"originalUrl": "https://x", "targetLanguage": "es"}).json()
    _wait_done(client, job["id"])

    resp = client.delete(f"/api/convert/video/{job['id']}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"


def test_voice_generate(client_for, settings):
    client = client_for()
    resp = client.post("/api/voice/generate", json={"inputText": "Hello world.", "targetLanguage": "es"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "completed"
    assert body["outputAudioUrl"].startswith("/audio/")
    assert client.get(f"/api/voice/{body['id']}").json()["id"] == body["id"]

    assert client.post("/api/voice/generate", json={"inputText": "", "targetLanguage": "es"}).status_code == 400

    failing = client_for(generic=FakeSynthesizer(settings.audio_dir, fail=True))
    resp = failing.post("/api/voice/generate", json={"inputText": "Hello.", "targetLanguage": "es"})
    assert resp.status_code == 500
    assert "503" in resp.json()["detail"]


def test_voice_status(client_for, settings):
    assert client_for().get("/api/voice/status").json()["elevenlabs"] is False

    ready = client_for(premium=FakeSynthesizer(settings.audio_dir, name="premium"))
    body = ready.get("/api/voice/status").json()
    assert body == {"elevenlabs": True, "message": "ElevenLabs API is configured and ready"}
