"""
Tests for environment-driven settings.
"""

from pathlib import Path

from videodub.config import Settings


def test_from_env_reads_keys_and_flags(monkeypatch, tmp_path):
    monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
    monkeypatch.setenv("VIDEODUB_TRANSLATION_PROVIDER", "OpenAI")
    monkeypatch.setenv("VIDEODUB_PUBLIC_DIR", str(tmp_path / "pub"))
    monkeypatch.setenv("VIDEODUB_DB_PATH", str(tmp_path / "db.sqlite"))
    monkeypatch.setenv("VIDEODUB_WORKERS", "0")
    monkeypatch.setenv("VIDEODUB_MERGE_VIDEO", "no")
    monkeypatch.setenv("VIDEODUB_ORIGINAL_VOLUME", "loud")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    s = Settings.from_env(tmp_path / "missing.env")

    assert s.google_api_key == "g-key"
    assert s.openai_api_key is None
    assert s.translation_provider == "openai"
    assert s.public_dir == tmp_path / "pub"
    assert s.db_path == tmp_path / "db.sqlite"
    assert s.workers == 1
    assert s.merge_video is False
    assert s.original_volume == 0.2


def test_env_file_is_loaded(monkeypatch, tmp_path):
    # registered so the value load_dotenv writes is removed afterwards
    monkeypatch.setenv("ELEVENLABS_API_KEY", "placeholder")
    monkeypatch.delenv("ELEVENLABS_API_KEY")
    env = tmp_path / ".env"
    env.write_text("ELEVENLABS_API_KEY=xi-from-file\n")

    s = Settings.from_env(env)
    assert s.elevenlabs_api_key == "xi-from-file"


def test_directories_hang_off_public_dir(tmp_path):
    s = Settings(public_dir=Path(tmp_path))
    s.ensure_dirs()
    assert s.audio_dir == tmp_path / "audio"
    assert all(p.is_dir() for p in (s.audio_dir, s.video_dir, s.temp_dir, s.upload_dir))
