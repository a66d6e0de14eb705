"""
Runtime settings loaded from the environment (and an optional .env file).
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger("videodub")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_number(name: str, default: float, cast=float):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default


@dataclass
class Settings:
    """Service configuration. Every field maps to one environment variable."""

    google_api_key: str | None = None
    openai_api_key: str | None = None
    elevenlabs_api_key: str | None = None

    translation_provider: str = "google"  # google | openai
    tts_provider: str = "google"  # google | openai
    stt_provider: str = "google"  # google | openai
    openai_translation_model: str = "gpt-4o-mini"
    openai_tts_model: str = "gpt-4o-mini-tts"
    openai_tts_voice: str = "alloy"
    elevenlabs_model_id: str = "eleven_multilingual_v2"

    public_dir: Path = field(default_factory=lambda: Path.cwd() / "public")
    db_path: Path | None = None  # None keeps records in memory

    workers: int = 2
    subprocess_timeout: float = 600.0
    http_timeout: float = 60.0

    fetch_captions: bool = True
    transcribe_audio: bool = True
    merge_video: bool = True
    mix_original: bool = False
    original_volume: float = 0.2

    temp_max_age: float = 3600.0
    janitor_interval: float = 600.0

    @property
    def audio_dir(self) -> Path:
        return self.public_dir / "audio"

    @property
    def video_dir(self) -> Path:
        return self.public_dir / "videos"

    @property
    def temp_dir(self) -> Path:
        return self.public_dir / "temp"

    @property
    def upload_dir(self) -> Path:
        return self.public_dir / "uploads"

    def ensure_dirs(self) -> None:
        for path in (self.audio_dir, self.video_dir, self.temp_dir, self.upload_dir):
            path.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Settings":
        """Build settings from environment variables, loading ``.env`` first."""
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()

        db_path = os.getenv("VIDEODUB_DB_PATH", "").strip()
        public_dir = os.getenv("VIDEODUB_PUBLIC_DIR", "").strip()
        defaults = cls()
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY") or None,
            translation_provider=os.getenv("VIDEODUB_TRANSLATION_PROVIDER", "google").lower(),
            tts_provider=os.getenv("VIDEODUB_TTS_PROVIDER", "google").lower(),
            stt_provider=os.getenv("VIDEODUB_STT_PROVIDER", "google").lower(),
            openai_translation_model=os.getenv(
                "VIDEODUB_OPENAI_TRANSLATION_MODEL", defaults.openai_translation_model
            ),
            openai_tts_model=os.getenv("VIDEODUB_OPENAI_TTS_MODEL", defaults.openai_tts_model),
            openai_tts_voice=os.getenv("VIDEODUB_OPENAI_TTS_VOICE", defaults.openai_tts_voice),
            elevenlabs_model_id=os.getenv("ELEVENLABS_MODEL_ID", defaults.elevenlabs_model_id),
            public_dir=Path(public_dir) if public_dir else defaults.public_dir,
            db_path=Path(db_path) if db_path else None,
            workers=max(1, _env_number("VIDEODUB_WORKERS", defaults.workers, int)),
            subprocess_timeout=_env_number(
                "VIDEODUB_SUBPROCESS_TIMEOUT", defaults.subprocess_timeout
            ),
            http_timeout=_env_number("VIDEODUB_HTTP_TIMEOUT", defaults.http_timeout),
            fetch_captions=_env_bool("VIDEODUB_FETCH_CAPTIONS", defaults.fetch_captions),
            transcribe_audio=_env_bool("VIDEODUB_TRANSCRIBE_AUDIO", defaults.transcribe_audio),
            merge_video=_env_bool("VIDEODUB_MERGE_VIDEO", defaults.merge_video),
            mix_original=_env_bool("VIDEODUB_MIX_ORIGINAL", defaults.mix_original),
            original_volume=_env_number("VIDEODUB_ORIGINAL_VOLUME", defaults.original_volume),
            temp_max_age=_env_number("VIDEODUB_TEMP_MAX_AGE", defaults.temp_max_age),
            janitor_interval=_env_number(
                "VIDEODUB_JANITOR_INTERVAL", defaults.janitor_interval
            ),
        )
