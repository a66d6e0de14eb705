"""
Data models for the video dubbing service.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import InvalidTransitionError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConversionStatus(str, Enum):
    """Pipeline stages of a conversion job, in the order they are entered."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    EXTRACTING_AUDIO = "extracting_audio"
    TRANSCRIBING = "transcribing"
    TRANSLATING = "translating"
    GENERATING_VOICE = "generating_voice"
    MERGING = "merging"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def floor(self) -> int:
        """Minimum progress a record in this status must report."""
        return PROGRESS_FLOORS[self]

    @property
    def rank(self) -> int:
        return STAGE_ORDER.index(self) if self in STAGE_ORDER else len(STAGE_ORDER)

    @property
    def is_terminal(self) -> bool:
        return self in (ConversionStatus.COMPLETED, ConversionStatus.FAILED)


STAGE_ORDER: tuple[ConversionStatus, ...] = (
    ConversionStatus.PENDING,
    ConversionStatus.DOWNLOADING,
    ConversionStatus.EXTRACTING_AUDIO,
    ConversionStatus.TRANSCRIBING,
    ConversionStatus.TRANSLATING,
    ConversionStatus.GENERATING_VOICE,
    ConversionStatus.MERGING,
    ConversionStatus.COMPLETED,
)

PROGRESS_FLOORS: dict[ConversionStatus, int] = {
    ConversionStatus.PENDING: 0,
    ConversionStatus.DOWNLOADING: 10,
    ConversionStatus.EXTRACTING_AUDIO: 20,
    ConversionStatus.TRANSCRIBING: 30,
    ConversionStatus.TRANSLATING: 60,
    ConversionStatus.GENERATING_VOICE: 90,
    ConversionStatus.MERGING: 95,
    ConversionStatus.COMPLETED: 100,
    ConversionStatus.FAILED: 0,
}


class VoiceType(str, Enum):
    """Which synthesis provider a job asks for."""

    GENERIC = "generic"
    PREMIUM = "premium"

    @classmethod
    def _missing_(cls, value: object):
        if isinstance(value, str):
            alias = _VOICE_ALIASES.get(value.strip().lower())
            if alias is not None:
                return alias
        return None


_VOICE_ALIASES = {
    "generic": VoiceType.GENERIC,
    "google": VoiceType.GENERIC,
    "standard": VoiceType.GENERIC,
    "premium": VoiceType.PREMIUM,
    "elevenlabs": VoiceType.PREMIUM,
    "cloned": VoiceType.PREMIUM,
}


class DubbingStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class VideoConversion:
    """One dubbing job, advanced through the pipeline stages."""

    id: str
    target_language: str
    original_url: str | None = None
    original_file_name: str | None = None
    user_id: str | None = None
    source_language: str | None = None
    status: ConversionStatus = ConversionStatus.PENDING
    progress: int = 0
    transcript: str | None = None
    translated_text: str | None = None
    output_audio_url: str | None = None
    output_video_url: str | None = None
    subtitles_srt: str | None = None
    subtitles_vtt: str | None = None
    voice_type: VoiceType = VoiceType.GENERIC
    error: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class VoiceDubbing:
    """One text-to-speech job from the voice studio."""

    id: str
    input_text: str
    target_language: str
    source_language: str | None = None
    user_id: str | None = None
    voice_type: VoiceType = VoiceType.GENERIC
    status: DubbingStatus = DubbingStatus.PENDING
    output_audio_url: str | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class Cue:
    """A single subtitle entry with timing and text."""

    start: float  # seconds
    end: float  # seconds
    text: str


@dataclass
class Transcript:
    """Original-language text and where it came from."""

    text: str
    language: str | None = None
    origin: str = "captions"  # captions | audio | provided | sample


@dataclass
class AudioAsset:
    """A synthesized audio file and the URL it is published under."""

    path: Path
    url: str
    provider: str = ""


@dataclass
class StageResult:
    """Outcome of one pipeline stage."""

    ok: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def success(cls, value: Any = None) -> "StageResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "StageResult":
        return cls(ok=False, error=error)


IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


def check_consistency(status: ConversionStatus, progress: int) -> None:
    """Raise if ``progress`` disagrees with the floor of ``status``."""
    if not 0 <= progress <= 100:
        raise InvalidTransitionError(f"progress {progress} outside 0..100")
    if status is ConversionStatus.FAILED:
        if progress != 0:
            raise InvalidTransitionError("failed records must report progress 0")
        return
    if progress < status.floor:
        raise InvalidTransitionError(
            f"progress {progress} below floor {status.floor} of status {status.value}"
        )
    if status is ConversionStatus.COMPLETED and progress != 100:
        raise InvalidTransitionError("completed records must report progress 100")


def check_transition(current: VideoConversion, updates: dict[str, Any]) -> None:
    """Validate a partial update against the stage ordering of ``current``."""
    touched = IMMUTABLE_FIELDS.intersection(updates)
    if touched:
        raise InvalidTransitionError(f"fields are immutable: {', '.join(sorted(touched))}")
    if current.status.is_terminal:
        raise InvalidTransitionError(
            f"conversion {current.id} is already {current.status.value}"
        )

    new_status = ConversionStatus(updates.get("status", current.status))
    new_progress = int(updates.get("progress", current.progress))

    if new_status is not ConversionStatus.FAILED:
        if new_status.rank < current.status.rank:
            raise InvalidTransitionError(
                f"cannot move from {current.status.value} back to {new_status.value}"
            )
        if new_progress < current.progress:
            raise InvalidTransitionError(
                f"progress cannot decrease ({current.progress} -> {new_progress})"
            )
    check_consistency(new_status, new_progress)
