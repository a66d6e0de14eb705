"""Pydantic schemas for the HTTP API (camelCase on the wire)."""

from dataclasses import asdict
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import ConversionStatus, DubbingStatus, VideoConversion, VoiceDubbing, VoiceType


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    components = string.split("_")
    return components[0] + "".join(word.capitalize() for word in components[1:])


class CamelModel(BaseModel):
    """Base model that serializes to camelCase for frontend compatibility."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        serialize_by_alias=True,
    )


class ConversionCreateRequest(CamelModel):
    """Body of ``POST /api/convert/video``."""

    target_language: str = Field(..., min_length=1, description="Language code to dub into")
    original_url: str | None = Field(None, description="Platform or direct media URL")
    original_file_name: str | None = Field(None, description="Name of a previously uploaded file")
    source_language: str | None = Field(None, description="Language hint for the source video")
    voice_type: VoiceType = Field(VoiceType.GENERIC, description="generic or premium")
    transcript: str | None = Field(None, description="Transcript to use when none can be obtained")
    user_id: str | None = None

    @field_validator("voice_type", mode="before")
    @classmethod
    def _voice_alias(cls, value):
        # accepts legacy names such as "google" or "elevenlabs"
        return VoiceType(value) if isinstance(value, str) else value


class ConversionStarted(CamelModel):
    id: str
    status: ConversionStatus
    message: str = "Conversion started"


class ConversionStatusResponse(CamelModel):
    id: str
    status: ConversionStatus
    progress: int
    error: str | None = None


class ConversionResponse(CamelModel):
    """Full conversion record."""

    id: str
    user_id: str | None = None
    original_url: str | None = None
    original_file_name: str | None = None
    source_language: str | None = None
    target_language: str
    status: ConversionStatus
    progress: int
    transcript: str | None = None
    translated_text: str | None = None
    output_audio_url: str | None = None
    output_video_url: str | None = None
    subtitles_srt: str | None = None
    subtitles_vtt: str | None = None
    voice_type: VoiceType
    error: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, conv: VideoConversion) -> "ConversionResponse":
        return cls(**asdict(conv))


class VoiceGenerateRequest(CamelModel):
    """Body of ``POST /api/voice/generate``."""

    input_text: str = Field(..., min_length=1)
    target_language: str = Field(..., min_length=1)
    source_language: str | None = None
    voice_type: VoiceType = VoiceType.GENERIC
    user_id: str | None = None

    @field_validator("voice_type", mode="before")
    @classmethod
    def _voice_alias(cls, value):
        # accepts legacy names such as "google" or "elevenlabs"
        return VoiceType(value) if isinstance(value, str) else value


class VoiceDubbingResponse(CamelModel):
    id: str
    user_id: str | None = None
    input_text: str
    source_language: str | None = None
    target_language: str
    voice_type: VoiceType
    status: DubbingStatus
    output_audio_url: str | None = None
    error: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, dub: VoiceDubbing) -> "VoiceDubbingResponse":
        return cls(**asdict(dub))


class VoiceStatusResponse(BaseModel):
    elevenlabs: bool
    message: str


class StatsResponse(CamelModel):
    total_conversions: int
    today_conversions: int
    languages_supported: int
    platforms_supported: int


class ConfigResponse(CamelModel):
    supported_languages: list[dict[str, str]]
    supported_platforms: list[dict[str, str]]
    supported_formats: list[str]
    providers: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: datetime
    version: str
