"""
Conversion orchestration: the per-job state machine and the voice studio flow.

A job advances through the stages in order, recording each step in the
store so pollers can follow it:

    pending -> [downloading -> extracting_audio ->] transcribing ->
    translating -> generating_voice -> merging -> completed

Transcript acquisition never fails a job; it degrades to the request's own
transcript or a built-in sample. Translation and synthesis failures are
terminal and leave the job ``failed`` with progress 0.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from .captions import MIN_CAPTION_CHARS
from .config import Settings
from .errors import (
    ConfigurationError,
    InvalidTransitionError,
    MediaToolError,
    NotFoundError,
    ProviderError,
)
from .io_ffmpeg import discard, download_remote_video, extract_audio, merge_audio_with_video
from .models import (
    AudioAsset,
    ConversionStatus,
    DubbingStatus,
    StageResult,
    Transcript,
    VideoConversion,
    VoiceDubbing,
    VoiceType,
)
from .platforms import detect_platform
from .providers import Providers
from .srt_utils import generate_subtitles
from .store import ConversionStore
from .stt import transcribe_long_audio
from .tts import select_synthesizer
from .worker import CancellationToken, JobCanceled, JobQueue, Janitor

logger = logging.getLogger("videodub")

CANCELED = "Canceled"
INTERRUPTED = "Interrupted by shutdown"

SAMPLE_TRANSCRIPT = (
    "Welcome to this video. Today we are going to explore some interesting ideas "
    "and share a few practical tips. Thank you for watching, and see you next time."
)


@dataclass
class ConversionRequest:
    target_language: str
    original_url: str | None = None
    original_file_name: str | None = None
    source_language: str | None = None
    voice_type: VoiceType | str = VoiceType.GENERIC
    transcript: str | None = None
    user_id: str | None = None


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _more_precise(hint: str | None, found: str | None) -> str | None:
    """Keep the hint unless ``found`` is the same language with a region (``en`` -> ``en-GB``)."""
    if _blank(hint):
        return found
    if found and found.lower() != hint.lower() and found.lower().startswith(f"{hint.lower()}-"):
        return found
    return hint


class ConversionOrchestrator:
    """Creates conversion jobs and advances them through the pipeline."""

    def __init__(self, store: ConversionStore, providers: Providers, settings: Settings):
        self.store = store
        self.providers = providers
        self.settings = settings
        self.queue = JobQueue(
            self.run,
            concurrency=settings.workers,
            on_error=self._on_job_error,
            on_dropped=self._on_job_dropped,
        )
        self.janitor = Janitor(
            settings.temp_dir, max_age=settings.temp_max_age, interval=settings.janitor_interval
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def start(self) -> None:
        self.settings.ensure_dirs()
        await self.queue.start()
        self.janitor.start()

    async def shutdown(self, timeout: float = 120.0) -> None:
        await self.janitor.stop()
        await self.queue.shutdown(timeout=timeout)

    # ── Public operations ─────────────────────────────────────────────

    def start_conversion(self, request: ConversionRequest) -> VideoConversion:
        """
        Validate, create a ``pending`` record and queue it. Returns immediately.

        Raises ValueError for invalid input and ConfigurationError when no
        translation provider is configured; nothing is stored in either case.
        """
        if _blank(request.target_language):
            raise ValueError("targetLanguage is required")
        if _blank(request.original_url) and _blank(request.original_file_name):
            raise ValueError("originalUrl or originalFileName is required")
        voice_type = VoiceType(request.voice_type or VoiceType.GENERIC)
        if not self.providers.translator.configured:
            raise ConfigurationError("Translation provider is not configured")

        conv = self.store.create_conversion(
            target_language=request.target_language.strip(),
            original_url=None if _blank(request.original_url) else request.original_url.strip(),
            original_file_name=request.original_file_name or None,
            source_language=None if _blank(request.source_language) else request.source_language,
            voice_type=voice_type,
            transcript=None if _blank(request.transcript) else request.transcript.strip(),
            user_id=request.user_id,
        )
        logger.info("Created conversion %s (%s -> %s)", conv.id, conv.original_url or conv.original_file_name, conv.target_language)
        self.queue.submit(conv.id)
        return conv

    def cancel(self, job_id: str) -> VideoConversion:
        """Stop a job. Terminal jobs are returned unchanged."""
        conv = self.store.require_conversion(job_id)
        if conv.status.is_terminal:
            return conv
        self.queue.cancel(job_id)
        self._fail(job_id, CANCELED)
        return self.store.require_conversion(job_id)

    async def run(self, job_id: str, token: CancellationToken | None = None) -> None:
        """Advance one job from ``pending`` to a terminal status."""
        token = token or CancellationToken()
        conv = self.store.get_conversion(job_id)
        if conv is None:
            logger.warning("Conversion %s disappeared before it started", job_id)
            return
        if conv.status.is_terminal:
            logger.info("Conversion %s already %s, skipping", job_id, conv.status.value)
            return

        scratch: list[Path] = []
        try:
            await self._run_stages(conv, token, scratch)
        except JobCanceled:
            logger.info("Conversion %s canceled", job_id)
            self._fail(job_id, CANCELED)
        except asyncio.CancelledError:
            self._fail(job_id, INTERRUPTED)
            raise
        except (InvalidTransitionError, NotFoundError) as e:
            # cancel() or delete may have finalized the record under us
            if not token.canceled:
                raise
            logger.info("Conversion %s stopped after cancellation: %s", job_id, e)
        finally:
            for path in scratch:
                discard(path)

    # ── Stages ────────────────────────────────────────────────────────

    async def _run_stages(
        self, conv: VideoConversion, token: CancellationToken, scratch: list[Path]
    ) -> None:
        job_id = conv.id
        token.raise_if_canceled()

        transcript, local_video = await self._acquire_transcript(conv, token, scratch)
        token.raise_if_canceled()
        source = await self._resolve_source_language(conv.source_language, transcript)
        self._advance(
            job_id,
            ConversionStatus.TRANSCRIBING,
            transcript=transcript.text,
            source_language=source,
        )
        logger.info("[%s] transcript ready (%s, %d chars)", job_id, transcript.origin, len(transcript.text))

        token.raise_if_canceled()
        self._advance(job_id, ConversionStatus.TRANSLATING)
        result = await self._translate(transcript.text, conv.target_language, source)
        if not result.ok:
            self._fail(job_id, result.error)
            return
        translated: str = result.value
        self._advance(job_id, ConversionStatus.TRANSLATING, translated_text=translated)

        token.raise_if_canceled()
        self._advance(job_id, ConversionStatus.GENERATING_VOICE)
        result = await self._synthesize(translated, conv.target_language, conv.voice_type)
        if not result.ok:
            self._fail(job_id, result.error)
            return
        asset: AudioAsset = result.value
        self._advance(job_id, ConversionStatus.GENERATING_VOICE, output_audio_url=asset.url)

        token.raise_if_canceled()
        self._advance(job_id, ConversionStatus.MERGING)
        srt, vtt = generate_subtitles(translated)
        video_url = await self._package_video(conv, local_video, asset)
        self._advance(
            job_id,
            ConversionStatus.COMPLETED,
            subtitles_srt=srt,
            subtitles_vtt=vtt,
            output_video_url=video_url,
        )
        logger.info("[%s] conversion completed", job_id)

    async def _acquire_transcript(
        self, conv: VideoConversion, token: CancellationToken, scratch: list[Path]
    ) -> tuple[Transcript, Path | None]:
        local_video = self._uploaded_video(conv)

        captions = self.providers.captions
        if conv.original_url and captions is not None:
            found = await asyncio.to_thread(
                captions.get_transcript, conv.original_url, conv.source_language
            )
            if found is not None and len(found.text.strip()) >= MIN_CAPTION_CHARS:
                return found, local_video
            logger.info("[%s] no usable captions", conv.id)

        token.raise_if_canceled()
        result = await self._transcribe_audio(conv, local_video, token, scratch)
        if result.ok:
            transcript, local_video = result.value
            return transcript, local_video
        logger.info("[%s] audio transcription unavailable: %s", conv.id, result.error)

        if not _blank(conv.transcript):
            return Transcript(conv.transcript, conv.source_language, origin="provided"), local_video
        logger.warning("[%s] falling back to the sample transcript", conv.id)
        return Transcript(SAMPLE_TRANSCRIPT, "en", origin="sample"), local_video

    async def _transcribe_audio(
        self,
        conv: VideoConversion,
        local_video: Path | None,
        token: CancellationToken,
        scratch: list[Path],
    ) -> StageResult:
        transcriber = self.providers.transcriber
        if not self.settings.transcribe_audio:
            return StageResult.failure("audio transcription disabled")
        if transcriber is None or not transcriber.configured:
            return StageResult.failure("no transcription provider configured")
        if local_video is None and not conv.original_url:
            return StageResult.failure("no video source")

        timeout = self.settings.subprocess_timeout
        temp_dir = self.settings.temp_dir
        try:
            if local_video is None:
                self._advance(conv.id, ConversionStatus.DOWNLOADING)
                local_video = await asyncio.to_thread(
                    download_remote_video,
                    conv.original_url,
                    detect_platform(conv.original_url),
                    temp_dir,
                    timeout=timeout,
                )
                scratch.append(local_video)

            token.raise_if_canceled()
            self._advance(conv.id, ConversionStatus.EXTRACTING_AUDIO)
            audio = await asyncio.to_thread(extract_audio, local_video, temp_dir, timeout=timeout)
            scratch.append(audio)

            token.raise_if_canceled()
            self._advance(conv.id, ConversionStatus.TRANSCRIBING)
            text = await asyncio.to_thread(
                transcribe_long_audio,
                transcriber,
                audio,
                conv.source_language,
                temp_dir,
                timeout=timeout,
            )
        except (MediaToolError, ProviderError, ConfigurationError) as e:
            return StageResult.failure(str(e))
        return StageResult.success(
            (Transcript(text, conv.source_language, origin="audio"), local_video)
        )

    async def _resolve_source_language(self, hint: str | None, transcript: Transcript) -> str | None:
        source = _more_precise(hint, transcript.language)
        if source or transcript.origin == "sample":
            return source
        try:
            code, confidence = await asyncio.to_thread(
                self.providers.translator.detect_language, transcript.text[:1000]
            )
        except (ProviderError, ConfigurationError) as e:
            logger.info("Language detection skipped: %s", e)
            return None
        logger.info("Detected source language %s (confidence %.2f)", code, confidence)
        return code

    async def _translate(self, text: str, target: str, source: str | None) -> StageResult:
        try:
            translated = await asyncio.to_thread(
                self.providers.translator.translate, text, target, source
            )
        except (ProviderError, ConfigurationError) as e:
            logger.error("Translation failed: %s", e)
            return StageResult.failure(f"Translation failed: {e}")
        if _blank(translated):
            return StageResult.failure("Translation failed: empty result")
        return StageResult.success(translated.strip())

    async def _synthesize(self, text: str, target: str, voice_type: VoiceType) -> StageResult:
        try:
            synthesizer = await asyncio.to_thread(
                select_synthesizer, voice_type, self.providers.synthesizers
            )
            asset = await asyncio.to_thread(synthesizer.synthesize, text, target)
        except (ProviderError, ConfigurationError) as e:
            logger.error("Voice synthesis failed: %s", e)
            return StageResult.failure(f"Voice generation failed: {e}")
        return StageResult.success(asset)

    async def _package_video(
        self, conv: VideoConversion, local_video: Path | None, asset: AudioAsset
    ) -> str | None:
        fallback = conv.original_url or (
            f"/uploads/{conv.original_file_name}" if conv.original_file_name else None
        )
        if local_video is None or not self.settings.merge_video:
            return fallback
        try:
            merged = await asyncio.to_thread(
                merge_audio_with_video,
                local_video,
                asset.path,
                self.settings.video_dir,
                mix_original=self.settings.mix_original,
                original_volume=self.settings.original_volume,
                timeout=self.settings.subprocess_timeout,
            )
        except MediaToolError as e:
            logger.warning("[%s] merge failed, publishing original video: %s", conv.id, e)
            return fallback
        return f"/videos/{merged.name}"

    # ── Store helpers ─────────────────────────────────────────────────

    def _uploaded_video(self, conv: VideoConversion) -> Path | None:
        if not conv.original_file_name:
            return None
        path = self.settings.upload_dir / Path(conv.original_file_name).name
        return path if path.is_file() else None

    def _advance(self, job_id: str, status: ConversionStatus, **fields) -> VideoConversion:
        current = self.store.require_conversion(job_id)
        progress = max(status.floor, current.progress)
        return self.store.update_conversion(job_id, status=status, progress=progress, **fields)

    def _fail(self, job_id: str, error: str | None) -> None:
        try:
            self.store.update_conversion(
                job_id, status=ConversionStatus.FAILED, progress=0, error=error or "Unknown error"
            )
        except (InvalidTransitionError, NotFoundError) as e:
            logger.info("Could not mark %s failed: %s", job_id, e)
            return
        logger.error("Conversion %s failed: %s", job_id, error)

    def _on_job_error(self, job_id: str, exc: BaseException) -> None:
        self._fail(job_id, f"Internal error: {exc}")

    def _on_job_dropped(self, job_id: str) -> None:
        self._fail(job_id, INTERRUPTED)


class VoiceStudio:
    """Text-to-speech jobs: one synthesis attempt per request."""

    def __init__(self, store: ConversionStore, providers: Providers):
        self.store = store
        self.providers = providers

    async def generate(
        self,
        input_text: str,
        target_language: str,
        *,
        source_language: str | None = None,
        voice_type: VoiceType | str = VoiceType.GENERIC,
        user_id: str | None = None,
    ) -> VoiceDubbing:
        """Create a pending record, synthesize, and return it completed or failed."""
        if _blank(input_text):
            raise ValueError("inputText is required")
        if _blank(target_language):
            raise ValueError("targetLanguage is required")

        dubbing = self.store.create_voice_dubbing(
            input_text=input_text,
            target_language=target_language,
            source_language=source_language,
            voice_type=VoiceType(voice_type or VoiceType.GENERIC),
            user_id=user_id,
        )
        try:
            synthesizer = await asyncio.to_thread(
                select_synthesizer, dubbing.voice_type, self.providers.synthesizers
            )
            asset = await asyncio.to_thread(synthesizer.synthesize, input_text, target_language)
        except (ProviderError, ConfigurationError) as e:
            logger.error("Voice dubbing %s failed: %s", dubbing.id, e)
            return self.store.update_voice_dubbing(
                dubbing.id, status=DubbingStatus.FAILED, error=str(e)
            )
        return self.store.update_voice_dubbing(
            dubbing.id, status=DubbingStatus.COMPLETED, output_audio_url=asset.url
        )
