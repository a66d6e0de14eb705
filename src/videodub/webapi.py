"""
HTTP API: job submission, status polling, subtitles, voice studio and metadata.
"""

import asyncio
import logging
import shutil
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import APIRouter, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .config import Settings
from .errors import ConfigurationError, NotFoundError
from .io_ffmpeg import discard, unique_name
from .models import VoiceType, utc_now
from .pipeline import ConversionOrchestrator, ConversionRequest, VoiceStudio
from .platforms import (
    SUPPORTED_FORMATS,
    SUPPORTED_LANGUAGES,
    SUPPORTED_PLATFORMS,
    is_supported_upload,
    public_languages,
    public_platforms,
)
from .providers import Providers, build_providers
from .schemas import (
    ConfigResponse,
    ConversionCreateRequest,
    ConversionResponse,
    ConversionStarted,
    ConversionStatusResponse,
    HealthResponse,
    StatsResponse,
    VoiceDubbingResponse,
    VoiceGenerateRequest,
    VoiceStatusResponse,
)
from .store import ConversionStore, open_store

logger = logging.getLogger("videodub")

router = APIRouter(prefix="/api")


def _orchestrator(request: Request) -> ConversionOrchestrator:
    return request.app.state.orchestrator


def _store(request: Request) -> ConversionStore:
    return request.app.state.store


def _start(request: Request, body: ConversionRequest) -> ConversionStarted:
    try:
        conv = _orchestrator(request).start_conversion(body)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return ConversionStarted(id=conv.id, status=conv.status)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(timestamp=utc_now(), version=__version__)


@router.get("/config", response_model=ConfigResponse)
async def config(request: Request) -> ConfigResponse:
    providers: Providers = request.app.state.providers
    return ConfigResponse(
        supported_languages=public_languages(),
        supported_platforms=public_platforms(),
        supported_formats=list(SUPPORTED_FORMATS),
        providers=providers.status(),
    )


@router.get("/languages")
async def languages() -> list[dict[str, str]]:
    return public_languages()


@router.get("/platforms")
async def platforms() -> list[dict[str, str]]:
    return public_platforms()


@router.get("/stats", response_model=StatsResponse)
async def stats(request: Request) -> StatsResponse:
    counts = _store(request).get_conversion_stats()
    return StatsResponse(
        total_conversions=counts["total_conversions"],
        today_conversions=counts["today_conversions"],
        languages_supported=len(SUPPORTED_LANGUAGES),
        platforms_supported=len(SUPPORTED_PLATFORMS),
    )


@router.post("/convert/video", response_model=ConversionStarted)
async def convert_video(request: Request, body: ConversionCreateRequest) -> ConversionStarted:
    return _start(request, ConversionRequest(**body.model_dump(by_alias=False)))


@router.post("/convert/upload", response_model=ConversionStarted)
async def convert_upload(
    request: Request,
    file: UploadFile = File(...),
    target_language: str = Form(..., alias="targetLanguage"),
    source_language: str | None = Form(None, alias="sourceLanguage"),
    voice_type: str = Form(VoiceType.GENERIC.value, alias="voiceType"),
    user_id: str | None = Form(None, alias="userId"),
) -> ConversionStarted:
    filename = file.filename or ""
    if not is_supported_upload(filename):
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type. Allowed: {', '.join(SUPPORTED_FORMATS)}",
        )
    try:
        voice = VoiceType(voice_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid voiceType: {voice_type}") from e

    settings: Settings = request.app.state.settings
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    dest = settings.upload_dir / unique_name("upload", Path(filename).suffix)

    def _save() -> None:
        with open(dest, "wb") as f:
            shutil.copyfileobj(file.file, f)

    await asyncio.to_thread(_save)
    logger.info("Stored upload %s as %s", filename, dest.name)

    try:
        return _start(
            request,
            ConversionRequest(
                target_language=target_language,
                original_file_name=dest.name,
                source_language=source_language,
                voice_type=voice,
                user_id=user_id,
            ),
        )
    except HTTPException:
        discard(dest)
        raise


@router.get("/convert/video/{conversion_id}", response_model=ConversionResponse)
async def get_conversion(request: Request, conversion_id: str) -> ConversionResponse:
    return ConversionResponse.from_record(_store(request).require_conversion(conversion_id))


@router.get("/convert/video/{conversion_id}/status", response_model=ConversionStatusResponse)
async def get_conversion_status(request: Request, conversion_id: str) -> ConversionStatusResponse:
    conv = _store(request).require_conversion(conversion_id)
    return ConversionStatusResponse(
        id=conv.id, status=conv.status, progress=conv.progress, error=conv.error
    )


@router.delete("/convert/video/{conversion_id}", response_model=ConversionStatusResponse)
async def cancel_conversion(request: Request, conversion_id: str) -> ConversionStatusResponse:
    conv = _orchestrator(request).cancel(conversion_id)
    return ConversionStatusResponse(
        id=conv.id, status=conv.status, progress=conv.progress, error=conv.error
    )


def _subtitle_response(content: str | None, conversion_id: str, ext: str, media_type: str):
    if not content:
        raise HTTPException(status_code=404, detail="Subtitles not generated yet")
    return PlainTextResponse(
        content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{conversion_id}.{ext}"'},
    )


@router.get("/convert/video/{conversion_id}/subtitles.srt")
async def get_subtitles_srt(request: Request, conversion_id: str):
    conv = _store(request).require_conversion(conversion_id)
    return _subtitle_response(conv.subtitles_srt, conv.id, "srt", "application/x-subrip")


@router.get("/convert/video/{conversion_id}/subtitles.vtt")
async def get_subtitles_vtt(request: Request, conversion_id: str):
    conv = _store(request).require_conversion(conversion_id)
    return _subtitle_response(conv.subtitles_vtt, conv.id, "vtt", "text/vtt")


@router.get("/users/{user_id}/conversions", response_model=list[ConversionResponse])
async def list_user_conversions(request: Request, user_id: str) -> list[ConversionResponse]:
    return [ConversionResponse.from_record(c) for c in _store(request).list_conversions_by_user(user_id)]


@router.post("/voice/generate", response_model=VoiceDubbingResponse)
async def generate_voice(request: Request, body: VoiceGenerateRequest):
    studio: VoiceStudio = request.app.state.studio
    try:
        dubbing = await studio.generate(
            body.input_text,
            body.target_language,
            source_language=body.source_language,
            voice_type=body.voice_type,
            user_id=body.user_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if dubbing.error:
        return JSONResponse(status_code=500, content={"detail": dubbing.error, "id": dubbing.id})
    return VoiceDubbingResponse.from_record(dubbing)


@router.get("/voice/status", response_model=VoiceStatusResponse)
async def voice_status(request: Request) -> VoiceStatusResponse:
    providers: Providers = request.app.state.providers
    premium = providers.synthesizers.get(VoiceType.PREMIUM)
    valid = bool(premium) and await asyncio.to_thread(premium.is_available)
    return VoiceStatusResponse(
        elevenlabs=valid,
        message=(
            "ElevenLabs API is configured and ready"
            if valid
            else "ElevenLabs API key not configured or invalid"
        ),
    )


@router.get("/voice/{dubbing_id}", response_model=VoiceDubbingResponse)
async def get_voice_dubbing(request: Request, dubbing_id: str) -> VoiceDubbingResponse:
    dubbing = _store(request).get_voice_dubbing(dubbing_id)
    if dubbing is None:
        raise NotFoundError("Voice dubbing", dubbing_id)
    return VoiceDubbingResponse.from_record(dubbing)


async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(p) for p in err.get('loc', ())[1:])}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "; ".join(errors) or "Invalid request"})


def create_app(
    settings: Settings | None = None,
    *,
    store: ConversionStore | None = None,
    providers: Providers | None = None,
) -> FastAPI:
    """Build the application. Collaborators may be injected for tests."""
    settings = settings or Settings.from_env()
    settings.ensure_dirs()
    store = store or open_store(settings.db_path)
    providers = providers or build_providers(settings)
    orchestrator = ConversionOrchestrator(store, providers, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await orchestrator.start()
        logger.info("videodub API ready (public dir: %s)", settings.public_dir)
        try:
            yield
        finally:
            await orchestrator.shutdown()
            store.close()

    app = FastAPI(title="videodub", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.providers = providers
    app.state.orchestrator = orchestrator
    app.state.studio = VoiceStudio(store, providers)

    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.include_router(router)

    app.mount("/audio", StaticFiles(directory=str(settings.audio_dir), check_dir=False), name="audio")
    app.mount("/videos", StaticFiles(directory=str(settings.video_dir), check_dir=False), name="videos")
    app.mount("/uploads", StaticFiles(directory=str(settings.upload_dir), check_dir=False), name="uploads")
    return app
