"""
Command-line interface for the video dubbing service.
"""

import argparse
import asyncio
import json
import logging
import shutil
import sys
from dataclasses import replace
from pathlib import Path

from tqdm import tqdm

from .config import Settings
from .io_ffmpeg import unique_name
from .models import ConversionStatus, DubbingStatus, VideoConversion
from .pipeline import ConversionOrchestrator, ConversionRequest, VoiceStudio
from .platforms import is_supported_upload
from .providers import build_providers
from .store import open_store

logger = logging.getLogger("videodub")

POLL_INTERVAL = 0.5


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Video dubbing service")
    ap.add_argument("--env-file", default=None, help="Load settings from this .env file")
    ap.add_argument("--public-dir", default=None, help="Root for audio/, videos/, uploads/, temp/")
    ap.add_argument("--db", default=None, help="SQLite database path (in-memory if omitted)")
    ap.add_argument("--translation-provider", choices=["google", "openai"], default=None)
    ap.add_argument("--tts-provider", choices=["google", "openai"], default=None)
    ap.add_argument("--stt-provider", choices=["google", "openai"], default=None)
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    sub = ap.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--workers", type=int, default=None, help="Concurrent conversion jobs")

    convert = sub.add_parser("convert", help="Dub one video and wait for the result")
    convert.add_argument("source", help="Video URL or local video file")
    convert.add_argument("--target-language", "-t", required=True)
    convert.add_argument("--source-language", "-s", default=None)
    convert.add_argument("--voice-type", default="generic", help="generic or premium")
    convert.add_argument("--transcript", default=None, help="Text file used when no transcript can be obtained")
    convert.add_argument("--srt", default=None, help="Write SRT subtitles to this path")
    convert.add_argument("--vtt", default=None, help="Write VTT subtitles to this path")
    convert.add_argument("--no-merge", action="store_true", help="Do not re-mux dubbed audio into the video")
    convert.add_argument("--mix-original", action="store_true", help="Keep the original audio under the dub")

    voice = sub.add_parser("voice", help="Synthesize speech for a piece of text")
    voice.add_argument("text", help="Text to speak, or @path to read it from a file")
    voice.add_argument("--target-language", "-t", required=True)
    voice.add_argument("--voice-type", default="generic", help="generic or premium")

    return ap.parse_args(argv)


def load_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env(args.env_file)
    overrides = {}
    if args.public_dir:
        overrides["public_dir"] = Path(args.public_dir)
    if args.db:
        overrides["db_path"] = Path(args.db)
    for name in ("translation_provider", "tts_provider", "stt_provider"):
        value = getattr(args, name)
        if value:
            overrides[name] = value
    if getattr(args, "workers", None):
        overrides["workers"] = max(1, args.workers)
    if getattr(args, "no_merge", False):
        overrides["merge_video"] = False
    if getattr(args, "mix_original", False):
        overrides["mix_original"] = True
    return replace(settings, **overrides)


def _read_text_arg(value: str | None) -> str | None:
    if value and value.startswith("@"):
        return Path(value[1:]).read_text(encoding="utf-8")
    return value


def _stage_source(source: str, settings: Settings) -> tuple[str | None, str | None]:
    """Return ``(original_url, original_file_name)``; local files are copied to uploads/."""
    path = Path(source)
    if not path.is_file():
        return source, None
    if not is_supported_upload(path.name):
        raise SystemExit(f"Unsupported video file: {path.name}")
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    dest = settings.upload_dir / unique_name("upload", path.suffix)
    shutil.copyfile(path, dest)
    return None, dest.name


async def _follow(orchestrator: ConversionOrchestrator, job_id: str) -> VideoConversion:
    """Poll the store and mirror progress on a tqdm bar until the job ends."""
    shown = 0
    with tqdm(total=100, desc="pending", unit="%") as bar:
        while True:
            conv = orchestrator.store.require_conversion(job_id)
            bar.set_description(conv.status.value)
            if conv.progress > shown:
                bar.update(conv.progress - shown)
                shown = conv.progress
            if conv.status.is_terminal:
                return conv
            await asyncio.sleep(POLL_INTERVAL)


async def run_convert(args: argparse.Namespace, settings: Settings) -> int:
    settings.ensure_dirs()
    store = open_store(settings.db_path)
    orchestrator = ConversionOrchestrator(store, build_providers(settings), settings)
    url, file_name = _stage_source(args.source, settings)
    transcript = Path(args.transcript).read_text(encoding="utf-8") if args.transcript else None

    await orchestrator.start()
    try:
        conv = orchestrator.start_conversion(
            ConversionRequest(
                target_language=args.target_language,
                original_url=url,
                original_file_name=file_name,
                source_language=args.source_language,
                voice_type=args.voice_type,
                transcript=transcript,
            )
        )
        conv = await _follow(orchestrator, conv.id)
    finally:
        await orchestrator.shutdown()
        store.close()

    if conv.status is ConversionStatus.FAILED:
        logger.error("Conversion failed: %s", conv.error)
        return 1

    if args.srt and conv.subtitles_srt:
        Path(args.srt).write_text(conv.subtitles_srt, encoding="utf-8")
        logger.info(f"Wrote {args.srt}")
    if args.vtt and conv.subtitles_vtt:
        Path(args.vtt).write_text(conv.subtitles_vtt, encoding="utf-8")
        logger.info(f"Wrote {args.vtt}")

    print(
        json.dumps(
            {
                "id": conv.id,
                "sourceLanguage": conv.source_language,
                "targetLanguage": conv.target_language,
                "audio": str(settings.public_dir) + conv.output_audio_url if conv.output_audio_url else None,
                "video": conv.output_video_url,
            },
            indent=2,
        )
    )
    return 0


async def run_voice(args: argparse.Namespace, settings: Settings) -> int:
    settings.ensure_dirs()
    store = open_store(settings.db_path)
    studio = VoiceStudio(store, build_providers(settings))
    try:
        dubbing = await studio.generate(
            _read_text_arg(args.text), args.target_language, voice_type=args.voice_type
        )
    finally:
        store.close()
    if dubbing.status is not DubbingStatus.COMPLETED:
        logger.error("Voice generation failed: %s", dubbing.error)
        return 1
    print(str(settings.public_dir) + dubbing.output_audio_url)
    return 0


def serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from .webapi import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)
    settings = load_settings(args)

    try:
        if args.command == "serve":
            code = serve(args, settings)
        elif args.command == "convert":
            code = asyncio.run(run_convert(args, settings))
        else:
            code = asyncio.run(run_voice(args, settings))
    except ValueError as e:
        logger.error(str(e))
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
