"""
Audio and video processing utilities using ffmpeg/ffprobe/yt-dlp.

Every operation writes its result under an explicit output directory with a
unique file name, and removes empty or partial outputs when it fails.
"""

import logging
import math
import secrets
import subprocess
import time
from pathlib import Path

import httpx

from .errors import MediaToolError, UnsupportedPlatformError
from .platforms import extract_youtube_id

logger = logging.getLogger("videodub")

DEFAULT_TIMEOUT = 600.0
PROBE_TIMEOUT = 30.0

_BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def run(cmd: list[str], *, check: bool = True, timeout: float | None = DEFAULT_TIMEOUT) -> str:
    """Run a command and return its combined stdout/stderr."""
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise MediaToolError(f"{cmd[0]} is not installed or not on PATH") from e
    except subprocess.TimeoutExpired as e:
        raise MediaToolError(f"{cmd[0]} timed out after {timeout:.0f}s") from e
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, (proc.stdout or "")[-2000:])
        msg = f"{cmd[0]} failed with code {proc.returncode}"
        raise MediaToolError(msg)
    return proc.stdout or ""


def ensure_dir(path: str | Path) -> Path:
    """Ensure directory exists."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def unique_name(prefix: str, ext: str) -> str:
    """File name unique across concurrent jobs: timestamp plus random suffix."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}.{ext.lstrip('.')}"


def discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)


def _run_to_output(cmd: list[str], output: Path, timeout: float | None) -> Path:
    """Run ``cmd`` and require a non-empty ``output``; clean up otherwise."""
    try:
        run(cmd, timeout=timeout)
    except MediaToolError:
        discard(output)
        raise
    if not output.exists() or output.stat().st_size == 0:
        discard(output)
        raise MediaToolError(f"{cmd[0]} produced no output at {output.name}")
    return output


def extract_audio(
    input_video: str | Path,
    out_dir: str | Path,
    *,
    fmt: str = "wav",
    sample_rate: int = 16000,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> Path:
    """Extract a mono audio track from a video file."""
    out = ensure_dir(out_dir) / unique_name("extracted", fmt)
    codec = "libmp3lame" if fmt == "mp3" else "pcm_s16le"
    cmd = [
        "ffmpeg",
        "-y",
        "-i",
        str(input_video),
        "-vn",
        "-acodec",
        codec,
        "-ar",
        str(sample_rate),
        "-ac",
        "1",
        str(out),
    ]
    return _run_to_output(cmd, out, timeout)


def merge_audio_with_video(
    input_video: str | Path,
    audio: str | Path,
    out_dir: str | Path,
    *,
    mix_original: bool = False,
    original_volume: float = 0.2,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> Path:
    """
    Replace the video's audio track with ``audio`` (video stream copied).
    With ``mix_original`` the original track is attenuated to ``original_volume``
    and mixed under the new one; output stops at the shorter input.
    """
    out = ensure_dir(out_dir) / unique_name("dubbed", "mp4")
    cmd = ["ffmpeg", "-y", "-i", str(input_video), "-i", str(audio)]
    if mix_original:
        cmd += [
            "-filter_complex",
            f"[0:a]volume={original_volume}[a0];[1:a]volume=1.0[a1];"
            "[a0][a1]amix=inputs=2:duration=shortest[aout]",
            "-map",
            "0:v:0",
            "-map",
            "[aout]",
        ]
    else:
        cmd += ["-map", "0:v:0", "-map", "1:a:0"]
    cmd += ["-c:v", "copy", "-c:a", "aac", "-shortest", str(out)]
    return _run_to_output(cmd, out, timeout)


def convert_audio_format(
    input_audio: str | Path,
    out_dir: str | Path,
    *,
    fmt: str = "wav",
    sample_rate: int = 16000,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> Path:
    """Re-encode audio as mono ``fmt`` at ``sample_rate``."""
    out = ensure_dir(out_dir) / unique_name("converted", fmt)
    cmd = [
        "ffmpeg",
        "-y",
        "-i",
        str(input_audio),
        "-ar",
        str(sample_rate),
        "-ac",
        "1",
        str(out),
    ]
    return _run_to_output(cmd, out, timeout)


def probe_duration(path: str | Path, *, timeout: float | None = PROBE_TIMEOUT) -> float:
    """Get media duration in seconds."""
    out = run(
        [
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ],
        timeout=timeout,
    )
    try:
        seconds = float(out.strip())
    except ValueError as e:
        raise MediaToolError(f"Could not parse duration of {Path(path).name}: {out.strip()[:80]!r}") from e
    if math.isnan(seconds) or seconds < 0:
        raise MediaToolError(f"Invalid duration {seconds} for {Path(path).name}")
    return seconds


def split_audio(
    input_audio: str | Path,
    out_dir: str | Path,
    duration: float,
    chunk_seconds: float,
    *,
    sample_rate: int = 16000,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> list[Path]:
    """
    Cut audio into sequential fixed-length mono chunks.
    Chunks ffmpeg fails to write are skipped; the rest keep their order.
    """
    out_root = ensure_dir(out_dir)
    count = max(1, math.ceil(duration / chunk_seconds))
    chunks: list[Path] = []
    for idx in range(count):
        chunk = out_root / unique_name(f"chunk_{idx:03d}", "wav")
        cmd = [
            "ffmpeg",
            "-y",
            "-i",
            str(input_audio),
            "-ss",
            f"{idx * chunk_seconds:.3f}",
            "-t",
            f"{chunk_seconds:.3f}",
            "-ar",
            str(sample_rate),
            "-ac",
            "1",
            str(chunk),
        ]
        try:
            chunks.append(_run_to_output(cmd, chunk, timeout))
        except MediaToolError as e:
            logger.warning("Skipping audio chunk %d: %s", idx, e)
    logger.info("Split %s into %d chunks", Path(input_audio).name, len(chunks))
    return chunks


def _ytdlp_cmd(url: str, out: Path, *, fmt: str, player_client: str) -> list[str]:
    return [
        "yt-dlp",
        "-f",
        fmt,
        "-o",
        str(out),
        "--no-playlist",
        "--no-warnings",
        "--user-agent",
        _BROWSER_UA,
        "--extractor-args",
        f"youtube:player_client={player_client}",
        url,
    ]


def _download_youtube(url: str, out_dir: Path, timeout: float | None) -> Path:
    video_id = extract_youtube_id(url)
    if not video_id:
        raise MediaToolError(f"Invalid YouTube URL: {url}")

    attempts = (
        ("best[ext=mp4]/best", "android,web"),
        ("18/worst[ext=mp4]/worst", "ios"),
    )
    last_error: MediaToolError | None = None
    for fmt, client in attempts:
        out = out_dir / unique_name(f"youtube_{video_id}", "mp4")
        logger.info("Downloading YouTube video %s (player_client=%s)", video_id, client)
        try:
            return _run_to_output(_ytdlp_cmd(url, out, fmt=fmt, player_client=client), out, timeout)
        except MediaToolError as e:
            logger.warning("yt-dlp attempt with %s failed: %s", client, e)
            last_error = e
    raise MediaToolError(f"YouTube download failed: {last_error}")


def _download_direct(
    url: str, out_dir: Path, timeout: float | None, client: httpx.Client | None
) -> Path:
    ext = url.split("?", 1)[0].rsplit(".", 1)[-1].lower()
    out = out_dir / unique_name("remote", ext)
    own_client = client is None
    http = client or httpx.Client(follow_redirects=True, timeout=timeout)
    try:
        with http.stream("GET", url, headers={"User-Agent": _BROWSER_UA}) as r:
            if r.status_code != 200:
                raise MediaToolError(f"Download failed: HTTP {r.status_code}")
            with open(out, "wb") as f:
                for chunk in r.iter_bytes():
                    f.write(chunk)
    except httpx.HTTPError as e:
        discard(out)
        raise MediaToolError(f"Download failed: {e}") from e
    except MediaToolError:
        discard(out)
        raise
    finally:
        if own_client:
            http.close()
    if out.stat().st_size == 0:
        discard(out)
        raise MediaToolError("Download produced an empty file")
    return out


def download_remote_video(
    url: str,
    platform: str | None,
    out_dir: str | Path,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
    client: httpx.Client | None = None,
) -> Path:
    """
    Download a remote video to ``out_dir``.
    YouTube goes through yt-dlp with a fallback client; plain media URLs are
    streamed over HTTP; other platforms raise UnsupportedPlatformError.
    """
    root = ensure_dir(out_dir)
    if platform == "youtube":
        return _download_youtube(url, root, timeout)
    if platform == "direct":
        return _download_direct(url, root, timeout, client)
    raise UnsupportedPlatformError(platform or "unknown")


def cleanup_temp_files(temp_dir: str | Path, max_age_seconds: float = 3600.0) -> int:
    """Delete files in ``temp_dir`` older than ``max_age_seconds``. Returns the count."""
    root = Path(temp_dir)
    if not root.exists():
        return 0
    cutoff = time.time() - max_age_seconds
    removed = 0
    for entry in root.iterdir():
        try:
            if entry.is_file() and entry.stat().st_mtime < cutoff:
                entry.unlink()
                removed += 1
                logger.debug("Cleaned up temp file: %s", entry.name)
        except OSError as e:
            logger.warning("Failed to clean up %s: %s", entry, e)
    if removed:
        logger.info("Removed %d stale temp files from %s", removed, root)
    return removed
