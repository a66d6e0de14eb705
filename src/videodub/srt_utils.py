"""
Subtitle generation: cue splitting, timing estimates, SRT/VTT rendering.
"""

import logging
import re

from .models import Cue

logger = logging.getLogger("videodub")

# Reading speed used to estimate how long a cue stays on screen.
CHARS_PER_SECOND = 15.0
MIN_CUE_SECONDS = 2.0

_CUE_RE = re.compile(r"[^.!?。！？]+(?:[.!?。！？]+|$)")


def split_cues(text: str) -> list[str]:
    """Split text into cue texts at sentence-ending punctuation, keeping it."""
    text = (text or "").strip()
    if not text:
        return []
    parts = [m.strip() for m in _CUE_RE.findall(text)]
    parts = [p for p in parts if p]
    return parts or [text]


def estimate_duration(text: str) -> float:
    """Seconds on screen: one second per 15 characters, at least two."""
    return max(MIN_CUE_SECONDS, len(text) / CHARS_PER_SECOND)


def build_cues(text: str) -> list[Cue]:
    """Lay cues end to end starting at zero."""
    cues: list[Cue] = []
    t = 0.0
    for part in split_cues(text):
        end = t + estimate_duration(part)
        cues.append(Cue(start=t, end=end, text=part))
        t = end
    return cues


def _split_ms(t: float) -> tuple[int, int, int, int]:
    ms = int(round(max(0.0, t) * 1000))
    h, ms = divmod(ms, 3_600_000)
    m, ms = divmod(ms, 60_000)
    s, ms = divmod(ms, 1000)
    return h, m, s, ms


def format_srt_timestamp(t: float) -> str:
    h, m, s, ms = _split_ms(t)
    return f"{h:02}:{m:02}:{s:02},{ms:03}"


def format_vtt_timestamp(t: float) -> str:
    h, m, s, ms = _split_ms(t)
    return f"{h:02}:{m:02}:{s:02}.{ms:03}"


def render_srt(cues: list[Cue]) -> str:
    """Numbered SRT blocks separated by blank lines."""
    blocks = [
        f"{i}\n{format_srt_timestamp(c.start)} --> {format_srt_timestamp(c.end)}\n{c.text}\n"
        for i, c in enumerate(cues, 1)
    ]
    return "\n".join(blocks)


def render_vtt(cues: list[Cue]) -> str:
    """WebVTT document with a ``WEBVTT`` header."""
    blocks = [
        f"{format_vtt_timestamp(c.start)} --> {format_vtt_timestamp(c.end)}\n{c.text}\n"
        for c in cues
    ]
    return "\n".join(["WEBVTT\n", *blocks])


def generate_subtitles(text: str) -> tuple[str, str]:
    """Render ``text`` as ``(srt, vtt)``."""
    cues = build_cues(text)
    logger.debug("Generated %d subtitle cues", len(cues))
    return render_srt(cues), render_vtt(cues)
