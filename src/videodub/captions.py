"""
Caption acquisition: platform caption tracks decoded to plain text.

Captions are best effort. Any network or parsing problem is logged and
reported as "no captions" so the caller can fall back to another source.
"""

import html
import json
import logging
import re

import httpx

from .models import Transcript
from .platforms import CAPTION_PLATFORMS, detect_platform, extract_youtube_id

logger = logging.getLogger("videodub")

MIN_CAPTION_CHARS = 10

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}

_CAPTION_TRACKS_RE = re.compile(r'"captionTracks":\s*(\[.*?\])\s*,\s*"', re.DOTALL)
_TEXT_ELEMENT_RE = re.compile(r"<text[^>]*>(.*?)</text>", re.DOTALL)
_BODY_RE = re.compile(r"<body[^>]*>(.*?)</body>", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def decode_entities(text: str) -> str:
    """Resolve named and numeric character references (``&amp;``, ``&#39;``, ``&#x2F;``)."""
    # Timed-text payloads are sometimes escaped twice (&amp;#39;).
    decoded = html.unescape(text)
    if "&" in decoded:
        decoded = html.unescape(decoded)
    return decoded.replace("\xa0", " ")


def _clean(fragment: str) -> str:
    # escaped markup (&lt;b&gt;) only becomes a tag after decoding
    text = _TAG_RE.sub(" ", decode_entities(_TAG_RE.sub(" ", fragment)))
    return _WS_RE.sub(" ", text).strip()


def decode_caption_xml(payload: str) -> str:
    """
    Convert a timed-text XML payload to clean plain text.

    Tries the ``<text>`` elements first, then the inner text of ``<body>``,
    then every text node in the document.
    """
    parts = [_clean(m) for m in _TEXT_ELEMENT_RE.findall(payload)]
    text = " ".join(p for p in parts if p)
    if len(text) >= MIN_CAPTION_CHARS:
        return text

    body = _BODY_RE.search(payload)
    if body:
        text = _clean(body.group(1))
        if len(text) >= MIN_CAPTION_CHARS:
            return text

    return _clean(payload)


def parse_caption_tracks(page: str) -> list[dict]:
    """Pull the caption track list out of a YouTube watch page."""
    m = _CAPTION_TRACKS_RE.search(page)
    if not m:
        return []
    try:
        tracks = json.loads(m.group(1))
    except json.JSONDecodeError as e:
        logger.warning("Could not parse caption tracks: %s", e)
        return []
    return [t for t in tracks if isinstance(t, dict)]


def pick_track(tracks: list[dict], language: str | None) -> dict | None:
    """Prefer the track matching ``language``; otherwise take the first one."""
    if not tracks:
        return None
    if language:
        lang = language.lower()
        base = lang.split("-")[0]
        for track in tracks:
            code = str(track.get("languageCode", "")).lower()
            vss = str(track.get("vssId", "")).lower()
            if code in (lang, base) or f".{base}" in vss:
                return track
    return tracks[0]


def _track_url(track: dict) -> str | None:
    url = track.get("baseUrl")
    if not url:
        return None
    return url.replace("\\u0026", "&").replace("&amp;", "&")


def fetch_youtube_captions(
    video_id: str, language: str | None = "en", *, client: httpx.Client
) -> Transcript | None:
    """Fetch and decode a caption track for a YouTube video, or None."""
    watch_url = f"https://www.youtube.com/watch?v={video_id}"
    r = client.get(watch_url, headers=_HEADERS)
    if r.status_code != 200:
        logger.info("Video page for %s returned %d", video_id, r.status_code)
        return None

    track = pick_track(parse_caption_tracks(r.text), language)
    if track is None:
        logger.info("No captions available for %s", video_id)
        return None
    url = _track_url(track)
    if url is None:
        logger.info("Caption track for %s has no URL", video_id)
        return None

    r = client.get(url, headers={**_HEADERS, "Accept": "text/xml, application/xml, */*"})
    if r.status_code != 200:
        logger.info("Caption download for %s returned %d", video_id, r.status_code)
        return None

    text = decode_caption_xml(r.text)
    if len(text) < MIN_CAPTION_CHARS:
        logger.info("Caption text for %s too short (%d chars)", video_id, len(text))
        return None

    track_lang = track.get("languageCode") or language
    logger.info("Extracted %d characters of captions (%s)", len(text), track_lang)
    return Transcript(text=text, language=track_lang, origin="captions")


class CaptionSource:
    """Looks up platform captions for a source URL."""

    def __init__(self, *, timeout: float = 30.0, client: httpx.Client | None = None):
        self.timeout = timeout
        self._client = client

    def get_transcript(self, url: str, language: str | None = None) -> Transcript | None:
        platform = detect_platform(url)
        if platform not in CAPTION_PLATFORMS:
            return None
        video_id = extract_youtube_id(url)
        if not video_id:
            return None

        client = self._client or httpx.Client(follow_redirects=True, timeout=self.timeout)
        try:
            return fetch_youtube_captions(video_id, language or "en", client=client)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Caption fetch for %s failed: %s", video_id, e)
            return None
        finally:
            if self._client is None:
                client.close()
