"""
Platform detection, video ID extraction and the supported language/platform tables.
"""

import re
from urllib.parse import parse_qs, urlparse

SUPPORTED_FORMATS = ("mp4", "mov", "mkv", "webm", "avi")

# Platforms with captions the caption fetcher knows how to read.
CAPTION_PLATFORMS = frozenset({"youtube"})

SUPPORTED_PLATFORMS = [
    {"id": "youtube", "name": "YouTube", "hosts": ("youtube.com", "youtu.be")},
    {"id": "tiktok", "name": "TikTok", "hosts": ("tiktok.com",)},
    {"id": "instagram", "name": "Instagram", "hosts": ("instagram.com",)},
    {"id": "facebook", "name": "Facebook", "hosts": ("facebook.com", "fb.watch")},
    {"id": "twitter", "name": "Twitter/X", "hosts": ("twitter.com", "x.com")},
    {"id": "linkedin", "name": "LinkedIn", "hosts": ("linkedin.com",)},
    {"id": "reddit", "name": "Reddit", "hosts": ("reddit.com", "redd.it")},
    {"id": "vimeo", "name": "Vimeo", "hosts": ("vimeo.com",)},
    {"id": "dailymotion", "name": "Dailymotion", "hosts": ("dailymotion.com", "dai.ly")},
    {"id": "twitch", "name": "Twitch", "hosts": ("twitch.tv",)},
]

SUPPORTED_LANGUAGES = [
    ("af", "Afrikaans"), ("sq", "Albanian"), ("am", "Amharic"), ("ar", "Arabic"),
    ("hy", "Armenian"), ("az", "Azerbaijani"), ("eu", "Basque"), ("be", "Belarusian"),
    ("bn", "Bengali"), ("bs", "Bosnian"), ("bg", "Bulgarian"), ("ca", "Catalan"),
    ("ceb", "Cebuano"), ("zh-CN", "Chinese (Simplified)"), ("zh-TW", "Chinese (Traditional)"),
    ("hr", "Croatian"), ("cs", "Czech"), ("da", "Danish"), ("nl", "Dutch"),
    ("en", "English"), ("eo", "Esperanto"), ("et", "Estonian"), ("fi", "Finnish"),
    ("fr", "French"), ("gl", "Galician"), ("ka", "Georgian"), ("de", "German"),
    ("el", "Greek"), ("gu", "Gujarati"), ("ht", "Haitian Creole"), ("ha", "Hausa"),
    ("haw", "Hawaiian"), ("he", "Hebrew"), ("hi", "Hindi"), ("hu", "Hungarian"),
    ("is", "Icelandic"), ("ig", "Igbo"), ("id", "Indonesian"), ("ga", "Irish"),
    ("it", "Italian"), ("ja", "Japanese"), ("jv", "Javanese"), ("kn", "Kannada"),
    ("kk", "Kazakh"), ("km", "Khmer"), ("rw", "Kinyarwanda"), ("ko", "Korean"),
    ("ku", "Kurdish"), ("ky", "Kyrgyz"), ("lo", "Lao"), ("la", "Latin"),
    ("lv", "Latvian"), ("lt", "Lithuanian"), ("lb", "Luxembourgish"), ("mk", "Macedonian"),
    ("mg", "Malagasy"), ("ms", "Malay"), ("ml", "Malayalam"), ("mt", "Maltese"),
    ("mi", "Maori"), ("mr", "Marathi"), ("mn", "Mongolian"), ("my", "Myanmar (Burmese)"),
    ("ne", "Nepali"), ("no", "Norwegian"), ("ny", "Nyanja (Chichewa)"), ("or", "Odia (Oriya)"),
    ("ps", "Pashto"), ("fa", "Persian"), ("pl", "Polish"), ("pt", "Portuguese"),
    ("pa", "Punjabi"), ("ro", "Romanian"), ("ru", "Russian"), ("sm", "Samoan"),
    ("gd", "Scots Gaelic"), ("sr", "Serbian"), ("st", "Sesotho"), ("sn", "Shona"),
    ("sd", "Sindhi"), ("si", "Sinhala"), ("sk", "Slovak"), ("sl", "Slovenian"),
    ("so", "Somali"), ("es", "Spanish"), ("su", "Sundanese"), ("sw", "Swahili"),
    ("sv", "Swedish"), ("tl", "Tagalog (Filipino)"), ("tg", "Tajik"), ("ta", "Tamil"),
    ("tt", "Tatar"), ("te", "Telugu"), ("th", "Thai"), ("tr", "Turkish"),
    ("tk", "Turkmen"), ("uk", "Ukrainian"), ("ur", "Urdu"), ("ug", "Uyghur"),
    ("uz", "Uzbek"), ("vi", "Vietnamese"), ("cy", "Welsh"), ("xh", "Xhosa"),
    ("yi", "Yiddish"), ("yo", "Yoruba"), ("zu", "Zulu"),
]

_LANGUAGE_NAMES = {code.lower(): name for code, name in SUPPORTED_LANGUAGES}

YOUTUBE_URL_PATTERNS = (
    r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/v/)([A-Za-z0-9_-]+)",
    r"youtube\.com/shorts/([A-Za-z0-9_-]+)",
    r"youtube\.com/live/([A-Za-z0-9_-]+)",
)


def get_language_name(language_code: str) -> str:
    """Get human-readable language name from language code."""
    code = language_code.lower()
    return _LANGUAGE_NAMES.get(code) or _LANGUAGE_NAMES.get(code.split("-")[0], language_code.upper())


def _host(url: str) -> str:
    candidate = url.strip()
    if "://" not in candidate:
        candidate = "https://" + candidate
    try:
        host = urlparse(candidate).hostname or ""
    except ValueError:
        return ""
    return host.lower()


def detect_platform(url: str) -> str | None:
    """
    Map a URL to a platform id (``youtube``, ``vimeo``, ...).
    Links straight to a media file report ``direct``; anything else is None.
    """
    host = _host(url)
    if not host:
        return None
    for platform in SUPPORTED_PLATFORMS:
        for known in platform["hosts"]:
            if host == known or host.endswith("." + known):
                return str(platform["id"])
    if is_direct_media_url(url):
        return "direct"
    return None


def is_direct_media_url(url: str) -> bool:
    """True for http(s) URLs whose path ends in a supported video extension."""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    ext = parsed.path.rsplit(".", 1)[-1].lower() if "." in parsed.path else ""
    return ext in SUPPORTED_FORMATS


def extract_youtube_id(url: str) -> str | None:
    """Extract the video id from any of the common YouTube URL shapes."""
    url = (url or "").strip()
    if not url:
        return None

    for pattern in YOUTUBE_URL_PATTERNS:
        m = re.search(pattern, url)
        if m:
            return m.group(1)

    # Fallback: parse query string for 'v' parameter
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if "youtube.com" in parsed.netloc:
        v = parse_qs(parsed.query).get("v", [None])[0]
        if v and re.match(r"^[A-Za-z0-9_-]+$", v):
            return v
    return None


def is_supported_upload(filename: str) -> bool:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return ext in SUPPORTED_FORMATS


def public_platforms() -> list[dict[str, str]]:
    """Platform table without the host-matching details."""
    return [{"id": p["id"], "name": p["name"]} for p in SUPPORTED_PLATFORMS]


def public_languages() -> list[dict[str, str]]:
    return [{"code": code, "name": name} for code, name in SUPPORTED_LANGUAGES]
