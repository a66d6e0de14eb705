"""
Tests for URL classification and the metadata tables.
"""

from videodub.platforms import (
    SUPPORTED_LANGUAGES,
    detect_platform,
    extract_youtube_id,
    get_language_name,
    is_supported_upload,
    public_platforms,
)


def test_detect_platform():
    assert detect_platform("https://www.youtube.com/watch?v=dQw4w9WgXcQ") == "youtube"
    assert detect_platform("https://youtu.be/dQw4w9WgXcQ") == "youtube"
    assert detect_platform("https://vimeo.com/12345") == "vimeo"
    assert detect_platform("https://www.tiktok.com/@user/video/1") == "tiktok"
    assert detect_platform("https://cdn.example.com/clips/talk.mp4") == "direct"
    assert detect_platform("https://example.com/about") is None
    assert detect_platform("") is None


def test_extract_youtube_id():
    """All common URL shapes resolve to the same id."""
    vid = "dQw4w9WgXcQ"
    for url in (
        f"https://www.youtube.com/watch?v={vid}",
        f"https://www.youtube.com/watch?feature=share&v={vid}",
        f"https://youtu.be/{vid}",
        f"https://www.youtube.com/embed/{vid}",
        f"https://www.youtube.com/shorts/{vid}",
    ):
        assert extract_youtube_id(url) == vid
    assert extract_youtube_id("https://vimeo.com/1") is None


def test_language_names():
    assert get_language_name("es") == "Spanish"
    assert get_language_name("zh-CN") == "Chinese (Simplified)"
    assert get_language_name("xx") == "XX"
    assert len(SUPPORTED_LANGUAGES) >= 100


def test_uploads_and_platform_table():
    assert is_supported_upload("clip.MP4")
    assert is_supported_upload("movie.mkv")
    assert not is_supported_upload("notes.txt")
    assert not is_supported_upload("noext")
    assert {"id": "youtube", "name": "YouTube"} in public_platforms()
