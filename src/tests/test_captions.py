"""
Tests for caption scraping and decoding.
"""

import json

import httpx

from videodub.captions import (
    CaptionSource,
    decode_caption_xml,
    decode_entities,
    parse_caption_tracks,
    pick_track,
)

TRACKS = [
    {"baseUrl": "https://www.youtube.com/api/timedtext?v=abc\\u0026lang=en", "languageCode": "en", "vssId": ".en"},
    {"baseUrl": "https://www.youtube.com/api/timedtext?v=abc\\u0026lang=es", "languageCode": "es", "vssId": ".es"},
]

CAPTION_XML = (
    '<?xml version="1.0" encoding="utf-8" ?><transcript>'
    '<text start="0" dur="2">Hello &amp;amp; welcome</text>'
    '<text start="2" dur="2">it&amp;#39;s a &lt;b&gt;test&lt;/b&gt;</text>'
    "</transcript>"
)


def _watch_page(tracks) -> str:
    return (
        '<html><script>var ytInitialPlayerResponse = {"captions": {"playerCaptionsTracklistRenderer": '
        f'{{"captionTracks": {json.dumps(tracks)}, "audioTracks": []}}}}}};</script></html>'
    )


def test_decode_entities():
    """Named, numeric and double-escaped references all resolve."""
    assert decode_entities("Tom &amp; Jerry") == "Tom & Jerry"
    assert decode_entities("it&#39;s") == "it's"
    assert decode_entities("a&#x2F;b") == "a/b"
    assert decode_entities("a&nbsp;b") == "a b"
    assert decode_entities("it&amp;#39;s") == "it's"


def test_decode_caption_xml_prefers_text_elements():
    assert decode_caption_xml(CAPTION_XML) == "Hello & welcome it's a test"


def test_decode_caption_xml_falls_back_to_body():
    payload = "<tt><body><p>First line of captions</p><p>second line</p></body></tt>"
    assert decode_caption_xml(payload) == "First line of captions second line"


def test_parse_and_pick_tracks():
    tracks = parse_caption_tracks(_watch_page(TRACKS))
    assert [t["languageCode"] for t in tracks] == ["en", "es"]
    assert pick_track(tracks, "es")["languageCode"] == "es"
    assert pick_track(tracks, "es-MX")["languageCode"] == "es"
    assert pick_track(tracks, "de")["languageCode"] == "en"
    assert pick_track([], "en") is None
    assert parse_caption_tracks("<html>no captions</html>") == []


def _mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_caption_source_fetches_matching_track():
    """The requested language's track is downloaded and decoded."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if request.url.path == "/watch":
            return httpx.Response(200, text=_watch_page(TRACKS))
        return httpx.Response(200, text=CAPTION_XML)

    source = CaptionSource(client=_mock_client(handler))
    transcript = source.get_transcript("https://youtu.be/abc", "es")

    assert transcript is not None
    assert transcript.text == "Hello & welcome it's a test"
    assert transcript.language == "es"
    assert transcript.origin == "captions"
    assert "lang=es" in seen[-1]


def test_caption_source_returns_none_on_short_or_missing_captions():
    def short(request):
        if request.url.path == "/watch":
            return httpx.Response(200, text=_watch_page(TRACKS))
        return httpx.Response(200, text="<transcript><text>Hi</text></transcript>")

    def missing(request):
        return httpx.Response(200, text="<html></html>")

    assert CaptionSource(client=_mock_client(short)).get_transcript("https://youtu.be/abc") is None
    assert CaptionSource(client=_mock_client(missing)).get_transcript("https://youtu.be/abc") is None


def test_caption_source_swallows_network_errors():
    def broken(request):
        raise httpx.ConnectError("boom", request=request)

    source = CaptionSource(client=_mock_client(broken))
    assert source.get_transcript("https://www.youtube.com/watch?v=abc") is None


def test_caption_source_ignores_other_platforms():
    def never(request):
        raise AssertionError("no request expected")

    source = CaptionSource(client=_mock_client(never))
    assert source.get_transcript("https://vimeo.com/123") is None
