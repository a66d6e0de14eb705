"""
Tests for subtitle generation.
"""

from videodub.models import Cue
from videodub.srt_utils import (
    build_cues,
    estimate_duration,
    format_srt_timestamp,
    format_vtt_timestamp,
    generate_subtitles,
    render_srt,
    render_vtt,
    split_cues,
)


def test_split_cues_on_sentence_punctuation():
    """Sentences keep their punctuation; CJK terminators split too."""
    assert split_cues("A. B. C.") == ["A.", "B.", "C."]
    assert split_cues("Hola! ¿Qué tal? Bien.") == ["Hola!", "¿Qué tal?", "Bien."]
    assert split_cues("你好。再见！") == ["你好。", "再见！"]


def test_split_cues_fallbacks():
    """Text without terminators is one cue; blank text is none."""
    assert split_cues("no punctuation here") == ["no punctuation here"]
    assert split_cues("   ") == []
    assert split_cues("") == []


def test_estimate_duration():
    """Short cues get the two-second minimum; long ones scale with length."""
    assert estimate_duration("Hi.") == 2.0
    assert estimate_duration("x" * 60) == 4.0


def test_three_sentences_give_three_ordered_cues():
    """Cues are back to back, ordered and non-overlapping."""
    cues = build_cues("A. B. C.")

    assert [c.text for c in cues] == ["A.", "B.", "C."]
    assert cues[0].start == 0.0
    for prev, cur in zip(cues, cues[1:]):
        assert prev.end <= cur.start
        assert cur.start == prev.end
    assert all(c.end > c.start for c in cues)


def test_timestamps_round_to_milliseconds():
    """125.4 seconds renders exactly in both formats."""
    assert format_srt_timestamp(125.4) == "00:02:05,400"
    assert format_vtt_timestamp(125.4) == "00:02:05.400"
    assert format_srt_timestamp(0) == "00:00:00,000"
    assert format_srt_timestamp(3661.001) == "01:01:01,001"


def test_render_srt_and_vtt():
    """SRT blocks are numbered; VTT starts with the WEBVTT header."""
    cues = [Cue(0.0, 2.0, "Hello."), Cue(2.0, 4.5, "World.")]

    srt = render_srt(cues)
    vtt = render_vtt(cues)

    assert srt.startswith("1\n00:00:00,000 --> 00:00:02,000\nHello.\n")
    assert "\n2\n00:00:02,000 --> 00:00:04,500\nWorld.\n" in srt
    assert vtt.startswith("WEBVTT\n\n")
    assert "00:00:02.000 --> 00:00:04.500\nWorld." in vtt
    assert "," not in vtt.split("\n", 2)[2].split("\n")[0]


def test_generate_subtitles_numbers_blocks_in_order():
    srt, vtt = generate_subtitles("First line. Second line! Third?")

    blocks = srt.strip().split("\n\n")
    assert [b.splitlines()[0] for b in blocks] == ["1", "2", "3"]
    assert [b.splitlines()[2] for b in blocks] == ["First line.", "Second line!", "Third?"]
    assert blocks[0].splitlines()[1].startswith("00:00:00,000 --> ")
    assert vtt.count(" --> ") == 3


def test_generate_subtitles_blank_text():
    """Blank input renders zero cues."""
    srt, vtt = generate_subtitles("")
    assert srt == ""
    assert vtt.strip() == "WEBVTT"
