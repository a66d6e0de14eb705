"""
videodub - Video dubbing service with captions, translation, TTS and subtitles.

A web service and pipeline for:
- Fetching platform captions or transcribing extracted audio
- Translating transcripts with Google Translate or OpenAI GPT
- Synthesizing speech with Google, OpenAI or ElevenLabs TTS
- Generating SRT/VTT subtitles
- Re-muxing dubbed audio into the source video
- Tracking every conversion job so clients can poll its progress
"""

__version__ = "0.2.0"
