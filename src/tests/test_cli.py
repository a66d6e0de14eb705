"""
Tests for CLI argument handling and the voice command.
"""

import asyncio

import pytest

from videodub import cli

from conftest import FakeSynthesizer


def test_parse_args_and_overrides(tmp_path, monkeypatch):
    monkeypatch.delenv("VIDEODUB_TRANSLATION_PROVIDER", raising=False)
    args = cli.parse_args(
        [
            "--env-file", str(tmp_path / "none.env"),
            "--public-dir", str(tmp_path / "pub"),
            "--translation-provider", "openai",
            "convert", "https://youtu.be/abc123", "-t", "es", "--no-merge", "--mix-original",
        ]
    )
    assert args.command == "convert"
    assert args.voice_type == "generic"

    settings = cli.load_settings(args)
    assert settings.public_dir == tmp_path / "pub"
    assert settings.translation_provider == "openai"
    assert settings.merge_video is False
    assert settings.mix_original is True


def test_parse_args_requires_a_command():
    with pytest.raises(SystemExit):
        cli.parse_args([])


def test_stage_source_copies_local_video(settings, tmp_path):
    video = tmp_path / "clip.mov"
    video.write_bytes(b"movie")

    url, name = cli._stage_source(str(video), settings)
    assert url is None
    assert (settings.upload_dir / name).read_bytes() == b"movie"
    assert cli._stage_source("https://youtu.be/abc123", settings) == ("https://youtu.be/abc123", None)

    notes = tmp_path / "notes.txt"
    notes.write_text("x")
    with pytest.raises(SystemExit):
        cli._stage_source(str(notes), settings)


def test_voice_command_prints_audio_path(settings, make_providers, monkeypatch, capsys, tmp_path):
    monkeypatch.setattr(cli, "build_providers", lambda s: make_providers())
    text_file = tmp_path / "line.txt"
    text_file.write_text("Good morning.", encoding="utf-8")
    args = cli.parse_args(["voice", f"@{text_file}", "-t", "fr"])

    assert asyncio.run(cli.run_voice(args, settings)) == 0
    printed = capsys.readouterr().out.strip()
    assert printed.startswith(str(settings.audio_dir))

    monkeypatch.setattr(
        cli, "build_providers", lambda s: make_providers(generic=FakeSynthesizer(settings.audio_dir, fail=True))
    )
    assert asyncio.run(cli.run_voice(args, settings)) == 1
