"""Tests for Audio Mixer."""

from pathlib import Path

import pytest

from movie_shorts.core.errors import ToolFailure
from movie_shorts.models.schemas import AssembledMaster
from movie_shorts.services.audio_mixer import (
    AudioMixer,
    build_mix_args,
    choose_track,
    eligible_tracks,
    loop_count,
    music_offset,
)


@pytest.fixture
def mixer(settings, logger, media_tool):
    """Create AudioMixer backed by the fake media tool."""
    return AudioMixer(settings, logger, media_tool=media_tool)


@pytest.fixture
def master(media_tool, tmp_path):
    path = media_tool.register(tmp_path / "work" / "master.mp4", 18.0)
    return AssembledMaster(file_path=path, duration=18.0, scene_count=3)


def test_short_track_excluded_and_mix_falls_back(mixer, media_tool, settings, master, tmp_path):
    """Test a 45s track is never selected and the output is narration-only."""
    media_tool.register(settings.path("music_dir") / "short.mp3", 45.0)

    mixed = mixer.mix(master, tmp_path / "work", seed="Heat")

    assert mixed.music_path is None
    assert mixed.duration == pytest.approx(18.0)
    assert mixed.file_path.exists()
    assert media_tool.commands == []


def test_eligible_track_is_mixed(mixer, media_tool, settings, master, tmp_path):
    """Test an eligible track is looped, attenuated and mixed under the narration."""
    track = media_tool.register(settings.path("music_dir") / "long.mp3", 90.0)
    media_tool.register(settings.path("music_dir") / "short.mp3", 30.0)

    mixed = mixer.mix(master, tmp_path / "work", seed="Heat")

    assert mixed.music_path == track
    assert mixed.duration == pytest.approx(18.0)
    command = media_tool.commands[-1]
    mix = command[command.index("-filter_complex") + 1]
    assert "volume=-20.0dB" in mix
    assert "amix=inputs=2:duration=first" in mix
    assert command[command.index("-stream_loop") + 1] == "0"
    assert ["-c:v", "copy"] == command[command.index("-c:v"):command.index("-c:v") + 2]


def test_track_selection_is_deterministic(tmp_path):
    """Test the same seed always picks the same track."""
    candidates = [tmp_path / f"track_{i}.mp3" for i in range(5)]

    picks = {choose_track(candidates, "Heat") for _ in range(10)}

    assert len(picks) == 1
    assert choose_track(list(reversed(candidates)), "Heat") in picks


def test_eligible_tracks_filters_minimum():
    """Test tracks under the minimum are filtered out."""
    durations = {Path("a.mp3"): 59.9, Path("b.mp3"): 60.0, Path("c.mp3"): 200.0}

    assert eligible_tracks(durations, 60.0) == [Path("b.mp3"), Path("c.mp3")]


@pytest.mark.parametrize("track,total,expected", [(60.0, 18.0, 1), (60.0, 60.0, 1), (60.0, 61.0, 2), (70.0, 200.0, 3)])
def test_loop_count(track, total, expected):
    """Test the track is repeated enough times to cover the master."""
    assert loop_count(track, total) == expected


def test_unreadable_track_skipped(mixer, settings, master, tmp_path):
    """Test a music file ffprobe cannot read is ignored."""
    broken = settings.path("music_dir") / "broken.mp3"
    broken.parent.mkdir(parents=True, exist_ok=True)
    broken.write_bytes(b"not audio")

    mixed = mixer.mix(master, tmp_path / "work", seed="Heat")

    assert mixed.music_path is None


def test_mix_failure_propagates(mixer, media_tool, settings, master, tmp_path):
    """Test an ffmpeg failure while mixing is a tool failure."""
    media_tool.register(settings.path("music_dir") / "long.mp3", 120.0)
    media_tool.fail_when = lambda args: True

    with pytest.raises(ToolFailure):
        mixer.mix(master, tmp_path / "work", seed="Heat")


@pytest.mark.parametrize("track,expected", [(120.0, 40.0), (100.0, 40.0), (99.9, 0.0), (60.0, 0.0)])
def test_music_offset_keeps_minimum_after_intro(settings, track, expected):
    """Test the intro is skipped only when at least the minimum remains."""
    assert music_offset(track, settings) == expected


def test_music_offset_disabled(settings):
    """Test a zero offset setting always plays tracks from the start."""
    no_offset = settings.model_copy(update={"music_start_offset_seconds": 0.0})

    assert music_offset(300.0, no_offset) == 0.0


def test_long_track_mixed_from_after_intro(mixer, media_tool, settings, master, tmp_path):
    """Test a long track skips its intro and is looped without the demuxer loop."""
    media_tool.register(settings.path("music_dir") / "long.mp3", 120.0)

    mixed = mixer.mix(master, tmp_path / "work", seed="Heat")

    assert mixed.duration == pytest.approx(18.0)
    command = media_tool.commands[-1]
    mix = command[command.index("-filter_complex") + 1]
    assert "-stream_loop" not in command
    assert "atrim=start=40.000" in mix
    assert f"aloop=loop=0:size={80 * settings.audio_sample_rate}" in mix
    assert "atrim=0:18.000" in mix


def test_offset_body_looped_to_cover_master(settings, tmp_path):
    """Test the part after the intro repeats enough times to cover the master."""
    args = build_mix_args(
        tmp_path / "master.mp4",
        tmp_path / "music.mp3",
        tmp_path / "mixed.mp4",
        150.0,
        100.0,
        settings,
        ["-c:a", "aac"],
        offset=40.0,
    )

    mix = args[args.index("-filter_complex") + 1]
    assert f"aloop=loop=2:size={60 * settings.audio_sample_rate}" in mix
    assert mix.index("atrim=start=40.000") < mix.index("aloop=") < mix.index("atrim=0:150.000")
    assert args[args.index("-t") + 1] == "150.000"
