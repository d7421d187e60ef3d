"""Tests for ActiveAnimation playback state"""

import pytest

from posekit.animation import (
    ActiveAnimation,
    AnimationChannel,
    AnimationClip,
    AnimationTarget,
    KeyframeTrack,
    PlaybackState,
    RepeatMode,
    WeightedAnimation,
)


def _clip(duration: float = 1.0, name: str = "Move") -> AnimationClip:
    track = KeyframeTrack([0.0, duration], [(0, 0, 0), (10, 0, 0)])
    return AnimationClip(name, [AnimationChannel(0, AnimationTarget.TRANSLATION, track)])


def test_clip_duration_is_latest_channel_end():
    """Clip duration is the max channel end time"""
    short = KeyframeTrack([0.0, 0.5], [(0, 0, 0), (1, 0, 0)])
    long = KeyframeTrack([0.0, 2.5], [(1, 1, 1), (2, 2, 2)])
    clip = AnimationClip("Both", [
        AnimationChannel(0, AnimationTarget.TRANSLATION, short),
        AnimationChannel(1, AnimationTarget.SCALE, long),
    ])
    assert clip.duration == pytest.approx(2.5)
    assert clip.target_nodes() == [0, 1]


def test_once_finishes_and_holds_end():
    """ONCE finishes when elapsed reaches the duration"""
    entry = ActiveAnimation(_clip(), repeat_mode=RepeatMode.ONCE)
    entry.advance(0.6)
    assert entry.state == PlaybackState.PLAYING

    entry.advance(0.6)
    assert entry.is_finished
    assert entry.elapsed == pytest.approx(1.0)
    assert not entry.contributes_to_pose


def test_count_finishes_after_n_loops():
    """COUNT(2) plays two full loops before finishing"""
    entry = ActiveAnimation(_clip(), repeat_mode=RepeatMode.COUNT, repeat_count=2)

    for _ in range(3):
        entry.advance(0.6)
    assert entry.state == PlaybackState.PLAYING
    assert entry.completed_loops == 1
    assert entry.elapsed == pytest.approx(0.8)

    entry.advance(0.6)
    assert entry.is_finished
    assert entry.completed_loops == 2


def test_count_must_be_positive():
    """COUNT with zero loops is rejected"""
    with pytest.raises(ValueError):
        ActiveAnimation(_clip(), repeat_mode=RepeatMode.COUNT, repeat_count=0)


def test_forever_wraps_elapsed():
    """FOREVER wraps modulo duration and never finishes"""
    entry = ActiveAnimation(_clip(2.0), repeat_mode=RepeatMode.FOREVER)
    entry.advance(4.5)
    assert not entry.is_finished
    assert entry.elapsed == pytest.approx(0.5)
    assert entry.completed_loops == 2


def test_speed_scales_advance():
    """Playback speed multiplies delta time"""
    entry = ActiveAnimation(_clip(10.0), speed=2.0)
    entry.advance(1.5)
    assert entry.elapsed == pytest.approx(3.0)


def test_negative_weight_rejected():
    """Blend weights must be non-negative"""
    with pytest.raises(ValueError):
        ActiveAnimation(_clip(), weight=-0.5)


def test_weighted_looping_samples_controller_clock():
    """Looping weighted entries sample (base_time + offset) % duration"""
    entry = ActiveAnimation.from_weighted(WeightedAnimation("Move", weight=0.5, time_offset=0.25), _clip())
    entry.advance(0.0, base_time=2.5)
    assert entry.sample_time() == pytest.approx(0.75)
    assert not entry.is_finished


def test_weighted_one_shot_clamps_and_holds():
    """One-shot weighted entries clamp at the end and keep contributing"""
    entry = ActiveAnimation.from_weighted(WeightedAnimation("Move", optional_start=2.0), _clip())
    assert entry.repeat_mode == RepeatMode.ONCE

    entry.advance(0.0, base_time=2.4)
    assert entry.sample_time() == pytest.approx(0.4)

    entry.advance(0.0, base_time=5.0)
    assert entry.sample_time() == pytest.approx(1.0)
    assert entry.is_finished
    assert entry.contributes_to_pose


def test_seek_restarts_playback():
    """Seeking a finished entry makes it play again"""
    entry = ActiveAnimation(_clip(), repeat_mode=RepeatMode.ONCE)
    entry.advance(5.0)
    assert entry.is_finished

    entry.seek(0.3)
    assert entry.state == PlaybackState.PLAYING
    assert entry.elapsed == pytest.approx(0.3)


def test_weighted_range_offsets_sample_time():
    """Looping ranges start at start_time and wrap at end_time"""
    entry = ActiveAnimation.from_weighted(
        WeightedAnimation("Move", start_time=0.25, end_time=0.75), _clip(),
    )
    entry.advance(0.0, base_time=1.1)
    assert entry.time_range == pytest.approx(0.5)
    assert entry.sample_time() == pytest.approx(0.35)
