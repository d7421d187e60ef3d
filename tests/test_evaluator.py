"""Tests for keyframe evaluation"""

import math

import numpy as np
import pytest

from posekit.animation import (
    InterpolationType,
    KeyframeTrack,
    TrackValueType,
    evaluate,
    find_keyframe_interval,
)


def _z_rotation(angle: float):
    """Quaternion (x, y, z, w) rotating about +Z."""
    return (0.0, 0.0, math.sin(angle / 2.0), math.cos(angle / 2.0))


def _translation_track(interpolation=InterpolationType.LINEAR):
    return KeyframeTrack([0.0, 1.0], [(0, 0, 0), (10, 0, 0)], interpolation)


def test_linear_midpoint():
    """Linear track halfway between (0,0,0) and (10,0,0)"""
    assert np.allclose(evaluate(_translation_track(), 0.5), (5, 0, 0))


def test_step_holds_until_next_key():
    """Step track holds the previous value until the next keyframe"""
    track = _translation_track(InterpolationType.STEP)
    assert np.allclose(evaluate(track, 0.999), (0, 0, 0))
    assert np.allclose(evaluate(track, 1.0), (10, 0, 0))


def test_cubic_zero_tangents_midpoint():
    """Cubic spline between 0 and 1 with zero tangents is 0.5 at t=0.5"""
    track = KeyframeTrack(
        [0.0, 1.0], [0.0, 1.0], InterpolationType.CUBICSPLINE, TrackValueType.SCALAR,
        in_tangents=[0.0, 0.0], out_tangents=[0.0, 0.0],
    )
    value = evaluate(track, 0.5)
    assert isinstance(value, float)
    assert value == pytest.approx(0.5)


@pytest.mark.parametrize("interpolation", list(InterpolationType))
def test_boundary_clamping(interpolation):
    """First/last keyframe values are returned at and beyond the ends"""
    kwargs = {}
    if interpolation == InterpolationType.CUBICSPLINE:
        kwargs = dict(in_tangents=np.ones((3, 3)), out_tangents=np.ones((3, 3)))
    track = KeyframeTrack(
        [0.5, 1.0, 2.0], [(1, 2, 3), (4, 5, 6), (7, 8, 9)], interpolation, **kwargs,
    )

    assert np.allclose(evaluate(track, 0.5), (1, 2, 3))
    assert np.allclose(evaluate(track, -10.0), (1, 2, 3))
    assert np.allclose(evaluate(track, 2.0), (7, 8, 9))
    assert np.allclose(evaluate(track, 99.0), (7, 8, 9))


def test_linear_stays_on_segment():
    """Linear samples lie on the straight segment between neighbors"""
    track = KeyframeTrack([0.0, 2.0], [(1, 1, 0), (3, 5, 0)])
    start = np.array((1, 1, 0))
    end = np.array((3, 5, 0))

    for time in np.linspace(0.0, 2.0, 9):
        value = evaluate(track, float(time))
        t = time / 2.0
        assert np.allclose(value, start + (end - start) * t, atol=1e-5)


def test_linear_orientation_is_unit_and_shortest_arc():
    """Slerp results are unit length and take the shorter arc"""
    q0 = _z_rotation(0.0)
    # Same rotation as +90 degrees, opposite hemisphere
    q1 = tuple(-c for c in _z_rotation(math.pi / 2.0))
    track = KeyframeTrack([0.0, 1.0], [q0, q1], value_type=TrackValueType.ORIENTATION)

    for time in np.linspace(0.0, 1.0, 11):
        value = evaluate(track, float(time))
        assert np.linalg.norm(value) == pytest.approx(1.0, abs=1e-5)

    mid = evaluate(track, 0.5)
    expected = np.array(_z_rotation(math.pi / 4.0))
    assert np.allclose(mid, expected, atol=1e-5) or np.allclose(mid, -expected, atol=1e-5)


def test_slerp_nearly_identical_orientations():
    """Nearly parallel quaternions fall back to normalized lerp without NaNs"""
    q0 = _z_rotation(0.0)
    q1 = _z_rotation(1e-4)
    track = KeyframeTrack([0.0, 1.0], [q0, q1], value_type=TrackValueType.ORIENTATION)

    value = evaluate(track, 0.5)
    assert np.all(np.isfinite(value))
    assert np.linalg.norm(value) == pytest.approx(1.0, abs=1e-6)


def test_cubic_returns_stored_value_at_keyframes():
    """Cubic spline at a keyframe time is that keyframe's value"""
    track = KeyframeTrack(
        [0.0, 1.0, 3.0], [(0, 0, 0), (2, 4, 6), (1, 1, 1)], InterpolationType.CUBICSPLINE,
        in_tangents=[(5, 5, 5), (-3, 2, 1), (7, 7, 7)],
        out_tangents=[(1, 2, 3), (9, 9, 9), (0, 0, 0)],
    )
    assert np.allclose(evaluate(track, 1.0), (2, 4, 6))
    assert np.allclose(evaluate(track, 3.0), (1, 1, 1))


def test_cubic_tangents_scaled_by_interval():
    """Hermite tangents are multiplied by the keyframe delta"""
    # p(t) = p0*h00 + m0*h10*dt + p1*h01 + m1*h11*dt; at t=0.5 h10=0.125, h11=-0.125
    track = KeyframeTrack(
        [0.0, 2.0], [0.0, 0.0], InterpolationType.CUBICSPLINE, TrackValueType.SCALAR,
        in_tangents=[0.0, 0.0], out_tangents=[1.0, 0.0],
    )
    assert evaluate(track, 1.0) == pytest.approx(1.0 * 0.125 * 2.0)


def test_cubic_orientation_is_normalized():
    """Component-wise cubic orientation output is renormalized"""
    q0 = _z_rotation(0.0)
    q1 = _z_rotation(math.pi / 2.0)
    zeros = [(0, 0, 0, 0), (0, 0, 0, 0)]
    track = KeyframeTrack(
        [0.0, 1.0], [q0, q1], InterpolationType.CUBICSPLINE, TrackValueType.ORIENTATION,
        in_tangents=zeros, out_tangents=zeros,
    )
    assert np.linalg.norm(evaluate(track, 0.3)) == pytest.approx(1.0, abs=1e-5)


def test_single_keyframe_is_constant():
    """A one-key track returns its value at every time"""
    track = KeyframeTrack([0.7], [(3, 2, 1)])
    for time in (-1.0, 0.0, 0.7, 5.0):
        assert np.allclose(evaluate(track, time), (3, 2, 1))


def test_empty_tracks_return_neutral_values():
    """Empty tracks yield zero vectors and identity orientations"""
    vector = KeyframeTrack([], np.zeros((0, 3)))
    orientation = KeyframeTrack([], np.zeros((0, 4)), value_type=TrackValueType.ORIENTATION)

    assert np.allclose(evaluate(vector, 1.0), (0, 0, 0))
    assert np.allclose(evaluate(orientation, 1.0), (0, 0, 0, 1))


def test_duplicate_timestamp_does_not_divide_by_zero():
    """A zero-length interval returns a stored value instead of NaN"""
    track = KeyframeTrack([0.0, 1.0, 1.0, 2.0], [(0, 0, 0), (1, 0, 0), (5, 0, 0), (6, 0, 0)])
    value = evaluate(track, 1.0)
    assert np.all(np.isfinite(value))
    assert np.allclose(value, (5, 0, 0))


def test_find_keyframe_interval():
    """Bracketing indices and factor"""
    times = np.array([0.0, 1.0, 3.0], dtype='f4')
    assert find_keyframe_interval(times, -1.0) == (0, 0, 0.0)
    assert find_keyframe_interval(times, 4.0) == (2, 2, 0.0)
    i, j, t = find_keyframe_interval(times, 2.0)
    assert (i, j) == (1, 2)
    assert t == pytest.approx(0.5)
