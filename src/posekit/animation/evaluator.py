"""
Keyframe Evaluator

Samples a KeyframeTrack at an arbitrary time.
"""

from typing import Tuple

import numpy as np

from .track import InterpolationType, KeyframeTrack, TrackValueType
from .transform_math import hermite, identity_quaternion, lerp, normalize_quaternion, slerp


def find_keyframe_interval(times: np.ndarray, time: float) -> Tuple[int, int, float]:
    """
    Locate the keyframes surrounding a time.

    Times outside the track range clamp to the first/last keyframe. A
    zero-length interval yields a factor of 0 so callers return the start
    value.

    Returns:
        Tuple of (start_index, end_index, factor)
    """
    count = len(times)
    if count < 2 or time <= times[0]:
        return 0, 0, 0.0
    if time >= times[-1]:
        return count - 1, count - 1, 0.0

    # Last keyframe with times[i] <= time
    i = int(np.searchsorted(times, time, side='right')) - 1
    duration = float(times[i + 1] - times[i])
    if duration <= 0.0:
        return i, i, 0.0
    return i, i + 1, (time - float(times[i])) / duration


def _constant(track: KeyframeTrack, index: int):
    if track.value_type == TrackValueType.ORIENTATION:
        return normalize_quaternion(track.values[index])
    return track.values[index].copy()


def _empty_value(track: KeyframeTrack):
    if track.value_type == TrackValueType.ORIENTATION:
        return identity_quaternion()
    return np.zeros(track.width, dtype='f4')


def _as_result(track: KeyframeTrack, value):
    if track.value_type == TrackValueType.SCALAR:
        return float(value[0])
    return value


def evaluate(track: KeyframeTrack, time: float):
    """
    Sample a track at the given time.

    Args:
        track: Track to sample
        time: Time in seconds

    Returns:
        float for scalar tracks, float32 array otherwise. Orientations are
        unit (x, y, z, w) quaternions.
    """
    if track.keyframe_count == 0:
        return _as_result(track, _empty_value(track))

    i, j, t = find_keyframe_interval(track.times, time)
    if i == j:
        return _as_result(track, _constant(track, i))

    interpolation = track.interpolation
    orientation = track.value_type == TrackValueType.ORIENTATION
    v0 = track.values[i]
    v1 = track.values[j]

    if interpolation == InterpolationType.STEP:
        value = _constant(track, i)

    elif interpolation == InterpolationType.LINEAR:
        if orientation:
            value = slerp(v0, v1, t)
        else:
            value = lerp(v0, v1, t).astype('f4')

    elif interpolation == InterpolationType.CUBICSPLINE:
        dt = float(track.times[j] - track.times[i])
        value = hermite(v0, track.out_tangents[i], v1, track.in_tangents[j], t, dt)
        if orientation:
            # Component-wise spline, then back onto the unit sphere
            value = normalize_quaternion(value)
        else:
            value = value.astype('f4')

    else:
        raise ValueError(f"Unsupported interpolation: {interpolation}")

    return _as_result(track, value)
