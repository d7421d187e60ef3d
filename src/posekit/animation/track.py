"""
Keyframe Track

Typed keyframe sample data for a single animation channel.
"""

from enum import Enum
from typing import Iterator, List, Optional

import numpy as np

from .errors import MalformedTrackError


class InterpolationType(Enum):
    """Animation interpolation types."""
    LINEAR = "LINEAR"
    STEP = "STEP"
    CUBICSPLINE = "CUBICSPLINE"

    @classmethod
    def from_gltf(cls, name: Optional[str]) -> 'InterpolationType':
        """Map a glTF sampler interpolation string (default LINEAR)."""
        if not name:
            return cls.LINEAR
        try:
            return cls(name.upper())
        except ValueError:
            raise MalformedTrackError(f"Unknown interpolation mode: {name}") from None


class TrackValueType(Enum):
    """Kind of value stored in a track."""
    SCALAR = "scalar"
    VECTOR = "vector"
    ORIENTATION = "orientation"


class Keyframe:
    """
    Single keyframe in a track.

    Stores time and value, plus tangents for cubic spline tracks.
    """

    def __init__(self, time: float, value, in_tangent=None, out_tangent=None):
        """
        Initialize keyframe.

        Args:
            time: Time in seconds
            value: Value at this time (scalar, vector or (x, y, z, w) quaternion)
            in_tangent: Incoming tangent (cubic spline only)
            out_tangent: Outgoing tangent (cubic spline only)
        """
        self.time = time
        self.value = value
        self.in_tangent = in_tangent
        self.out_tangent = out_tangent

    def __repr__(self):
        return f"Keyframe(t={self.time:.3f}, v={self.value})"


def _as_rows(data, name: str, width: Optional[int]) -> np.ndarray:
    array = np.array(data, dtype='f4')
    if array.ndim == 1:
        array = array.reshape(-1, 1) if width in (None, 1) else array.reshape(-1, width)
    elif array.ndim != 2:
        raise MalformedTrackError(f"Track {name} must be 1D or 2D, got shape {array.shape}")
    if width is not None and array.shape[1] != width:
        raise MalformedTrackError(
            f"Track {name} have {array.shape[1]} components, expected {width}"
        )
    return array


class KeyframeTrack:
    """
    Sample data for one animated property.

    Values are stored as a float32 array of shape (count, width). Tracks are
    validated on construction and treated as immutable afterwards.
    """

    def __init__(
        self,
        times,
        values,
        interpolation: InterpolationType = InterpolationType.LINEAR,
        value_type: TrackValueType = TrackValueType.VECTOR,
        in_tangents=None,
        out_tangents=None,
    ):
        """
        Initialize and validate a track.

        Args:
            times: Keyframe times in seconds, non-decreasing
            values: One value per keyframe
            interpolation: Interpolation mode
            value_type: Scalar, vector or orientation data
            in_tangents: Per-keyframe incoming tangents (CUBICSPLINE only)
            out_tangents: Per-keyframe outgoing tangents (CUBICSPLINE only)

        Raises:
            MalformedTrackError: if the data violates the track invariants
        """
        self.interpolation = interpolation
        self.value_type = value_type

        times = np.array(times, dtype='f4')
        if times.ndim != 1:
            times = times.reshape(-1)
        width = 4 if value_type == TrackValueType.ORIENTATION else None
        values = _as_rows(values, "values", width)

        if len(values) != len(times):
            raise MalformedTrackError(
                f"Track has {len(times)} keyframe times but {len(values)} values"
            )
        if not np.all(np.isfinite(times)) or not np.all(np.isfinite(values)):
            raise MalformedTrackError("Track contains non-finite samples")
        if len(times) > 1 and np.any(np.diff(times) < 0.0):
            raise MalformedTrackError("Track keyframe times must be ascending")

        if interpolation == InterpolationType.CUBICSPLINE:
            if in_tangents is None or out_tangents is None:
                raise MalformedTrackError("Cubic spline track requires in and out tangents")
            in_tangents = _as_rows(in_tangents, "in tangents", values.shape[1])
            out_tangents = _as_rows(out_tangents, "out tangents", values.shape[1])
            if len(in_tangents) != len(values) or len(out_tangents) != len(values):
                raise MalformedTrackError(
                    f"Cubic spline tangents must match {len(values)} values "
                    f"(got {len(in_tangents)} in, {len(out_tangents)} out)"
                )
        else:
            in_tangents = None
            out_tangents = None

        self.times = times
        self.values = values
        self.in_tangents = in_tangents
        self.out_tangents = out_tangents

        for array in (self.times, self.values, self.in_tangents, self.out_tangents):
            if array is not None:
                array.setflags(write=False)

    @classmethod
    def from_keyframes(
        cls,
        keyframes: List[Keyframe],
        interpolation: InterpolationType = InterpolationType.LINEAR,
        value_type: TrackValueType = TrackValueType.VECTOR,
    ) -> 'KeyframeTrack':
        """Build a track from a list of Keyframe objects."""
        times = [kf.time for kf in keyframes]
        values = [np.atleast_1d(np.asarray(kf.value, dtype='f4')) for kf in keyframes]
        in_tangents = out_tangents = None
        if interpolation == InterpolationType.CUBICSPLINE:
            in_tangents = [kf.in_tangent if kf.in_tangent is not None else np.zeros_like(v)
                           for kf, v in zip(keyframes, values)]
            out_tangents = [kf.out_tangent if kf.out_tangent is not None else np.zeros_like(v)
                            for kf, v in zip(keyframes, values)]
        return cls(times, values, interpolation, value_type, in_tangents, out_tangents)

    @classmethod
    def from_cubic_spline_output(
        cls,
        times,
        output,
        value_type: TrackValueType = TrackValueType.VECTOR,
        width: int = None,
    ) -> 'KeyframeTrack':
        """
        Build a cubic spline track from glTF sampler output.

        glTF stores each keyframe as an (in-tangent, value, out-tangent)
        triplet, so the output holds three elements per input time.
        """
        times = np.asarray(times, dtype='f4').reshape(-1)
        output = np.asarray(output, dtype='f4')
        if width is None:
            width = output.size // (3 * len(times)) if len(times) else 1
        if output.size != 3 * len(times) * width:
            raise MalformedTrackError(
                f"Cubic spline output has {output.size} components, "
                f"expected {3 * len(times) * width}"
            )
        triplets = output.reshape(len(times), 3, width)
        return cls(
            times,
            triplets[:, 1],
            InterpolationType.CUBICSPLINE,
            value_type,
            in_tangents=triplets[:, 0],
            out_tangents=triplets[:, 2],
        )

    @property
    def keyframe_count(self) -> int:
        return len(self.times)

    @property
    def width(self) -> int:
        """Number of scalar components per value."""
        return self.values.shape[1]

    @property
    def start_time(self) -> float:
        return float(self.times[0]) if len(self.times) else 0.0

    @property
    def end_time(self) -> float:
        return float(self.times[-1]) if len(self.times) else 0.0

    def keyframes(self) -> Iterator[Keyframe]:
        """Iterate keyframes one at a time."""
        for i, time in enumerate(self.times):
            in_tangent = self.in_tangents[i] if self.in_tangents is not None else None
            out_tangent = self.out_tangents[i] if self.out_tangents is not None else None
            yield Keyframe(float(time), self.values[i], in_tangent, out_tangent)

    def __len__(self):
        return len(self.times)

    def __repr__(self):
        return (f"KeyframeTrack(type={self.value_type.value}, "
                f"interpolation={self.interpolation.value}, keyframes={len(self.times)})")
