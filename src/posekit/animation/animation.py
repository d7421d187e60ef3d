"""
Animation

Animation channels and clips built from keyframe tracks.
"""

from enum import Enum
from typing import Iterable, List, Optional, Tuple

from pyrr import Quaternion, Vector3

from ..config.settings import DEFAULT_ANIMATION_DURATION
from .errors import MalformedTrackError
from .evaluator import evaluate
from .track import KeyframeTrack, TrackValueType


class AnimationTarget(Enum):
    """Animation target properties."""
    TRANSLATION = "translation"
    ROTATION = "rotation"
    SCALE = "scale"
    WEIGHTS = "weights"  # Morph target weights

    @property
    def value_type(self) -> TrackValueType:
        """Track value type this property expects."""
        if self == AnimationTarget.ROTATION:
            return TrackValueType.ORIENTATION
        return TrackValueType.VECTOR


class AnimationChannel:
    """
    Animation channel targets a specific node property.

    Binds one keyframe track to translation, rotation, scale or morph
    weights of a node.
    """

    def __init__(
        self,
        target_node: int,
        target_property: AnimationTarget,
        track: KeyframeTrack,
    ):
        """
        Initialize animation channel.

        Args:
            target_node: Id of the node to animate
            target_property: Property to animate
            track: Keyframe data for the property

        Raises:
            MalformedTrackError: if the track does not fit the property
        """
        if target_property in (AnimationTarget.TRANSLATION, AnimationTarget.SCALE):
            if track.width != 3:
                raise MalformedTrackError(
                    f"{target_property.value} track for node {target_node} "
                    f"has {track.width} components, expected 3"
                )
        elif target_property == AnimationTarget.ROTATION:
            if track.value_type != TrackValueType.ORIENTATION:
                raise MalformedTrackError(
                    f"rotation track for node {target_node} must hold orientations"
                )

        self.target_node = target_node
        self.target_property = target_property
        self.track = track

    @property
    def interpolation(self):
        return self.track.interpolation

    @property
    def end_time(self) -> float:
        return self.track.end_time

    def sample(self, time: float):
        """
        Sample the channel at a given time.

        Args:
            time: Time in seconds

        Returns:
            Vector3 for translation/scale, Quaternion for rotation,
            float32 array for morph weights
        """
        value = evaluate(self.track, time)
        if self.target_property == AnimationTarget.ROTATION:
            return Quaternion(value)
        if self.target_property in (AnimationTarget.TRANSLATION, AnimationTarget.SCALE):
            return Vector3(value)
        return value

    def __repr__(self):
        return (f"AnimationChannel(node={self.target_node}, "
                f"property={self.target_property.value}, keyframes={len(self.track)})")


class AnimationClip:
    """
    Complete animation with multiple channels.

    A clip is immutable once constructed; its duration is the latest
    keyframe time across all channels.
    """

    def __init__(self, name: str, channels: Iterable[AnimationChannel], index: Optional[int] = None):
        """
        Initialize animation clip.

        Args:
            name: Clip name
            channels: Channels driven by this clip
            index: Position of the clip in its source asset
        """
        self.name = name
        self.index = index
        self.channels: Tuple[AnimationChannel, ...] = tuple(channels)

        duration = max((channel.end_time for channel in self.channels), default=0.0)
        if duration <= 0.0:
            duration = DEFAULT_ANIMATION_DURATION
        self.duration: float = float(duration)

    def target_nodes(self) -> List[int]:
        """Node ids touched by this clip, in first-seen order."""
        seen = {}
        for channel in self.channels:
            seen.setdefault(channel.target_node, None)
        return list(seen)

    def __repr__(self):
        return f"AnimationClip(name='{self.name}', duration={self.duration:.2f}s, channels={len(self.channels)})"
