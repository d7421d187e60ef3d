"""
Playback

Runtime playback state for one clip instance.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .animation import AnimationClip


class RepeatMode(Enum):
    """How an active animation behaves when it reaches the clip end."""
    ONCE = "once"
    COUNT = "count"
    FOREVER = "forever"


class PlaybackState(Enum):
    """Playback state of an active animation."""
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass
class WeightedAnimation:
    """
    Entry for AnimationController.play_weighted().

    ``optional_start == 0`` loops the range; a positive value is the
    controller time at which a one-shot started and clamps at the range end.
    ``start_time``/``end_time`` select a sub-range of the clip, so several
    entries can play different sections of one clip.
    """

    clip: Union[str, int, AnimationClip]
    weight: float = 1.0
    time_offset: float = 0.0
    optional_start: float = 0.0
    start_time: float = 0.0                # Start of the played range (seconds)
    end_time: Optional[float] = None       # End of the played range, None for the clip end

    @property
    def is_one_shot(self) -> bool:
        return self.optional_start > 0.0


class ActiveAnimation:
    """
    One playing instance of a clip.

    Unweighted entries keep their own elapsed time. Weighted entries sample
    the controller clock (``base_time``) shifted by their time offset.
    """

    def __init__(
        self,
        clip: AnimationClip,
        handle: int = 0,
        repeat_mode: RepeatMode = RepeatMode.FOREVER,
        repeat_count: int = 1,
        weight: Optional[float] = None,
        time_offset: float = 0.0,
        optional_start: float = 0.0,
        speed: float = 1.0,
        start_time: float = 0.0,
        end_time: Optional[float] = None,
    ):
        """
        Initialize playback state.

        Args:
            clip: Clip to play
            handle: Identifier assigned by the controller
            repeat_mode: ONCE, COUNT or FOREVER
            repeat_count: Number of loops for COUNT mode
            weight: Blend weight, None for unweighted playback
            time_offset: Offset added to the sample time (seconds)
            optional_start: Controller time a weighted one-shot started at
            speed: Playback speed multiplier
            start_time: Start of the range weighted entries play (seconds)
            end_time: End of that range, None for the clip duration
        """
        if repeat_mode == RepeatMode.COUNT and repeat_count < 1:
            raise ValueError(f"Repeat count must be at least 1, got {repeat_count}")
        if weight is not None and weight < 0.0:
            raise ValueError(f"Blend weight must be non-negative, got {weight}")
        if start_time < 0.0 or (end_time is not None and end_time < start_time):
            raise ValueError(f"Invalid time range [{start_time}, {end_time}] for clip '{clip.name}'")

        self.clip = clip
        self.handle = handle
        self.repeat_mode = repeat_mode
        self.repeat_count = repeat_count
        self.weight = weight
        self.time_offset = time_offset
        self.optional_start = optional_start
        self.speed = speed
        self.start_time = start_time
        self.end_time = end_time

        self.elapsed: float = 0.0
        self.completed_loops: int = 0
        self.state = PlaybackState.PLAYING

    @classmethod
    def from_weighted(cls, entry: WeightedAnimation, clip: AnimationClip, handle: int = 0) -> 'ActiveAnimation':
        """Create the playback state for a play_weighted() entry."""
        return cls(
            clip,
            handle=handle,
            repeat_mode=RepeatMode.ONCE if entry.is_one_shot else RepeatMode.FOREVER,
            weight=entry.weight,
            time_offset=entry.time_offset,
            optional_start=entry.optional_start,
            start_time=entry.start_time,
            end_time=entry.end_time,
        )

    @property
    def is_weighted(self) -> bool:
        return self.weight is not None

    @property
    def is_finished(self) -> bool:
        return self.state == PlaybackState.FINISHED

    @property
    def contributes_to_pose(self) -> bool:
        """
        Whether the entry takes part in pose resolution this frame.

        Finished entries are skipped, except weighted one-shots, which hold
        their clamped final pose.
        """
        if self.state == PlaybackState.PLAYING:
            return True
        return self.is_weighted and self.repeat_mode == RepeatMode.ONCE

    def advance(self, delta_time: float, base_time: float = 0.0):
        """
        Advance playback by one frame.

        Args:
            delta_time: Time elapsed since last frame (seconds)
            base_time: Controller clock after this frame (weighted entries)
        """
        if self.is_weighted:
            self.elapsed = self._weighted_time(base_time)
            if self.repeat_mode == RepeatMode.ONCE and self.elapsed >= self.start_time + self.time_range:
                self.state = PlaybackState.FINISHED
            return

        if self.is_finished:
            return

        self.elapsed += delta_time * self.speed
        self._apply_repeat()

    def seek(self, time: float):
        """Jump an unweighted entry to an absolute local time."""
        self.elapsed = time
        self.completed_loops = 0
        self.state = PlaybackState.PLAYING
        self._apply_repeat()

    def sample_time(self) -> float:
        """Clip-local time to sample this frame."""
        duration = self.clip.duration
        if self.is_weighted or self.time_offset == 0.0:
            return self.elapsed

        time = self.elapsed + self.time_offset
        if self.repeat_mode == RepeatMode.ONCE:
            return min(max(time, 0.0), duration)
        return time % duration

    @property
    def time_range(self) -> float:
        """Length of the played range (the whole clip unless end_time is set)."""
        end_time = self.clip.duration if self.end_time is None else self.end_time
        return max(end_time - self.start_time, 0.0)

    def _weighted_time(self, base_time: float) -> float:
        time_range = self.time_range
        if self.optional_start > 0.0:
            time = (base_time - self.optional_start) + self.time_offset
            return self.start_time + min(max(time, 0.0), time_range)
        if time_range <= 0.0:
            return self.start_time
        return self.start_time + (base_time + self.time_offset) % time_range

    def _apply_repeat(self):
        duration = self.clip.duration

        if self.elapsed < 0.0:
            if self.repeat_mode == RepeatMode.FOREVER:
                self.elapsed %= duration
            else:
                self.elapsed = 0.0
            return

        if self.elapsed < duration:
            return

        if self.repeat_mode == RepeatMode.ONCE:
            self.elapsed = duration
            self.state = PlaybackState.FINISHED

        elif self.repeat_mode == RepeatMode.COUNT:
            loops = int(self.elapsed // duration)
            self.completed_loops += loops
            self.elapsed -= loops * duration
            if self.completed_loops >= self.repeat_count:
                self.completed_loops = self.repeat_count
                self.elapsed = duration
                self.state = PlaybackState.FINISHED

        else:
            self.completed_loops += int(self.elapsed // duration)
            self.elapsed %= duration

    def __repr__(self):
        weight = f", weight={self.weight:.2f}" if self.is_weighted else ""
        return (f"ActiveAnimation(handle={self.handle}, clip='{self.clip.name}', "
                f"time={self.elapsed:.2f}s, state={self.state.value}{weight})")
