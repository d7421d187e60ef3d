"""
Animation Controller

Manages animation playback, blending, and state for one model.
"""

import itertools
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
from pyrr import Matrix44

from ..config.settings import DEBUG_ANIMATION, MAX_JOINTS, MIN_BLEND_WEIGHT
from .animation import AnimationClip
from .errors import JointBudgetExceededError
from .playback import ActiveAnimation, RepeatMode, WeightedAnimation
from .pose import HierarchyResolver, NodeTransformTable, PoseResolver
from .scene_graph import SceneGraph
from .skin import JointMatrixBuffer, Skin, compute_joint_matrices

logger = logging.getLogger(__name__)

ClipId = Union[str, int, AnimationClip]


class AnimationController:
    """
    Controls animation playback for a scene graph.

    Manages:
    - Ordered list of active animations (order breaks unweighted ties)
    - Controller clock used by weighted entries
    - Resolved local pose, global matrices and joint matrix buffers

    Every buffer is allocated here once; update() refills them in place.
    """

    def __init__(
        self,
        graph: SceneGraph,
        clips: Union[Sequence[AnimationClip], Dict[str, AnimationClip]] = (),
        skins: Sequence[Skin] = (),
        max_joints: int = MAX_JOINTS,
        min_blend_weight: float = MIN_BLEND_WEIGHT,
    ):
        """
        Initialize animation controller.

        Args:
            graph: Scene graph to animate
            clips: Clips addressable by name or index
            skins: Skins whose joint matrices are computed each frame
            max_joints: Joint matrix buffer capacity
            min_blend_weight: Weighted entries at or below this are skipped

        Raises:
            JointBudgetExceededError: if a skin has more joints than max_joints
            InvalidSkinError: if a skin references nodes outside the graph
        """
        self.graph = graph
        if isinstance(clips, dict):
            clips = list(clips.values())
        self.clips: List[AnimationClip] = list(clips)
        self.clips_by_name: Dict[str, AnimationClip] = {}
        for clip in self.clips:
            self.clips_by_name.setdefault(clip.name, clip)

        self.skins: List[Skin] = list(skins)
        self.joint_buffers: List[JointMatrixBuffer] = []
        for skin in self.skins:
            skin.validate(graph)
            if skin.joint_count > max_joints:
                raise JointBudgetExceededError(skin.joint_count, max_joints, skin_name=skin.name)
            self.joint_buffers.append(JointMatrixBuffer(max_joints))

        self.pose_resolver = PoseResolver(graph, min_blend_weight=min_blend_weight)
        self.hierarchy = HierarchyResolver(graph)

        self.active: List[ActiveAnimation] = []
        self.time: float = 0.0
        self._handles = itertools.count(1)

        self._evaluate()

    # ------------------------------------------------------------------
    # Clip lookup
    # ------------------------------------------------------------------

    def get_clip(self, clip_id: ClipId) -> AnimationClip:
        """
        Look up a clip by name, index or instance.

        Raises:
            KeyError: if no such clip exists
        """
        if isinstance(clip_id, AnimationClip):
            return clip_id
        if isinstance(clip_id, (int, np.integer)) and not isinstance(clip_id, bool):
            if 0 <= clip_id < len(self.clips):
                return self.clips[clip_id]
            raise KeyError(f"No animation clip with index {clip_id}")
        clip = self.clips_by_name.get(clip_id)
        if clip is None:
            raise KeyError(f"No animation clip named '{clip_id}'")
        return clip

    # ------------------------------------------------------------------
    # Playback control
    # ------------------------------------------------------------------

    def play(self, clip_id: ClipId, repeat_mode: RepeatMode = RepeatMode.FOREVER,
             repeat_count: int = 1, speed: float = 1.0) -> int:
        """
        Start an unweighted instance of a clip.

        Args:
            clip_id: Clip name, index or instance
            repeat_mode: ONCE, COUNT or FOREVER
            repeat_count: Loops for COUNT mode
            speed: Playback speed multiplier

        Returns:
            Handle for is_finished() / stop()
        """
        clip = self.get_clip(clip_id)
        entry = ActiveAnimation(clip, handle=next(self._handles), repeat_mode=repeat_mode,
                                repeat_count=repeat_count, speed=speed)
        self.active.append(entry)
        self.pose_resolver.clear_reported()
        logger.debug("Playing '%s' (%s) as handle %d", clip.name, repeat_mode.value, entry.handle)
        return entry.handle

    def play_weighted(self, entries: Iterable[WeightedAnimation]) -> List[int]:
        """
        Replace the weighted set with new entries.

        Unweighted entries stay in place. Weighted entries are appended
        after them in the given order.

        Returns:
            Handles of the new weighted entries

        Raises:
            ValueError: if a weight is negative
            KeyError: if a clip is unknown
        """
        entries = list(entries)
        new_active = []
        for entry in entries:
            if entry.weight < 0.0:
                raise ValueError(f"Blend weight must be non-negative, got {entry.weight}")
            clip = self.get_clip(entry.clip)
            animation = ActiveAnimation.from_weighted(entry, clip, handle=next(self._handles))
            animation.advance(0.0, self.time)
            new_active.append(animation)

        self.active = [entry for entry in self.active if not entry.is_weighted] + new_active
        self.pose_resolver.clear_reported()
        return [entry.handle for entry in new_active]

    def play_tick(self, time: float):
        """
        Scrub every active entry to an absolute time and re-evaluate.

        Sets the controller clock to ``time``; unweighted entries seek to it.
        """
        self.time = time
        for entry in self.active:
            if entry.is_weighted:
                entry.advance(0.0, time)
            else:
                entry.seek(time)
        self._evaluate()

    def play_all(self) -> List[int]:
        """Play every clip forever, unweighted."""
        return [self.play(clip) for clip in self.clips]

    def play_clips(self, clip_ids: Iterable[ClipId]) -> List[int]:
        """Play the given clips forever, unweighted."""
        return [self.play(clip_id) for clip_id in clip_ids]

    def stop(self, handle: int) -> bool:
        """
        Remove one active entry.

        Returns:
            True if the handle was active
        """
        for index, entry in enumerate(self.active):
            if entry.handle == handle:
                del self.active[index]
                self.pose_resolver.clear_reported()
                return True
        return False

    def stop_all(self):
        """Clear the active list; the next update resolves the authored pose."""
        self.active.clear()
        self.pose_resolver.clear_reported()

    def remove_finished(self) -> int:
        """
        Drop finished entries from the active list.

        Returns:
            Number of entries removed
        """
        remaining = [entry for entry in self.active if not entry.is_finished]
        removed = len(self.active) - len(remaining)
        if removed:
            self.active = remaining
            self.pose_resolver.clear_reported()
        return removed

    def is_finished(self, handle: int) -> bool:
        """
        Whether a handle has finished playing.

        Handles that were stopped or removed count as finished.
        """
        entry = self.get_active(handle)
        return entry is None or entry.is_finished

    def get_active(self, handle: int) -> Optional[ActiveAnimation]:
        for entry in self.active:
            if entry.handle == handle:
                return entry
        return None

    @property
    def is_playing(self) -> bool:
        return any(not entry.is_finished for entry in self.active)

    # ------------------------------------------------------------------
    # Frame update
    # ------------------------------------------------------------------

    def update(self, delta_time: float) -> bool:
        """
        Advance every active entry and resolve the frame.

        Args:
            delta_time: Time elapsed since last frame (seconds)

        Returns:
            True if any entry is still playing
        """
        self.time += delta_time
        for entry in self.active:
            entry.advance(delta_time, self.time)

        if DEBUG_ANIMATION:
            logger.debug("Controller t=%.3fs active=%s", self.time, self.active)

        self._evaluate()
        return self.is_playing

    def _evaluate(self):
        table = self.pose_resolver.resolve_pose(self.active)
        globals_ = self.hierarchy.compute_global_transforms(table)
        for skin, buffer in zip(self.skins, self.joint_buffers):
            compute_joint_matrices(skin, globals_, out=buffer)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    @property
    def transform_table(self) -> NodeTransformTable:
        return self.pose_resolver.table

    @property
    def global_matrices(self) -> np.ndarray:
        """(node_count, 4, 4) global matrices of the last update."""
        return self.hierarchy.global_matrices

    def get_global_matrix(self, node_id: int) -> Matrix44:
        return self.hierarchy.get_global_matrix(node_id)

    def get_joint_buffer(self, skin_index: int) -> JointMatrixBuffer:
        return self.joint_buffers[skin_index]

    def __repr__(self):
        return f"AnimationController(clips={len(self.clips)}, active={len(self.active)}, time={self.time:.2f}s)"
