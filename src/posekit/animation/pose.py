"""
Pose Resolution

Turns the active animation list into local and global node transforms:

1. NodeTransformTable is reset to the authored defaults
2. Every contributing channel is sampled and fed to the WeightedBlender
3. Blended locals are written back to the table
4. HierarchyResolver composes globals from the roots down
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from pyrr import Matrix44, Quaternion, Vector3

from ..config.settings import (
    DEBUG_ANIMATION,
    MIN_BLEND_WEIGHT,
    WARN_ON_BLEND_CONFLICT,
    WARN_ONCE_PER_ANOMALY,
)
from .animation import AnimationTarget
from .evaluator import evaluate
from .playback import ActiveAnimation
from .scene_graph import SceneGraph
from .transform_math import align_quaternion, compose_trs, normalize_quaternion

logger = logging.getLogger(__name__)

_PROPERTY_INDEX = {
    AnimationTarget.TRANSLATION: 0,
    AnimationTarget.ROTATION: 1,
    AnimationTarget.SCALE: 2,
    AnimationTarget.WEIGHTS: 3,
}


class NodeTransformTable:
    """
    Resolved local transform of every node for the current frame.

    Arrays are allocated once per graph and overwritten in place; reset()
    restores the authored defaults at the start of every evaluation.
    """

    def __init__(self, graph: SceneGraph):
        """
        Initialize table storage.

        Args:
            graph: Scene graph providing node count and defaults
        """
        self.graph = graph
        count = len(graph)

        self._default_translations = np.array([node.translation for node in graph], dtype='f4').reshape(count, 3)
        self._default_rotations = np.array([node.rotation for node in graph], dtype='f4').reshape(count, 4)
        self._default_scales = np.array([node.scale for node in graph], dtype='f4').reshape(count, 3)

        self.translations = self._default_translations.copy()
        self.rotations = self._default_rotations.copy()
        self.scales = self._default_scales.copy()
        self.weights: List[Optional[np.ndarray]] = [None] * count
        self.animated = np.zeros(count, dtype=bool)

        self.reset()

    def reset(self):
        """Restore every node to its authored default TRS."""
        self.translations[:] = self._default_translations
        self.rotations[:] = self._default_rotations
        self.scales[:] = self._default_scales
        for node in self.graph:
            self.weights[node.id] = node.weights.copy() if node.weights is not None else None
        self.animated[:] = False

    def set_value(self, node_id: int, target_property: AnimationTarget, value):
        """Write a resolved property value for a node."""
        if target_property == AnimationTarget.TRANSLATION:
            self.translations[node_id] = value
        elif target_property == AnimationTarget.ROTATION:
            self.rotations[node_id] = normalize_quaternion(value)
        elif target_property == AnimationTarget.SCALE:
            self.scales[node_id] = value
        elif target_property == AnimationTarget.WEIGHTS:
            self.weights[node_id] = np.array(np.atleast_1d(value), dtype='f4')
        self.animated[node_id] = True

    def get_translation(self, node_id: int) -> Vector3:
        return Vector3(self.translations[node_id])

    def get_rotation(self, node_id: int) -> Quaternion:
        return Quaternion(self.rotations[node_id])

    def get_scale(self, node_id: int) -> Vector3:
        return Vector3(self.scales[node_id])

    def get_weights(self, node_id: int) -> Optional[np.ndarray]:
        return self.weights[node_id]

    def local_matrix(self, node_id: int, out: np.ndarray = None) -> np.ndarray:
        """Local matrix of a node built from the resolved TRS."""
        return compose_trs(
            self.translations[node_id],
            self.rotations[node_id],
            self.scales[node_id],
            out=out,
        )

    def __len__(self):
        return len(self.translations)

    def __repr__(self):
        return f"NodeTransformTable(nodes={len(self)}, animated={int(self.animated.sum())})"


class WeightedBlender:
    """
    Combines contributions of several active clips per node property.

    - One unweighted contributor overwrites the default directly
    - Several unweighted contributors: last one wins (reported as conflict)
    - Any weighted contributor: weighted average normalized by the weights
      that actually target that node property; unweighted contributors in
      the same blend count with weight 1.0
    - Rotations are summed component-wise in the first contributor's
      hemisphere and renormalized (linear blending, not geodesic)
    - Morph weight vectors whose length differs from the first contributor's
      are dropped without counting their weight
    """

    def __init__(self, node_count: int):
        self.node_count = node_count
        self._sum_translation = np.zeros((node_count, 3), dtype='f8')
        self._sum_rotation = np.zeros((node_count, 4), dtype='f8')
        self._sum_scale = np.zeros((node_count, 3), dtype='f8')
        self._sum_weights: Dict[int, np.ndarray] = {}

        self._weight_sum = np.zeros((node_count, 4), dtype='f8')
        self._weighted = np.zeros((node_count, 4), dtype=bool)
        self._direct_count = np.zeros((node_count, 4), dtype=np.int32)
        self._direct: Dict[Tuple[int, int], object] = {}
        self._rotation_reference = np.zeros((node_count, 4), dtype='f8')
        self._rotation_seen = np.zeros(node_count, dtype=bool)

    def begin(self):
        """Clear accumulators for a new evaluation pass."""
        self._sum_translation.fill(0.0)
        self._sum_rotation.fill(0.0)
        self._sum_scale.fill(0.0)
        self._sum_weights.clear()
        self._weight_sum.fill(0.0)
        self._weighted.fill(False)
        self._direct_count.fill(0)
        self._direct.clear()
        self._rotation_seen.fill(False)

    def add(self, node_id: int, target_property: AnimationTarget, value, weight: Optional[float] = None) -> bool:
        """
        Accumulate one sampled value.

        Args:
            node_id: Target node
            target_property: Target property
            value: Sampled value
            weight: Blend weight, None for unweighted playback

        Returns:
            False if the value was dropped because its morph weight count
            differs from the first contributor's
        """
        slot = _PROPERTY_INDEX[target_property]

        if target_property == AnimationTarget.WEIGHTS:
            morph = np.atleast_1d(np.asarray(value, dtype='f8'))
            current = self._sum_weights.get(node_id)
            if current is not None and current.shape != morph.shape:
                return False

        if weight is None:
            self._direct_count[node_id, slot] += 1
            self._direct[(node_id, slot)] = value
            weight = 1.0
        else:
            self._weighted[node_id, slot] = True

        self._weight_sum[node_id, slot] += weight

        if target_property == AnimationTarget.TRANSLATION:
            self._sum_translation[node_id] += weight * np.asarray(value, dtype='f8')
        elif target_property == AnimationTarget.ROTATION:
            q = np.asarray(value, dtype='f8')
            if not self._rotation_seen[node_id]:
                self._rotation_reference[node_id] = q
                self._rotation_seen[node_id] = True
            else:
                q = align_quaternion(q, self._rotation_reference[node_id])
            self._sum_rotation[node_id] += weight * q
        elif target_property == AnimationTarget.SCALE:
            self._sum_scale[node_id] += weight * np.asarray(value, dtype='f8')
        elif target_property == AnimationTarget.WEIGHTS:
            if current is None:
                self._sum_weights[node_id] = weight * morph
            else:
                current += weight * morph

        return True

    def apply(self, table: NodeTransformTable) -> List[Tuple[int, AnimationTarget]]:
        """
        Write blended values into the table.

        Returns:
            (node_id, property) pairs where unweighted clips conflicted
        """
        conflicts = []
        touched = np.argwhere((self._direct_count > 0) | self._weighted)

        for node_id, slot in touched:
            node_id = int(node_id)
            slot = int(slot)
            target_property = _SLOT_PROPERTY[slot]

            if self._weighted[node_id, slot]:
                total = self._weight_sum[node_id, slot]
                if total <= 0.0:
                    continue
                if target_property == AnimationTarget.TRANSLATION:
                    value = self._sum_translation[node_id] / total
                elif target_property == AnimationTarget.ROTATION:
                    value = normalize_quaternion(self._sum_rotation[node_id])
                elif target_property == AnimationTarget.SCALE:
                    value = self._sum_scale[node_id] / total
                else:
                    value = self._sum_weights[node_id] / total
            else:
                if self._direct_count[node_id, slot] > 1:
                    conflicts.append((node_id, target_property))
                value = self._direct[(node_id, slot)]

            table.set_value(node_id, target_property, value)

        return conflicts


_SLOT_PROPERTY = {slot: target for target, slot in _PROPERTY_INDEX.items()}


class PoseResolver:
    """
    Resolves the local pose of a graph from a list of active animations.

    Per-frame anomalies are logged, never raised: channels aimed at nodes
    outside the graph are skipped, conflicting unweighted clips resolve
    last-wins.
    """

    def __init__(
        self,
        graph: SceneGraph,
        min_blend_weight: float = MIN_BLEND_WEIGHT,
        warn_on_conflict: bool = WARN_ON_BLEND_CONFLICT,
        warn_once: bool = WARN_ONCE_PER_ANOMALY,
    ):
        """
        Initialize resolver.

        Args:
            graph: Scene graph to pose
            min_blend_weight: Weighted entries at or below this are skipped
            warn_on_conflict: Log unweighted conflicts as warnings
            warn_once: Report each anomaly once until clear_reported()
        """
        self.graph = graph
        self.table = NodeTransformTable(graph)
        self.blender = WeightedBlender(len(graph))
        self.min_blend_weight = min_blend_weight
        self.warn_on_conflict = warn_on_conflict
        self.warn_once = warn_once

        self.last_conflicts: List[Tuple[int, AnimationTarget]] = []
        self.last_missing_targets: List[Tuple[str, int]] = []
        self.last_mismatched_weights: List[Tuple[str, int]] = []
        self._reported = set()

    def clear_reported(self):
        """Forget reported anomalies so they are logged again."""
        self._reported.clear()

    def resolve_pose(self, active_animations: Iterable[ActiveAnimation]) -> NodeTransformTable:
        """
        Resolve local transforms for the current frame.

        Args:
            active_animations: Ordered active list; order breaks ties
                between unweighted clips (last wins)

        Returns:
            The resolver's NodeTransformTable, valid until the next call
        """
        self.table.reset()
        self.blender.begin()
        missing = []
        mismatched = []

        for entry in active_animations:
            if not entry.contributes_to_pose:
                continue
            if entry.is_weighted and entry.weight <= self.min_blend_weight:
                continue

            time = entry.sample_time()
            if DEBUG_ANIMATION:
                logger.debug("Sampling '%s' at %.3fs (weight=%s)", entry.clip.name, time, entry.weight)

            for channel in entry.clip.channels:
                node_id = channel.target_node
                if not self.graph.contains(node_id):
                    missing.append((entry.clip.name, node_id))
                    continue
                value = evaluate(channel.track, time)
                if not self.blender.add(node_id, channel.target_property, value, entry.weight):
                    mismatched.append((entry.clip.name, node_id))

        conflicts = self.blender.apply(self.table)

        self.last_missing_targets = missing
        self.last_mismatched_weights = mismatched
        self.last_conflicts = conflicts
        self._report(missing, conflicts, mismatched)
        return self.table

    def _report(self, missing, conflicts, mismatched):
        for clip_name, node_id in missing:
            key = ("missing", clip_name, node_id)
            if self._should_report(key):
                logger.warning(
                    "Clip '%s' targets node %s which is not in the scene graph; channel skipped",
                    clip_name, node_id,
                )

        for clip_name, node_id in mismatched:
            key = ("weights", clip_name, node_id)
            if self._should_report(key):
                logger.warning(
                    "Clip '%s' has a different morph weight count for node %d than earlier clips; channel skipped",
                    clip_name, node_id,
                )

        if not self.warn_on_conflict:
            return
        for node_id, target_property in conflicts:
            key = ("conflict", node_id, target_property)
            if self._should_report(key):
                logger.warning(
                    "Blend conflict: several unweighted clips animate node %d (%s) %s; last one wins",
                    node_id, self.graph[node_id].name, target_property.value,
                )

    def _should_report(self, key) -> bool:
        if not self.warn_once:
            return True
        if key in self._reported:
            return False
        self._reported.add(key)
        return True


class HierarchyResolver:
    """
    Composes local transforms into global transforms.

    Visits nodes depth-first from every parentless node, parents before
    children, and computes world = local @ parent_world (row-major;
    parent * local in column-major). The visit order is computed once.
    Only called once every local transform of the frame is final.
    """

    def __init__(self, graph: SceneGraph):
        self.graph = graph
        count = len(graph)
        self.global_matrices = np.tile(np.identity(4, dtype='f4'), (count, 1, 1))
        self._local_matrices = np.tile(np.identity(4, dtype='f4'), (count, 1, 1))
        roots = [node.id for node in graph if node.parent is None]
        self._order = graph.depth_first(roots)

    def compute_global_transforms(self, table: NodeTransformTable, root_transform=None) -> np.ndarray:
        """
        Compute global matrices for every node.

        Args:
            table: Finalized local transforms for this frame
            root_transform: Optional parent matrix for the roots (identity)

        Returns:
            Array of shape (node_count, 4, 4), overwritten on the next call
        """
        for node_id in range(len(self.graph)):
            table.local_matrix(node_id, out=self._local_matrices[node_id])

        root_world = np.identity(4, dtype='f4') if root_transform is None else np.asarray(root_transform, dtype='f4')
        for node_id in self._order:
            parent = self.graph[node_id].parent
            parent_world = root_world if parent is None else self.global_matrices[parent]
            np.matmul(self._local_matrices[node_id], parent_world, out=self.global_matrices[node_id])

        return self.global_matrices

    def get_global_matrix(self, node_id: int) -> Matrix44:
        """Copy of a node's global matrix from the last computation."""
        return Matrix44(self.global_matrices[node_id].copy())


def resolve_pose(active_animations: Iterable[ActiveAnimation], graph: SceneGraph) -> NodeTransformTable:
    """Resolve a pose with a throwaway PoseResolver."""
    return PoseResolver(graph).resolve_pose(active_animations)
