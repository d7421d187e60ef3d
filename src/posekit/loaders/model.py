"""
Model

Represents a loaded animated model: node hierarchy, clips, skins and the
controller that poses them every frame.
"""

import logging
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
from pyrr import Matrix44

from ..animation import (
    AnimationClip,
    AnimationController,
    InvalidSkinError,
    JointMatrixBuffer,
    RepeatMode,
    SceneGraph,
    Skin,
)
from ..config.settings import JOINT_MATRICES_UNIFORM, MAX_JOINTS, MODEL_MATRIX_UNIFORM

logger = logging.getLogger(__name__)


class AnimatedModel:
    """
    Renderer-facing model with animation support.

    Skinned and non-skinned nodes both read the animated transforms of the
    last update(); nothing here falls back to authored node matrices.
    """

    def __init__(
        self,
        graph: SceneGraph,
        clips: Sequence[AnimationClip] = (),
        skins: Sequence[Skin] = (),
        name: str = "Model",
        max_joints: int = MAX_JOINTS,
    ):
        """
        Initialize model.

        Args:
            graph: Node hierarchy
            clips: Animation clips (glTF animation order)
            skins: Skins (glTF skin order, indexed by Node.skin)
            name: Model name for debugging
            max_joints: Joint matrix capacity of the renderer

        Raises:
            JointBudgetExceededError: if a skin has more joints than max_joints
            InvalidSkinError: if a skin or skinned node is inconsistent with the graph
        """
        self.graph = graph
        self.name = name
        self.skins: List[Skin] = list(skins)
        self.animations: Dict[str, AnimationClip] = {}
        for clip in clips:
            self.animations.setdefault(clip.name, clip)

        self.animation_controller = AnimationController(graph, list(clips), self.skins, max_joints=max_joints)

        # Mesh node -> skin index
        self.skinned_nodes: Dict[int, int] = {}
        for node in graph:
            if node.skin is None:
                continue
            if not 0 <= node.skin < len(self.skins):
                raise InvalidSkinError(f"Node {node.id} ({node.name}) references missing skin {node.skin}")
            self.skinned_nodes[node.id] = node.skin

        self.current_handle: Optional[int] = None

    @property
    def clips(self) -> List[AnimationClip]:
        return self.animation_controller.clips

    def update(self, delta_time: float) -> bool:
        """
        Update model animations.

        Args:
            delta_time: Time elapsed since last frame (seconds)

        Returns:
            True if any animation is still playing
        """
        return self.animation_controller.update(delta_time)

    def play_animation(self, name: str, loop: bool = True) -> Optional[int]:
        """
        Play an animation by name, replacing whatever was playing.

        Args:
            name: Animation name
            loop: Whether to loop the animation

        Returns:
            Playback handle, or None if the model has no such animation
        """
        if name not in self.animations:
            logger.warning("Model '%s' has no animation named '%s'", self.name, name)
            return None

        self.animation_controller.stop_all()
        repeat_mode = RepeatMode.FOREVER if loop else RepeatMode.ONCE
        self.current_handle = self.animation_controller.play(name, repeat_mode)
        return self.current_handle

    def stop_animation(self):
        """Stop all animations and return to the authored pose."""
        self.animation_controller.stop_all()
        self.current_handle = None
        self.animation_controller.update(0.0)

    @property
    def is_playing(self) -> bool:
        return self.animation_controller.is_playing

    def get_node_matrix(self, node_id: int) -> Matrix44:
        """Animated global matrix of a node."""
        return self.animation_controller.get_global_matrix(node_id)

    def get_joint_matrices(self, skin: Union[int, Skin]) -> JointMatrixBuffer:
        """Joint matrix buffer of a skin (index or instance)."""
        if isinstance(skin, Skin):
            skin = self.skins.index(skin)
        return self.animation_controller.get_joint_buffer(skin)

    def get_model_matrix(self, node_id: int) -> np.ndarray:
        """
        Model matrix to render a node's mesh with.

        Skinned meshes get identity: their joint matrices already place
        vertices in model space.
        """
        if node_id in self.skinned_nodes:
            return np.identity(4, dtype='f4')
        return self.animation_controller.global_matrices[node_id]

    def write_uniforms(self, program, node_id: int):
        """
        Write the model matrix and joint matrices for one node's mesh.

        Args:
            program: Shader program supporting ``name in program`` and
                ``program[name].write(bytes)``
            node_id: Node whose mesh is about to be drawn
        """
        if MODEL_MATRIX_UNIFORM in program:
            program[MODEL_MATRIX_UNIFORM].write(self.get_model_matrix(node_id).astype('f4').tobytes())

        skin_index = self.skinned_nodes.get(node_id)
        if skin_index is not None:
            self.get_joint_matrices(skin_index).write_to(program, JOINT_MATRICES_UNIFORM)

    def __repr__(self):
        return (f"AnimatedModel(name='{self.name}', nodes={len(self.graph)}, "
                f"animations={len(self.animations)}, skins={len(self.skins)})")
