"""
Animation System

Keyframe evaluation, clip playback, pose blending and skinning for
glTF-style scene graphs.
"""

from .errors import (
    AnimationError,
    MalformedTrackError,
    SceneGraphError,
    InvalidSkinError,
    JointBudgetExceededError,
)
from .track import Keyframe, KeyframeTrack, InterpolationType, TrackValueType
from .evaluator import evaluate, find_keyframe_interval
from .animation import AnimationChannel, AnimationClip, AnimationTarget
from .playback import ActiveAnimation, PlaybackState, RepeatMode, WeightedAnimation
from .scene_graph import Node, SceneGraph
from .pose import HierarchyResolver, NodeTransformTable, PoseResolver, WeightedBlender, resolve_pose
from .skin import JointMatrixBuffer, Skin, compute_joint_matrices
from .animation_controller import AnimationController
from .state_machine import AnimationStateMachine, StateConfig, StateMachineDefinition

__all__ = [
    'AnimationError',
    'MalformedTrackError',
    'SceneGraphError',
    'InvalidSkinError',
    'JointBudgetExceededError',
    'Keyframe',
    'KeyframeTrack',
    'InterpolationType',
    'TrackValueType',
    'evaluate',
    'find_keyframe_interval',
    'AnimationChannel',
    'AnimationClip',
    'AnimationTarget',
    'ActiveAnimation',
    'PlaybackState',
    'RepeatMode',
    'WeightedAnimation',
    'Node',
    'SceneGraph',
    'HierarchyResolver',
    'NodeTransformTable',
    'PoseResolver',
    'WeightedBlender',
    'resolve_pose',
    'JointMatrixBuffer',
    'Skin',
    'compute_joint_matrices',
    'AnimationController',
    'AnimationStateMachine',
    'StateConfig',
    'StateMachineDefinition',
]
