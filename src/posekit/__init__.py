"""
PoseKit - Keyframe Animation Core

Evaluates glTF-style keyframe animations into per-frame node transforms
and skin joint matrices for a rendering pipeline.
"""

# Configuration
from .config.settings import *

# Animation
from .animation import (
    AnimationChannel,
    AnimationClip,
    AnimationController,
    AnimationError,
    AnimationStateMachine,
    AnimationTarget,
    InterpolationType,
    JointBudgetExceededError,
    JointMatrixBuffer,
    KeyframeTrack,
    MalformedTrackError,
    Node,
    RepeatMode,
    SceneGraph,
    Skin,
    WeightedAnimation,
    evaluate,
)

# Loaders
from .loaders import AnimatedModel, GltfLoader, load_state_machine_definition

__version__ = "0.1.0"
__all__ = [
    # Config (exported via *)
    # Animation
    "AnimationChannel",
    "AnimationClip",
    "AnimationController",
    "AnimationError",
    "AnimationStateMachine",
    "AnimationTarget",
    "InterpolationType",
    "JointBudgetExceededError",
    "JointMatrixBuffer",
    "KeyframeTrack",
    "MalformedTrackError",
    "Node",
    "RepeatMode",
    "SceneGraph",
    "Skin",
    "WeightedAnimation",
    "evaluate",
    # Loaders
    "AnimatedModel",
    "GltfLoader",
    "load_state_machine_definition",
]
