"""
Animation Errors

Load-time structural errors. Per-frame anomalies (missing target nodes,
blend conflicts) are logged instead of raised.
"""


class AnimationError(Exception):
    """Base class for animation asset errors."""


class MalformedTrackError(AnimationError, ValueError):
    """Keyframe data violates the track invariants."""


class SceneGraphError(AnimationError, ValueError):
    """Node hierarchy is not a forest of valid node ids."""


class InvalidSkinError(AnimationError, ValueError):
    """Skin references unknown joints or mismatched inverse bind data."""


class JointBudgetExceededError(AnimationError):
    """Skin has more joints than the fixed joint-matrix buffer can hold."""

    def __init__(self, joint_count: int, capacity: int, skin_name: str = None):
        self.joint_count = joint_count
        self.capacity = capacity
        self.skin_name = skin_name
        label = f"Skin '{skin_name}'" if skin_name else "Skin"
        super().__init__(
            f"{label} has {joint_count} joints, joint budget exceeded (capacity {capacity})"
        )
