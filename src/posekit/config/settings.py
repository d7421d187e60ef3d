"""
Animation Configuration Settings

All configuration constants for the animation core.
Modify these values to change evaluation behavior.
"""

from pathlib import Path

# ============================================================================
# Project Paths
# ============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
ASSETS_DIR = PROJECT_ROOT / "assets"
STATE_MACHINE_CONFIG_DIR = ASSETS_DIR / "config" / "animation"

# ============================================================================
# Skinning
# ============================================================================

# Must match `const int MAX_JOINTS` in all animated shaders
MAX_JOINTS = 100

# Bones influencing a single vertex (ivec4/vec4 attribute width)
MAX_JOINT_INFLUENCE = 4

# Uniform names written by AnimatedModel.write_uniforms()
MODEL_MATRIX_UNIFORM = "model"
JOINT_MATRICES_UNIFORM = "jointMatrices"

# ============================================================================
# Keyframe Evaluation
# ============================================================================

# Clip duration used when every channel ends at t=0
DEFAULT_ANIMATION_DURATION = 1.0

# Above this |dot| slerp falls back to normalized lerp
SLERP_DOT_THRESHOLD = 0.9995

# Quaternions shorter than this are replaced by identity when normalized
QUATERNION_EPSILON = 1e-8

# ============================================================================
# Blending
# ============================================================================

# Weighted entries at or below this weight are skipped (< 5% influence)
MIN_BLEND_WEIGHT = 0.05

# Log a warning when unweighted clips fight over the same node property
WARN_ON_BLEND_CONFLICT = True

# Report each distinct anomaly once until the active list changes
WARN_ONCE_PER_ANOMALY = True

# ============================================================================
# Debug
# ============================================================================

DEBUG_ANIMATION = False  # Log per-frame playback traces at DEBUG level
