"""
Transform Math

Quaternion and TRS helpers shared by the evaluator, blender and hierarchy.

Quaternions use glTF/pyrr component order (x, y, z, w). Matrices follow the
pyrr row-major convention: translation is stored in row 3 and a child's
world matrix is ``local @ parent_world``.
"""

import math

import numpy as np
from pyrr import Matrix44, Quaternion, Vector3

from ..config.settings import QUATERNION_EPSILON, SLERP_DOT_THRESHOLD


def identity_quaternion() -> np.ndarray:
    """Identity rotation as a float32 (x, y, z, w) array."""
    return np.array([0.0, 0.0, 0.0, 1.0], dtype='f4')


def normalize_quaternion(q) -> np.ndarray:
    """
    Normalize a quaternion to unit length.

    Degenerate (near-zero) quaternions collapse to identity instead of
    producing NaNs.
    """
    q = np.asarray(q, dtype='f4')
    length = float(np.linalg.norm(q))
    if length < QUATERNION_EPSILON:
        return identity_quaternion()
    return (q / length).astype('f4')


def align_quaternion(q, reference) -> np.ndarray:
    """Return q or -q, whichever lies in the same hemisphere as reference."""
    q = np.asarray(q)
    if float(np.dot(q, reference)) < 0.0:
        return -q
    return q


def lerp(v0, v1, t: float) -> np.ndarray:
    """Component-wise linear interpolation."""
    return v0 * (1.0 - t) + v1 * t


def slerp(q0, q1, t: float) -> np.ndarray:
    """
    Spherical linear interpolation along the shorter arc.

    Args:
        q0: Start quaternion (x, y, z, w)
        q1: End quaternion (x, y, z, w)
        t: Interpolation factor in [0, 1]

    Returns:
        Unit quaternion
    """
    q0 = normalize_quaternion(q0).astype('f8')
    q1 = normalize_quaternion(q1).astype('f8')

    dot = float(np.dot(q0, q1))

    # Ensure shortest path
    if dot < 0.0:
        q1 = -q1
        dot = -dot

    if dot > SLERP_DOT_THRESHOLD:
        # Nearly parallel, sin(theta) would vanish
        return normalize_quaternion(lerp(q0, q1, t))

    theta_0 = math.acos(min(dot, 1.0))
    theta = theta_0 * t
    sin_theta_0 = math.sin(theta_0)

    s0 = math.sin(theta_0 - theta) / sin_theta_0
    s1 = math.sin(theta) / sin_theta_0

    return normalize_quaternion(s0 * q0 + s1 * q1)


def hermite(p0, m0, p1, m1, t: float, dt: float):
    """
    Cubic Hermite spline segment.

    Tangents are scaled by the keyframe interval ``dt`` as glTF requires.
    """
    t2 = t * t
    t3 = t2 * t

    h00 = 2.0 * t3 - 3.0 * t2 + 1.0
    h10 = t3 - 2.0 * t2 + t
    h01 = -2.0 * t3 + 3.0 * t2
    h11 = t3 - t2

    return p0 * h00 + m0 * (h10 * dt) + p1 * h01 + m1 * (h11 * dt)


def quaternion_to_matrix33(q) -> np.ndarray:
    """
    Rotation matrix for a quaternion, in row-vector form.

    The returned matrix rotates row vectors (``v @ m``); it is the transpose
    of the textbook column-vector matrix.
    """
    x, y, z, w = (float(c) for c in normalize_quaternion(q))
    xx, yy, zz = x * x, y * y, z * z
    xy, xz, yz = x * y, x * z, y * z
    wx, wy, wz = w * x, w * y, w * z

    return np.array([
        [1.0 - 2.0 * (yy + zz), 2.0 * (xy + wz), 2.0 * (xz - wy)],
        [2.0 * (xy - wz), 1.0 - 2.0 * (xx + zz), 2.0 * (yz + wx)],
        [2.0 * (xz + wy), 2.0 * (yz - wx), 1.0 - 2.0 * (xx + yy)],
    ], dtype='f4')


def matrix33_to_quaternion(m) -> np.ndarray:
    """Quaternion (x, y, z, w) for a row-vector rotation matrix."""
    # Work on the column-vector form
    r = np.asarray(m, dtype='f8').T
    trace = r[0, 0] + r[1, 1] + r[2, 2]

    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        w = 0.25 * s
        x = (r[2, 1] - r[1, 2]) / s
        y = (r[0, 2] - r[2, 0]) / s
        z = (r[1, 0] - r[0, 1]) / s
    elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
        s = math.sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2]) * 2.0
        w = (r[2, 1] - r[1, 2]) / s
        x = 0.25 * s
        y = (r[0, 1] + r[1, 0]) / s
        z = (r[0, 2] + r[2, 0]) / s
    elif r[1, 1] > r[2, 2]:
        s = math.sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2]) * 2.0
        w = (r[0, 2] - r[2, 0]) / s
        x = (r[0, 1] + r[1, 0]) / s
        y = 0.25 * s
        z = (r[1, 2] + r[2, 1]) / s
    else:
        s = math.sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1]) * 2.0
        w = (r[1, 0] - r[0, 1]) / s
        x = (r[0, 2] + r[2, 0]) / s
        y = (r[1, 2] + r[2, 1]) / s
        z = 0.25 * s

    return normalize_quaternion([x, y, z, w])


def compose_trs(translation, rotation, scale, out: np.ndarray = None) -> np.ndarray:
    """
    Build a local matrix from translation, rotation and scale.

    Equivalent to ``from_scale(s) @ rotation @ from_translation(t)`` in
    row-major form (T * R * S in column-major form).

    Args:
        translation: (x, y, z)
        rotation: Quaternion (x, y, z, w)
        scale: (x, y, z)
        out: Optional preallocated (4, 4) array to fill in place

    Returns:
        ``out`` when given, otherwise a new Matrix44
    """
    if out is None:
        out = Matrix44(np.identity(4, dtype='f4'))
    else:
        out[:] = np.identity(4, dtype=out.dtype)

    scale = np.asarray(scale, dtype='f4')
    out[:3, :3] = quaternion_to_matrix33(rotation) * scale[:, np.newaxis]
    out[3, :3] = translation
    return out


def decompose_matrix(matrix):
    """
    Split a row-major affine matrix into translation, rotation and scale.

    Negative determinants are folded into the X scale axis. Shear is lost.

    Returns:
        Tuple of (Vector3, Quaternion, Vector3)
    """
    m = np.asarray(matrix, dtype='f8')
    translation = Vector3(m[3, :3])

    upper = m[:3, :3].copy()
    scale = np.linalg.norm(upper, axis=1)
    if np.linalg.det(upper) < 0.0:
        scale[0] = -scale[0]

    safe_scale = np.where(np.abs(scale) < QUATERNION_EPSILON, 1.0, scale)
    rotation = matrix33_to_quaternion(upper / safe_scale[:, np.newaxis])

    return translation, Quaternion(rotation), Vector3(scale)


def transform_point(matrix, point) -> np.ndarray:
    """Transform a 3D point by a row-major matrix."""
    p = np.append(np.asarray(point, dtype='f4'), 1.0)
    return (p @ np.asarray(matrix))[:3]
