"""
Skin

Handles skinning data for skeletal animation.
"""

from typing import List, Optional, Sequence

import numpy as np
from pyrr import Matrix44

from ..config.settings import MAX_JOINTS
from .errors import InvalidSkinError, JointBudgetExceededError
from .scene_graph import SceneGraph


class Skin:
    """
    Skin binds a set of joint nodes to a mesh.

    Contains:
    - Ordered joint node ids (the mesh's joint indices refer to this order)
    - Inverse bind matrices (transform from mesh space to joint's local space)
    - Optional skeleton root node id
    """

    def __init__(
        self,
        name: str = "Skin",
        joints: Sequence[int] = (),
        inverse_bind_matrices=None,
        skeleton: Optional[int] = None,
        max_joints: int = MAX_JOINTS,
    ):
        """
        Initialize skin.

        Args:
            name: Skin name for debugging
            joints: Joint node ids
            inverse_bind_matrices: (N, 4, 4) row-major matrices, identity if None
            skeleton: Optional skeleton root node id
            max_joints: Joint matrix capacity of the renderer

        Raises:
            JointBudgetExceededError: if there are more joints than max_joints
            InvalidSkinError: if the inverse bind matrices do not match the joints
        """
        self.name = name
        self.joints: List[int] = [int(joint) for joint in joints]
        self.skeleton = skeleton
        self.max_joints = max_joints

        if len(self.joints) > max_joints:
            raise JointBudgetExceededError(len(self.joints), max_joints, skin_name=name)

        count = len(self.joints)
        if inverse_bind_matrices is None:
            matrices = np.tile(np.identity(4, dtype='f4'), (count, 1, 1))
        else:
            matrices = np.array(inverse_bind_matrices, dtype='f4')
            if matrices.size == 0 and count == 0:
                matrices = matrices.reshape(0, 4, 4)
            if matrices.ndim != 3 or matrices.shape[1:] != (4, 4) or len(matrices) != count:
                raise InvalidSkinError(
                    f"Skin '{name}' has {count} joints but inverse bind matrices of shape {matrices.shape}"
                )
            if not np.all(np.isfinite(matrices)):
                raise InvalidSkinError(f"Skin '{name}' has non-finite inverse bind matrices")

        matrices.setflags(write=False)
        self.inverse_bind_matrices = matrices

    @property
    def joint_count(self) -> int:
        return len(self.joints)

    def validate(self, graph: SceneGraph):
        """
        Check every joint against a scene graph.

        Raises:
            InvalidSkinError: if a joint or the skeleton root is not a node
        """
        for joint in self.joints:
            if not graph.contains(joint):
                raise InvalidSkinError(f"Skin '{self.name}' references missing joint node {joint}")
        if self.skeleton is not None and not graph.contains(self.skeleton):
            raise InvalidSkinError(f"Skin '{self.name}' references missing skeleton root {self.skeleton}")

    def __repr__(self):
        return f"Skin(name='{self.name}', joints={len(self.joints)})"


class JointMatrixBuffer:
    """
    Fixed-capacity joint matrix array for shader upload.

    Slots past ``count`` stay identity so a shader indexing an unused joint
    leaves vertices untouched.
    """

    def __init__(self, capacity: int = MAX_JOINTS):
        self.capacity = capacity
        self.matrices = np.tile(np.identity(4, dtype='f4'), (capacity, 1, 1))
        self.count = 0

    def __len__(self):
        return self.count

    def __getitem__(self, index: int) -> Matrix44:
        if not 0 <= index < self.count:
            raise IndexError(f"Joint index {index} out of range (count {self.count})")
        return Matrix44(self.matrices[index].copy())

    def active(self) -> np.ndarray:
        """View of the matrices actually used by the skin."""
        return self.matrices[:self.count]

    def tobytes(self) -> bytes:
        """Whole buffer, identity-padded, as float32 bytes."""
        return self.matrices.astype('f4').tobytes()

    def write_to(self, program, uniform_name: str) -> bool:
        """
        Write the buffer to a shader uniform array if the program has it.

        Returns:
            True if the uniform was written
        """
        if uniform_name not in program:
            return False
        program[uniform_name].write(self.tobytes())
        return True

    def __repr__(self):
        return f"JointMatrixBuffer(count={self.count}, capacity={self.capacity})"


def compute_joint_matrices(
    skin: Skin,
    global_transforms: np.ndarray,
    inverse_bind_matrices=None,
    out: JointMatrixBuffer = None,
) -> JointMatrixBuffer:
    """
    Compute joint matrices for shader upload.

    Joint matrix formula (row-major):
    jointMatrix = inverseBindMatrix @ jointWorldTransform

    which is ``jointWorld * inverseBind`` in column-major notation. This
    transforms vertices from bind pose to current animated pose.

    Args:
        skin: Skin providing the joint order
        global_transforms: (node_count, 4, 4) global matrices of the frame
        inverse_bind_matrices: Override for the skin's inverse bind matrices
        out: Buffer to fill in place (allocated with the skin's capacity if None)

    Returns:
        Filled JointMatrixBuffer

    Raises:
        JointBudgetExceededError: if the skin has more joints than the buffer holds
    """
    if out is None:
        out = JointMatrixBuffer(skin.max_joints)

    count = skin.joint_count
    if count > out.capacity:
        raise JointBudgetExceededError(count, out.capacity, skin_name=skin.name)

    ibm = skin.inverse_bind_matrices if inverse_bind_matrices is None else np.asarray(inverse_bind_matrices, dtype='f4')
    if len(ibm) != count:
        raise InvalidSkinError(f"Skin '{skin.name}' has {count} joints but {len(ibm)} inverse bind matrices")

    if count:
        joint_globals = np.asarray(global_transforms, dtype='f4')[skin.joints]
        np.matmul(ibm, joint_globals, out=out.matrices[:count])
    out.matrices[count:] = np.identity(4, dtype='f4')
    out.count = count
    return out
