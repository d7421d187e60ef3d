"""
GLTF/GLB Loader

Loads the node hierarchy, animations and skins of GLTF and GLB files into
an AnimatedModel. Geometry, materials and textures are left to the renderer.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pygltflib

from ..animation import (
    AnimationChannel,
    AnimationClip,
    AnimationTarget,
    InterpolationType,
    KeyframeTrack,
    MalformedTrackError,
    Node,
    SceneGraph,
    Skin,
)
from ..config.settings import MAX_JOINTS
from .model import AnimatedModel

logger = logging.getLogger(__name__)

COMPONENT_DTYPES = {
    5120: np.int8,     # BYTE
    5121: np.uint8,    # UNSIGNED_BYTE
    5122: np.int16,    # SHORT
    5123: np.uint16,   # UNSIGNED_SHORT
    5125: np.uint32,   # UNSIGNED_INT
    5126: np.float32,  # FLOAT
}

COMPONENT_COUNTS = {
    'SCALAR': 1,
    'VEC2': 2,
    'VEC3': 3,
    'VEC4': 4,
    'MAT2': 4,
    'MAT3': 9,
    'MAT4': 16,
}

TARGET_PATHS = {
    "translation": AnimationTarget.TRANSLATION,
    "rotation": AnimationTarget.ROTATION,
    "scale": AnimationTarget.SCALE,
    "weights": AnimationTarget.WEIGHTS,
}


class GltfLoader:
    """
    Loads GLTF/GLB files and converts them to animation data.
    """

    def __init__(self, max_joints: int = MAX_JOINTS):
        """
        Initialize loader.

        Args:
            max_joints: Joint matrix capacity of the target renderer
        """
        self.max_joints = max_joints
        self._buffer_cache: Dict[int, bytes] = {}
        self._base_path: Optional[Path] = None

    def load(self, filepath: str) -> AnimatedModel:
        """
        Load a GLTF or GLB model.

        Args:
            filepath: Path to .gltf or .glb file

        Returns:
            AnimatedModel ready for playback

        Raises:
            FileNotFoundError: if the file does not exist
            MalformedTrackError: if keyframe data is invalid
            JointBudgetExceededError: if a skin has too many joints
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Model file not found: {filepath}")

        logger.info("Loading model: %s", filepath)
        gltf = pygltflib.GLTF2().load(str(filepath))
        return self.from_gltf(gltf, name=filepath.stem, base_path=filepath.parent)

    def from_gltf(self, gltf: pygltflib.GLTF2, name: str = "Model",
                  base_path: Optional[Path] = None) -> AnimatedModel:
        """
        Build an AnimatedModel from an already parsed GLTF2 object.

        Args:
            gltf: Parsed glTF document
            name: Model name for debugging
            base_path: Directory used to resolve relative buffer URIs
        """
        self._buffer_cache = {}
        self._base_path = base_path

        graph = self._load_scene_graph(gltf)
        skins = self._load_skins(gltf)
        clips = self._load_animations(gltf)

        model = AnimatedModel(graph, clips, skins, name=name, max_joints=self.max_joints)

        logger.info(
            "  Loaded %d nodes, %d animations, %d skins",
            len(graph), len(clips), len(skins),
        )
        return model

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _load_scene_graph(self, gltf: pygltflib.GLTF2) -> SceneGraph:
        """
        Build the node arena from glTF nodes.

        Nodes with a ``matrix`` are decomposed into TRS so they can be
        animated like any other node.
        """
        nodes = []
        for node_idx, gltf_node in enumerate(gltf.nodes or []):
            kwargs = dict(
                name=gltf_node.name if gltf_node.name else f"Node_{node_idx}",
                children=gltf_node.children or (),
                weights=gltf_node.weights or None,
                mesh=gltf_node.mesh,
                skin=gltf_node.skin,
            )
            if gltf_node.matrix is not None and len(gltf_node.matrix) == 16:
                # Column-major floats read row by row give the row-major form
                matrix = np.array(gltf_node.matrix, dtype='f4').reshape(4, 4)
                nodes.append(Node.from_matrix(node_idx, matrix, **kwargs))
            else:
                nodes.append(Node(
                    node_idx,
                    translation=gltf_node.translation,
                    rotation=gltf_node.rotation,
                    scale=gltf_node.scale,
                    **kwargs,
                ))

        roots = None
        if gltf.scenes:
            scene_idx = gltf.scene if gltf.scene is not None else 0
            roots = gltf.scenes[scene_idx].nodes

        return SceneGraph(nodes, roots=roots)

    # ------------------------------------------------------------------
    # Skins
    # ------------------------------------------------------------------

    def _load_skins(self, gltf: pygltflib.GLTF2) -> List[Skin]:
        """
        Load skins from GLTF.

        Returns:
            List of Skin objects in glTF skin order
        """
        skins = []

        for skin_idx, gltf_skin in enumerate(gltf.skins or []):
            skin_name = gltf_skin.name if gltf_skin.name else f"Skin_{skin_idx}"

            inverse_bind_matrices = None
            if gltf_skin.inverseBindMatrices is not None:
                data = self._get_accessor_data(gltf, gltf_skin.inverseBindMatrices)
                # Column-major MAT4 elements reshape straight into row-major form
                inverse_bind_matrices = data.reshape(-1, 4, 4)

            skin = Skin(
                name=skin_name,
                joints=gltf_skin.joints,
                inverse_bind_matrices=inverse_bind_matrices,
                skeleton=gltf_skin.skeleton,
                max_joints=self.max_joints,
            )
            skins.append(skin)

        return skins

    # ------------------------------------------------------------------
    # Animations
    # ------------------------------------------------------------------

    def _load_animations(self, gltf: pygltflib.GLTF2) -> List[AnimationClip]:
        """
        Load animations from GLTF.

        Returns:
            Clips in glTF animation order
        """
        clips = []

        for anim_idx, gltf_anim in enumerate(gltf.animations or []):
            anim_name = gltf_anim.name if gltf_anim.name else f"Animation_{anim_idx}"
            channels = []

            for channel in gltf_anim.channels:
                target_node_idx = channel.target.node
                target_path = channel.target.path

                if target_node_idx is None:
                    logger.warning("Animation '%s' has a channel without target node; skipped", anim_name)
                    continue

                target_property = TARGET_PATHS.get(target_path)
                if target_property is None:
                    logger.warning("Unknown animation target path '%s' in '%s'; skipped", target_path, anim_name)
                    continue

                sampler = gltf_anim.samplers[channel.sampler]
                track = self._load_track(gltf, sampler, target_property)
                channels.append(AnimationChannel(target_node_idx, target_property, track))

            clips.append(AnimationClip(anim_name, channels, index=anim_idx))

        return clips

    def _load_track(self, gltf: pygltflib.GLTF2, sampler, target_property: AnimationTarget) -> KeyframeTrack:
        interpolation = InterpolationType.from_gltf(sampler.interpolation)
        value_type = target_property.value_type

        times = self._get_accessor_data(gltf, sampler.input)
        values = self._get_accessor_data(gltf, sampler.output)

        if target_property == AnimationTarget.ROTATION:
            width = 4
        elif target_property in (AnimationTarget.TRANSLATION, AnimationTarget.SCALE):
            width = 3
        else:
            # Morph target weights - one per target
            per_key = 3 * len(times) if interpolation == InterpolationType.CUBICSPLINE else len(times)
            width = len(values) // per_key if per_key else 1

        if interpolation == InterpolationType.CUBICSPLINE:
            return KeyframeTrack.from_cubic_spline_output(times, values, value_type, width)

        if len(values) != len(times) * width:
            raise MalformedTrackError(
                f"Sampler output has {len(values)} components, expected {len(times) * width}"
            )
        return KeyframeTrack(times, values.reshape(-1, width), interpolation, value_type)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def _get_buffer_data(self, gltf: pygltflib.GLTF2, buffer_idx: int) -> bytes:
        if buffer_idx in self._buffer_cache:
            return self._buffer_cache[buffer_idx]

        buffer = gltf.buffers[buffer_idx]
        if buffer.uri:
            if buffer.uri.startswith("data:"):
                # Embedded base64 buffer
                data = gltf.get_data_from_buffer_uri(buffer.uri)
            else:
                # External buffer file
                base_path = self._base_path if self._base_path is not None else Path(".")
                data = (base_path / buffer.uri).read_bytes()
        else:
            # Embedded buffer (GLB)
            data = gltf.binary_blob()

        if data is None:
            raise MalformedTrackError(f"Buffer {buffer_idx} has no data")
        self._buffer_cache[buffer_idx] = data
        return data

    def _read_view(self, gltf: pygltflib.GLTF2, view_idx: int, byte_offset: int,
                   count: int, component_type: int, component_count: int) -> np.ndarray:
        """Read ``count`` elements from a buffer view, honoring its stride."""
        buffer_view = gltf.bufferViews[view_idx]
        buffer_data = self._get_buffer_data(gltf, buffer_view.buffer)

        dtype = np.dtype(COMPONENT_DTYPES[component_type])
        element_size = dtype.itemsize * component_count
        offset = (buffer_view.byteOffset or 0) + (byte_offset or 0)
        stride = buffer_view.byteStride or element_size

        if count == 0:
            return np.zeros((0, component_count), dtype=dtype)

        end_offset = offset + stride * (count - 1) + element_size
        if end_offset > len(buffer_data):
            raise MalformedTrackError(
                f"Accessor reads past the end of buffer view {view_idx} "
                f"({end_offset} > {len(buffer_data)} bytes)"
            )

        if stride == element_size:
            # Tightly packed
            raw = np.frombuffer(buffer_data, dtype=dtype, count=count * component_count, offset=offset)
            return raw.reshape(count, component_count)

        # Strided data
        rows = [
            np.frombuffer(buffer_data, dtype=dtype, count=component_count, offset=offset + i * stride)
            for i in range(count)
        ]
        return np.stack(rows)

    def _get_accessor_data(self, gltf: pygltflib.GLTF2, accessor_idx: int) -> np.ndarray:
        """
        Get data from an accessor.

        Handles strided views, accessors without a buffer view (zero-filled),
        sparse substitution and normalized integer components.

        Args:
            gltf: GLTF data
            accessor_idx: Accessor index

        Returns:
            Flat float32 numpy array
        """
        accessor = gltf.accessors[accessor_idx]
        component_count = COMPONENT_COUNTS[accessor.type]
        dtype = COMPONENT_DTYPES[accessor.componentType]

        if accessor.bufferView is None:
            array = np.zeros((accessor.count, component_count), dtype=dtype)
        else:
            array = self._read_view(
                gltf, accessor.bufferView, accessor.byteOffset,
                accessor.count, accessor.componentType, component_count,
            ).copy()

        sparse = accessor.sparse
        if sparse is not None and sparse.count:
            indices = self._read_view(
                gltf, sparse.indices.bufferView, sparse.indices.byteOffset,
                sparse.count, sparse.indices.componentType, 1,
            ).reshape(-1)
            substitutes = self._read_view(
                gltf, sparse.values.bufferView, sparse.values.byteOffset,
                sparse.count, accessor.componentType, component_count,
            )
            array[indices.astype(np.int64)] = substitutes

        result = array.astype('f4')
        if accessor.normalized and accessor.componentType != 5126:
            result = self._denormalize(result, accessor.componentType)

        return result.reshape(-1)

    @staticmethod
    def _denormalize(values: np.ndarray, component_type: int) -> np.ndarray:
        # glTF normalized integer decoding rules
        if component_type == 5120:
            return np.maximum(values / 127.0, -1.0).astype('f4')
        if component_type == 5121:
            return (values / 255.0).astype('f4')
        if component_type == 5122:
            return np.maximum(values / 32767.0, -1.0).astype('f4')
        if component_type == 5123:
            return (values / 65535.0).astype('f4')
        return values
