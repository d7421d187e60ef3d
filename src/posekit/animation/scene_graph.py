"""
Scene Graph

Read-only node hierarchy stored as an arena indexed by integer id.
"""

from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from pyrr import Matrix44

from .errors import SceneGraphError
from .transform_math import compose_trs, decompose_matrix, identity_quaternion, normalize_quaternion


class Node:
    """
    Single node in the scene hierarchy.

    Each node has:
    - Authored default translation/rotation/scale (bind pose)
    - Parent id back-reference and child ids
    - Optional mesh and skin bindings
    """

    def __init__(
        self,
        node_id: int,
        name: str = None,
        parent: Optional[int] = None,
        children: Sequence[int] = (),
        translation=None,
        rotation=None,
        scale=None,
        weights=None,
        mesh: Optional[int] = None,
        skin: Optional[int] = None,
    ):
        """
        Initialize a node.

        Args:
            node_id: Index of the node in its graph
            name: Node name (for debugging)
            parent: Parent node id (None for roots)
            children: Child node ids
            translation: Default translation (x, y, z)
            rotation: Default rotation quaternion (x, y, z, w)
            scale: Default scale (x, y, z)
            weights: Default morph target weights
            mesh: Mesh index rendered at this node
            skin: Skin index deforming the mesh
        """
        self.id = node_id
        self.name = name if name else f"Node_{node_id}"
        self.parent = parent
        self.children: List[int] = list(children)
        self.mesh = mesh
        self.skin = skin

        self.translation = np.array(translation if translation is not None else (0.0, 0.0, 0.0), dtype='f4')
        self.rotation = (normalize_quaternion(rotation) if rotation is not None
                         else identity_quaternion())
        self.scale = np.array(scale if scale is not None else (1.0, 1.0, 1.0), dtype='f4')
        self.weights = np.array(weights, dtype='f4') if weights is not None else None

    @classmethod
    def from_matrix(cls, node_id: int, matrix, **kwargs) -> 'Node':
        """Create a node whose default TRS is decomposed from a row-major matrix."""
        translation, rotation, scale = decompose_matrix(matrix)
        return cls(node_id, translation=translation, rotation=rotation, scale=scale, **kwargs)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def local_matrix(self) -> Matrix44:
        """Authored local transform (no animation applied)."""
        return compose_trs(self.translation, self.rotation, self.scale)

    def __repr__(self):
        return f"Node(id={self.id}, name='{self.name}', parent={self.parent}, children={len(self.children)})"


class SceneGraph:
    """
    Arena of nodes forming a forest.

    Parent links are derived from children lists and validated once on
    construction: every id in range, no node with two parents, no cycles.
    """

    def __init__(self, nodes: Iterable[Node], roots: Optional[Sequence[int]] = None):
        """
        Initialize and validate the graph.

        Args:
            nodes: Nodes whose ids are 0..N-1
            roots: Root node ids to traverse (default: every parentless node)

        Raises:
            SceneGraphError: if the hierarchy is not a valid forest
        """
        self.nodes: List[Node] = sorted(nodes, key=lambda node: node.id)
        for index, node in enumerate(self.nodes):
            if node.id != index:
                raise SceneGraphError(f"Node ids must be contiguous from 0, found {node.id} at {index}")

        self._link_parents()
        self._check_acyclic()

        if roots is None:
            roots = [node.id for node in self.nodes if node.parent is None]
        for root in roots:
            if not self.contains(root):
                raise SceneGraphError(f"Scene root {root} is not a node")
            if self.nodes[root].parent is not None:
                raise SceneGraphError(f"Scene root {root} has parent {self.nodes[root].parent}")
        self.roots: List[int] = list(roots)

        self.node_by_name: Dict[str, Node] = {}
        for node in self.nodes:
            self.node_by_name.setdefault(node.name, node)

    def _link_parents(self):
        for node in self.nodes:
            node.parent = None
        for node in self.nodes:
            for child in node.children:
                if not self.contains(child):
                    raise SceneGraphError(f"Node {node.id} references missing child {child}")
                child_node = self.nodes[child]
                if child_node.parent is not None:
                    raise SceneGraphError(
                        f"Node {child} has two parents ({child_node.parent} and {node.id})"
                    )
                child_node.parent = node.id

    def _check_acyclic(self):
        # With single parents, a cycle is a chain that never reaches a root.
        # Each node is walked once; chains stop at nodes already known to reach one.
        reaches_root = [False] * len(self.nodes)
        for node in self.nodes:
            path = []
            on_path = set()
            current = node.id
            while current is not None and not reaches_root[current]:
                if current in on_path:
                    raise SceneGraphError(f"Node {current} is part of a parent cycle")
                path.append(current)
                on_path.add(current)
                current = self.nodes[current].parent
            for node_id in path:
                reaches_root[node_id] = True

    def __len__(self):
        return len(self.nodes)

    def __getitem__(self, node_id: int) -> Node:
        return self.nodes[node_id]

    def __iter__(self):
        return iter(self.nodes)

    def contains(self, node_id) -> bool:
        return isinstance(node_id, (int, np.integer)) and 0 <= node_id < len(self.nodes)

    def get_node(self, name: str) -> Optional[Node]:
        """
        Find a node by name.

        Args:
            name: Node name

        Returns:
            Node if found, None otherwise
        """
        return self.node_by_name.get(name)

    def depth_first(self, roots: Optional[Sequence[int]] = None) -> List[int]:
        """Node ids in depth-first order from the roots, parents before children."""
        order = []
        stack = list(reversed(self.roots if roots is None else roots))
        while stack:
            node_id = stack.pop()
            order.append(node_id)
            stack.extend(reversed(self.nodes[node_id].children))
        return order

    @classmethod
    def from_parents(cls, parents: Sequence[Optional[int]], names: Sequence[str] = None) -> 'SceneGraph':
        """Build a graph with default transforms from a parent-id list."""
        children: Dict[int, List[int]] = {i: [] for i in range(len(parents))}
        for node_id, parent in enumerate(parents):
            if parent is not None:
                if parent not in children:
                    raise SceneGraphError(f"Node {node_id} references missing parent {parent}")
                children[parent].append(node_id)
        nodes = [
            Node(i, name=names[i] if names else None, children=children[i])
            for i in range(len(parents))
        ]
        return cls(nodes)

    def __repr__(self):
        return f"SceneGraph(nodes={len(self.nodes)}, roots={len(self.roots)})"
