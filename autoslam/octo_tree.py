"""An octree over a 3D point cloud with exact or approximate k-nearest search."""

from __future__ import annotations

import heapq
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np

from autoslam.bfnn import INVALID_ID

logger = logging.getLogger(__name__)


def _as_cloud(cloud) -> np.ndarray:
    arr = np.asarray(cloud, dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError(f"cloud must have shape (N, 3), got {arr.shape}")
    return arr[:, :3]


@dataclass(eq=False)
class Box3D:
    """Axis-aligned box given by its minimum and maximum corners."""

    min_corner: np.ndarray = field(default_factory=lambda: np.zeros(3))
    max_corner: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.min_corner = np.array(self.min_corner, dtype=float).reshape(3)
        self.max_corner = np.array(self.max_corner, dtype=float).reshape(3)

    def inside(self, pt) -> bool:
        """True if ``pt`` lies in the box, boundary included."""
        p = np.asarray(pt, dtype=float).reshape(-1)[:3]
        return bool(np.all(p >= self.min_corner) and np.all(p <= self.max_corner))

    def distance(self, pt) -> float:
        """Largest per-axis distance from ``pt`` to the box; zero inside."""
        p = np.asarray(pt, dtype=float).reshape(-1)[:3]
        below = self.min_corner - p
        above = p - self.max_corner
        return float(max(0.0, below.max(), above.max()))


@dataclass(eq=False)
class OctoTreeNode:
    id: int = -1
    point_idx: int = -1  # -1 means the node holds no point
    box: Box3D = field(default_factory=Box3D)
    children: list[OctoTreeNode] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


class OctoTree:
    """Splits the bounding box of a cloud into octants until each holds one point.

    In approximate mode an octant is searched only if its squared box distance
    is below ``alpha`` times the current worst squared distance.
    """

    def __init__(self):
        self.root: OctoTreeNode | None = None
        self.approximate = False
        self.alpha = 1.0
        self._cloud = np.empty((0, 3))
        self._nodes: dict[int, OctoTreeNode] = {}
        self._size = 0
        self._next_id = 0

    def build_tree(self, cloud) -> None:
        pts = _as_cloud(cloud)
        if len(pts) == 0:
            raise ValueError("cannot build a tree from an empty cloud")
        self.clear()
        self._cloud = pts.copy()

        self.root = self._new_node(Box3D(pts.min(axis=0), pts.max(axis=0)))
        stack = [(self.root, list(range(len(pts))))]
        while stack:
            node, indices = stack.pop()
            if not indices:
                continue
            sub = self._cloud[indices]
            if len(indices) == 1 or np.all(sub == sub[0]):
                # A single point, or points that cannot be separated by splitting.
                self._size += 1
                node.point_idx = indices[0]
                continue
            children_idx = self._expand_node(node, indices)
            stack.extend(reversed(list(zip(node.children, children_idx))))

    def _new_node(self, box: Box3D) -> OctoTreeNode:
        node = OctoTreeNode(id=self._next_id, box=box)
        self._next_id += 1
        self._nodes[node.id] = node
        return node

    def _expand_node(self, node: OctoTreeNode, indices: list[int]) -> list[list[int]]:
        lo, hi = node.box.min_corner, node.box.max_corner
        center = 0.5 * (lo + hi)
        for i in range(8):
            bits = [(i >> axis) & 1 for axis in range(3)]
            child_min = [center[a] if bits[a] else lo[a] for a in range(3)]
            child_max = [hi[a] if bits[a] else center[a] for a in range(3)]
            node.children.append(self._new_node(Box3D(child_min, child_max)))

        children_idx: list[list[int]] = [[] for _ in range(8)]
        for idx in indices:
            pt = self._cloud[idx]
            for i, child in enumerate(node.children):
                if child.box.inside(pt):
                    children_idx[i].append(idx)
                    break
        return children_idx

    def closest_points(self, pt, k: int = 5) -> list[int]:
        """Indices of the ``k`` nearest points to ``pt``, nearest first."""
        if k < 1 or k > self._size:
            raise ValueError(f"k must be between 1 and the tree size {self._size}, got {k}")
        query = np.asarray(pt, dtype=float).reshape(-1)[:3]
        heap: list[tuple[float, int, OctoTreeNode]] = []
        self._knn(query, self.root, heap, k)
        return [node.point_idx for _, _, node in sorted(heap, reverse=True)]

    def closest_points_mt(self, cloud, k: int = 5) -> list[tuple[int, int]]:
        """``k`` pairs (tree index, query index) per query point; missing ones use INVALID_ID."""
        pts = _as_cloud(cloud)
        if k < 1 or k > self._size:
            raise ValueError(f"k must be between 1 and the tree size {self._size}, got {k}")
        with ThreadPoolExecutor() as pool:
            results = list(pool.map(lambda q: self.closest_points(q, k), pts))
        matches = []
        for i, found in enumerate(results):
            matches.extend((found[j] if j < len(found) else INVALID_ID, i) for j in range(k))
        return matches

    def _knn(self, pt: np.ndarray, node: OctoTreeNode, heap: list, k: int) -> None:
        if node.is_leaf:
            if node.point_idx != -1:
                self._leaf_distance(pt, node, heap, k)
            return

        # Search the octant holding pt first, or the nearest one if pt is outside.
        first = -1
        min_dis = float("inf")
        for i, child in enumerate(node.children):
            if child.box.inside(pt):
                first = i
                break
            d = child.box.distance(pt)
            if d < min_dis:
                first, min_dis = i, d

        self._knn(pt, node.children[first], heap, k)
        for i, child in enumerate(node.children):
            if i != first and self._need_expand(pt, child, heap, k):
                self._knn(pt, child, heap, k)

    def _need_expand(self, pt: np.ndarray, node: OctoTreeNode, heap: list, k: int) -> bool:
        if len(heap) < k:
            return True
        d = node.box.distance(pt)
        worst = -heap[0][0]
        if self.approximate:
            return d * d < worst * self.alpha
        return d * d < worst

    def _leaf_distance(self, pt: np.ndarray, node: OctoTreeNode, heap: list, k: int) -> None:
        diff = pt - self._cloud[node.point_idx]
        dis2 = float(diff @ diff)
        entry = (-dis2, node.id, node)
        if len(heap) < k:
            heapq.heappush(heap, entry)
        elif dis2 < -heap[0][0]:
            heapq.heapreplace(heap, entry)

    def set_approximate(self, use_ann: bool = True, alpha: float = 0.1) -> None:
        self.approximate = use_ann
        self.alpha = alpha

    def __len__(self) -> int:
        """Number of leaves holding a point."""
        return self._size

    def clear(self) -> None:
        self._nodes = {}
        self.root = None
        self._size = 0
        self._next_id = 0