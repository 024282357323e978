"""A k-d tree over a 3D point cloud with exact or approximate k-nearest search."""

from __future__ import annotations

import heapq
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from autoslam.bfnn import INVALID_ID

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class KdTreeNode:
    id: int = -1
    point_idx: int = 0
    axis_index: int = 0
    split_thresh: float = 0.0
    left: KdTreeNode | None = None
    right: KdTreeNode | None = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None


def _as_cloud(cloud) -> np.ndarray:
    arr = np.asarray(cloud, dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError(f"cloud must have shape (N, 3), got {arr.shape}")
    return arr[:, :3]


class KdTree:
    """Binary space-partitioning tree split at the mean of the widest axis.

    Approximate search is on by default: a far subtree is searched only if its
    squared splitting distance is below ``alpha`` times the current worst.
    """

    def __init__(self):
        self.root: KdTreeNode | None = None
        self.approximate = True
        self.alpha = 0.1
        self._cloud = np.empty((0, 3))
        self._nodes: dict[int, KdTreeNode] = {}
        self._size = 0
        self._next_id = 0

    def build_tree(self, cloud) -> None:
        pts = _as_cloud(cloud)
        if len(pts) == 0:
            raise ValueError("cannot build a tree from an empty cloud")
        self.clear()
        self._cloud = pts.copy()

        self.root = KdTreeNode()
        stack = [(self.root, list(range(len(pts))))]
        while stack:
            node, indices = stack.pop()
            node.id = self._next_id
            self._next_id += 1
            self._nodes[node.id] = node

            if len(indices) == 1:
                self._size += 1
                node.point_idx = indices[0]
                continue

            axis, thresh, left, right = self._find_split(indices)
            node.axis_index, node.split_thresh = axis, thresh
            if not left or not right:
                # All points coincide on the split axis: keep a single leaf.
                self._size += 1
                node.point_idx = indices[0]
                continue

            node.left = KdTreeNode()
            node.right = KdTreeNode()
            stack.append((node.right, right))
            stack.append((node.left, left))

    def _find_split(self, indices: list[int]) -> tuple[int, float, list[int], list[int]]:
        sub = self._cloud[indices]
        mean = sub.mean(axis=0)
        var = sub.var(axis=0)
        axis = int(np.argmax(var))
        thresh = float(mean[axis])
        left = [idx for idx, v in zip(indices, sub[:, axis]) if v < thresh]
        right = [idx for idx, v in zip(indices, sub[:, axis]) if not v < thresh]
        return axis, thresh, left, right

    def closest_points(self, pt, k: int = 5) -> list[int]:
        """Indices of the ``k`` nearest points to ``pt``, nearest first."""
        if k < 1 or k > self._size:
            raise ValueError(f"k must be between 1 and the tree size {self._size}, got {k}")
        query = np.asarray(pt, dtype=float).reshape(-1)[:3]
        heap: list[tuple[float, int, KdTreeNode]] = []
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

    def _knn(self, pt: np.ndarray, node: KdTreeNode, heap: list, k: int) -> None:
        if node.is_leaf:
            self._leaf_distance(pt, node, heap, k)
            return
        if pt[node.axis_index] < node.split_thresh:
            this_side, that_side = node.left, node.right
        else:
            this_side, that_side = node.right, node.left
        self._knn(pt, this_side, heap, k)
        if self._need_expand(pt, node, heap, k):
            self._knn(pt, that_side, heap, k)

    def _need_expand(self, pt: np.ndarray, node: KdTreeNode, heap: list, k: int) -> bool:
        if len(heap) < k:
            return True
        d = pt[node.axis_index] - node.split_thresh
        worst = -heap[0][0]
        if self.approximate:
            return d * d < worst * self.alpha
        return d * d < worst

    def _leaf_distance(self, pt: np.ndarray, node: KdTreeNode, heap: list, k: int) -> None:
        diff = pt - self._cloud[node.point_idx]
        dis2 = float(diff @ diff)
        entry = (-dis2, node.id, node)
        if len(heap) < k:
            heapq.heappush(heap, entry)
        elif dis2 < -heap[0][0]:
            heapq.heapreplace(heap, entry)

    def set_enable_ann(self, use_ann: bool = True, alpha: float = 0.1) -> None:
        self.approximate = use_ann
        self.alpha = alpha

    def __len__(self) -> int:
        """Number of leaves."""
        return self._size

    def clear(self) -> None:
        self._nodes = {}
        self.root = None
        self._size = 0
        self._next_id = 0

    def describe(self) -> list[str]:
        """One line per node, ordered by node id."""
        lines = []
        for node_id in sorted(self._nodes):
            node = self._nodes[node_id]
            if node.is_leaf:
                lines.append(f"leaf node: {node.id}, idx: {node.point_idx}")
            else:
                lines.append(f"node: {node.id}, axis: {node.axis_index}, th: {node.split_thresh:g}")
        for line in lines:
            logger.info(line)
        return lines