"""Brute-force nearest-neighbour search over point clouds.

A cloud is any array-like of shape (N, 3) or wider; only the first three
columns (x, y, z) are used.  Matches are ``(index_in_reference, index_in_query)``
pairs.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import numpy as np

INVALID_ID = -1


def _as_cloud(cloud) -> np.ndarray:
    arr = np.asarray(cloud, dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError(f"cloud must have shape (N, 3), got {arr.shape}")
    return arr[:, :3]


def _squared_distances(points: np.ndarray, point) -> np.ndarray:
    diff = points - np.asarray(point, dtype=float).reshape(-1)[:3]
    return np.einsum("ij,ij->i", diff, diff)


def _parallel_map(func, items) -> list:
    with ThreadPoolExecutor() as pool:
        return list(pool.map(func, items))


def bfnn_point(cloud, point) -> int:
    """Index of the point in ``cloud`` closest to ``point``; the first one wins ties."""
    pts = _as_cloud(cloud)
    if len(pts) == 0:
        raise ValueError("cloud is empty")
    return int(np.argmin(_squared_distances(pts, point)))


def bfnn_point_k(cloud, point, k: int = 5) -> list[int]:
    """Indices of the ``k`` points closest to ``point``, nearest first."""
    pts = _as_cloud(cloud)
    if k < 0 or k > len(pts):
        raise ValueError(f"k must be between 0 and the cloud size {len(pts)}, got {k}")
    order = np.argsort(_squared_distances(pts, point), kind="stable")
    return [int(i) for i in order[:k]]


def bfnn_cloud(cloud1, cloud2) -> list[tuple[int, int]]:
    """Nearest point of ``cloud1`` for every point of ``cloud2``, single-threaded."""
    ref = _as_cloud(cloud1)
    query = _as_cloud(cloud2)
    return [(bfnn_point(ref, q), i) for i, q in enumerate(query)]


def bfnn_cloud_mt(cloud1, cloud2) -> list[tuple[int, int]]:
    """Same as :func:`bfnn_cloud`, searching the query points in parallel."""
    ref = _as_cloud(cloud1)
    query = _as_cloud(cloud2)
    nearest = _parallel_map(lambda q: bfnn_point(ref, q), query)
    return list(zip(nearest, range(len(query))))


def bfnn_cloud_mt_k(cloud1, cloud2, k: int = 5) -> list[tuple[int, int]]:
    """``k`` nearest points of ``cloud1`` for every point of ``cloud2``.

    The result holds ``k`` consecutive pairs per query point, nearest first.
    """
    ref = _as_cloud(cloud1)
    query = _as_cloud(cloud2)
    results = _parallel_map(lambda q: bfnn_point_k(ref, q, k), query)
    return [(m, i) for i, found in enumerate(results) for m in found]