"""Grid-based approximate nearest-neighbour search in 2D or 3D cells."""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from enum import Enum, auto

import numpy as np

from autoslam.bfnn import INVALID_ID, bfnn_point

logger = logging.getLogger(__name__)


class NearbyType(Enum):
    CENTER = auto()  # only the cell itself
    NEARBY4 = auto()  # 2D: plus left, right, up, down
    NEARBY8 = auto()  # 2D: plus the four corners
    NEARBY6 = auto()  # 3D: plus the six face neighbours


_NEARBY_2D = {
    NearbyType.CENTER: ((0, 0),),
    NearbyType.NEARBY4: ((0, 0), (-1, 0), (1, 0), (0, 1), (0, -1)),
    NearbyType.NEARBY8: ((0, 0), (-1, 0), (1, 0), (0, 1), (0, -1), (-1, -1), (-1, 1), (1, -1), (1, 1)),
}

_NEARBY_3D = {
    NearbyType.CENTER: ((0, 0, 0),),
    NearbyType.NEARBY6: ((0, 0, 0), (-1, 0, 0), (1, 0, 0), (0, 1, 0), (0, -1, 0), (0, 0, -1), (0, 0, 1)),
}


def _as_cloud(cloud) -> np.ndarray:
    arr = np.asarray(cloud, dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError(f"cloud must have shape (N, 3), got {arr.shape}")
    return arr[:, :3]


class GridNN:
    """Buckets a cloud into integer cells and searches the cells around a query.

    Cell keys are the point coordinates rounded half away from zero, so every
    cell is one unit wide; ``resolution`` is kept only as a setting.
    """

    def __init__(self, resolution: float = 0.1, nearby_type: NearbyType = NearbyType.NEARBY4, dim: int = 2):
        if dim not in (2, 3):
            raise ValueError(f"grid dimension must be 2 or 3, got {dim}")
        self.dim = dim
        self.resolution = resolution
        self.inv_resolution = 1.0 / resolution

        if dim == 2 and nearby_type is NearbyType.NEARBY6:
            logger.info("2D grid does not support nearby6, using nearby4 instead.")
            nearby_type = NearbyType.NEARBY4
        elif dim == 3 and nearby_type not in (NearbyType.NEARBY6, NearbyType.CENTER):
            logger.info("3D grid does not support nearby4/8, using nearby6 instead.")
            nearby_type = NearbyType.NEARBY6
        self.nearby_type = nearby_type

        table = _NEARBY_2D if dim == 2 else _NEARBY_3D
        self._nearby = table[nearby_type]
        self._grids: dict[tuple[int, ...], list[int]] = {}
        self._cloud = np.empty((0, 3))

    def _key(self, pt) -> tuple[int, ...]:
        coords = np.asarray(pt, dtype=float).reshape(-1)[: self.dim]
        rounded = np.sign(coords) * np.floor(np.abs(coords) + 0.5)
        return tuple(int(c) for c in rounded)

    def set_point_cloud(self, cloud) -> None:
        """Index ``cloud`` into grid cells, replacing any earlier cloud."""
        pts = _as_cloud(cloud)
        grids: defaultdict[tuple[int, ...], list[int]] = defaultdict(list)
        for idx, pt in enumerate(pts):
            grids[self._key(pt)].append(idx)
        self._grids = dict(grids)
        self._cloud = pts.copy()
        logger.info("grids: %d", len(self._grids))

    def closest_point(self, pt) -> tuple[np.ndarray, int] | None:
        """Closest indexed point among the cells near ``pt`` as (point, index), or None."""
        key = self._key(pt)
        candidates = [
            idx
            for delta in self._nearby
            for idx in self._grids.get(tuple(k + d for k, d in zip(key, delta)), ())
        ]
        if not candidates:
            return None
        local = bfnn_point(self._cloud[candidates], pt)
        idx = candidates[local]
        return self._cloud[idx].copy(), idx

    def closest_points_for_cloud(self, query) -> list[tuple[int, int]]:
        """Matches (cloud index, query index) for the query points that found a neighbour."""
        matches = []
        for i, q in enumerate(_as_cloud(query)):
            found = self.closest_point(q)
            if found is not None:
                matches.append((found[1], i))
        return matches

    def closest_points_for_cloud_mt(self, query) -> list[tuple[int, int]]:
        """One match per query point, in parallel; misses are (INVALID_ID, INVALID_ID)."""
        pts = _as_cloud(query)

        def search(i: int) -> tuple[int, int]:
            found = self.closest_point(pts[i])
            if found is None:
                return (INVALID_ID, INVALID_ID)
            return (found[1], i)

        with ThreadPoolExecutor() as pool:
            return list(pool.map(search, range(len(pts))))