"""Renders point clouds as a bird's-eye view image or a lidar range image."""

from __future__ import annotations

import numpy as np
from PIL import Image

_BEV_COLOR = (79, 143, 227)  # RGB
_BACKGROUND = 255


def _as_cloud(points) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 3:
        raise ValueError(f"points must have shape (N, 3), got {arr.shape}")
    if len(arr) == 0:
        raise ValueError("point cloud is empty")
    return arr[:, :3]


def bird_eye_image(points, resolution: float = 0.1, min_z: float = 0.2, max_z: float = 2.5) -> np.ndarray:
    """Top-down RGB image (rows along y, columns along x) of the points within a height band."""
    if resolution <= 0:
        raise ValueError("resolution must be positive")
    pts = _as_cloud(points)
    min_x, min_y = pts[:, 0].min(), pts[:, 1].min()
    max_x, max_y = pts[:, 0].max(), pts[:, 1].max()
    inv_r = 1.0 / resolution

    rows = int((max_y - min_y) * inv_r)
    cols = int((max_x - min_x) * inv_r)
    x_center = 0.5 * (max_x + min_x)
    y_center = 0.5 * (max_y + min_y)
    x_center_image = cols // 2
    y_center_image = rows // 2

    image = np.full((rows, cols, 3), _BACKGROUND, dtype=np.uint8)
    x = np.trunc((pts[:, 0] - x_center) * inv_r + x_center_image).astype(int)
    y = np.trunc((pts[:, 1] - y_center) * inv_r + y_center_image).astype(int)
    z = pts[:, 2]
    keep = (x >= 0) & (x < cols) & (y >= 0) & (y < rows) & (z >= min_z) & (z <= max_z)
    image[y[keep], x[keep]] = _BEV_COLOR
    return image


def _hsv_to_rgb(hsv: np.ndarray) -> np.ndarray:
    """8-bit HSV with hue in half-degrees to 8-bit RGB."""
    h = (hsv[..., 0].astype(float) * 6.0 / 180.0) % 6.0
    s = hsv[..., 1].astype(float) / 255.0
    v = hsv[..., 2].astype(float) / 255.0
    sector = np.floor(h).astype(int)
    f = h - sector
    p = v * (1.0 - s)
    q = v * (1.0 - s * f)
    t = v * (1.0 - s * (1.0 - f))
    choices_r = [v, q, p, p, t, v]
    choices_g = [t, v, v, q, p, p]
    choices_b = [p, p, t, v, v, q]
    r = np.choose(sector, choices_r)
    g = np.choose(sector, choices_g)
    b = np.choose(sector, choices_b)
    rgb = np.stack([r, g, b], axis=-1) * 255.0
    return np.clip(np.rint(rgb), 0, 255).astype(np.uint8)


def range_image(
    points,
    azimuth_resolution_deg: float = 0.3,
    elevation_rows: int = 16,
    elevation_range: float = 15.0,
    lidar_height: float = 1.128,
) -> np.ndarray:
    """RGB range image: columns by azimuth, rows by elevation with up at the top.

    Hue encodes horizontal range; unobserved pixels are black.
    """
    if azimuth_resolution_deg <= 0 or elevation_rows <= 0 or elevation_range <= 0:
        raise ValueError("resolutions, row count and elevation range must be positive")
    pts = _as_cloud(points)
    cols = int(360 / azimuth_resolution_deg)
    rows = int(elevation_rows)
    ele_resolution = elevation_range * 2 / elevation_rows

    hsv = np.zeros((rows, cols, 3), dtype=np.uint8)
    with np.errstate(divide="ignore", invalid="ignore"):
        azimuth = np.degrees(np.arctan2(pts[:, 1], pts[:, 0]))
        horizontal = np.hypot(pts[:, 0], pts[:, 1])
        elevation = np.degrees(np.arcsin((pts[:, 2] - lidar_height) / horizontal))
    azimuth = np.where(azimuth < 0, azimuth + 360, azimuth)

    valid = np.isfinite(elevation)
    x_f = np.trunc(azimuth / azimuth_resolution_deg)
    y_f = np.trunc((elevation + elevation_range) / ele_resolution + 0.5)
    valid &= np.isfinite(y_f)
    x = np.where(valid, x_f, -1).astype(int)
    y = np.where(valid, y_f, -1).astype(int)
    keep = valid & (x >= 0) & (x < cols) & (y >= 0) & (y < rows)

    idx = np.nonzero(keep)[0]
    if len(idx):
        # Later points overwrite earlier ones at the same pixel.
        flat = y[idx] * cols + x[idx]
        _, last_rev = np.unique(flat[::-1], return_index=True)
        chosen = idx[len(idx) - 1 - last_rev]
        hue = np.clip(np.trunc(horizontal[chosen] / 100 * 255.0), 0, 255).astype(np.uint8)
        hsv[y[chosen], x[chosen]] = np.stack(
            [hue, np.full_like(hue, 255), np.full_like(hue, 127)], axis=-1
        )

    return _hsv_to_rgb(hsv[::-1])


def save_image(image, path) -> None:
    """Write an RGB uint8 array to ``path``; the format follows the file extension."""
    Image.fromarray(np.asarray(image, dtype=np.uint8)).save(path)