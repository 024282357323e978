import numpy as np
import pytest

from autoslam.bfnn import bfnn_cloud, bfnn_cloud_mt, bfnn_cloud_mt_k, bfnn_point, bfnn_point_k

CLOUD = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 2.0, 0.0], [5.0, 5.0, 5.0]])


def test_bfnn_point_finds_nearest():
    assert bfnn_point(CLOUD, (0.9, 0.1, 0.0)) == 1
    assert bfnn_point(CLOUD, (4.0, 4.0, 4.0)) == 3


def test_bfnn_point_tie_takes_first():
    assert bfnn_point(CLOUD, (0.5, 0.0, 0.0)) == 0


def test_bfnn_point_uses_first_three_columns():
    wide = np.hstack([CLOUD, np.array([[9.0], [0.0], [0.0], [0.0]])])
    assert bfnn_point(wide, (0.0, 0.0, 0.0)) == 0


def test_bfnn_point_empty_cloud_raises():
    with pytest.raises(ValueError):
        bfnn_point(np.empty((0, 3)), (0.0, 0.0, 0.0))


def test_bfnn_point_k_sorted_by_distance():
    assert bfnn_point_k(CLOUD, (0.0, 0.0, 0.0), 3) == [0, 1, 2]
    assert bfnn_point_k(CLOUD, (5.0, 5.0, 5.0), 4) == [3, 2, 1, 0]


def test_bfnn_point_k_too_large_raises():
    with pytest.raises(ValueError):
        bfnn_point_k(CLOUD, (0.0, 0.0, 0.0), 5)


def test_bfnn_cloud_matches():
    query = np.array([[0.1, 1.9, 0.0], [1.2, 0.0, 0.0], [6.0, 6.0, 6.0]])
    assert bfnn_cloud(CLOUD, query) == [(2, 0), (1, 1), (3, 2)]


def test_bfnn_cloud_mt_equals_single_thread():
    rng = np.random.default_rng(3)
    ref = rng.uniform(-5, 5, size=(200, 3))
    query = rng.uniform(-5, 5, size=(100, 3))
    assert bfnn_cloud_mt(ref, query) == bfnn_cloud(ref, query)


def test_bfnn_cloud_mt_k_layout():
    rng = np.random.default_rng(4)
    ref = rng.uniform(-5, 5, size=(50, 3))
    query = rng.uniform(-5, 5, size=(20, 3))
    matches = bfnn_cloud_mt_k(ref, query, 5)
    assert len(matches) == 20 * 5
    nearest = bfnn_cloud(ref, query)
    for i in range(20):
        block = matches[i * 5:(i + 1) * 5]
        assert all(second == i for _, second in block)
        assert block[0] == nearest[i]
        assert [m for m, _ in block] == bfnn_point_k(ref, query[i], 5)


def test_bad_cloud_shape_raises():
    with pytest.raises(ValueError):
        bfnn_cloud(np.zeros((4, 2)), CLOUD)