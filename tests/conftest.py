import numpy as np
import pytest

from euclidean_cluster.cloud import PointCloud


def make_plane(rng, n=200, extent=2.0, noise=0.005):
    xy = rng.uniform(-extent, extent, size=(n, 2))
    z = rng.uniform(-noise, noise, size=(n, 1))
    return np.hstack([xy, z])


def make_blob(rng, center, n=150, spread=0.05):
    return np.asarray(center, dtype=float) + rng.uniform(-spread, spread, size=(n, 3))


@pytest.fixture
def rng():
    return np.random.default_rng(7)


@pytest.fixture
def plane_and_blob(rng):
    """200 points on z=0 followed by 150 points around (1, 1, 1)."""
    plane = make_plane(rng)
    blob = make_blob(rng, (1.0, 1.0, 1.0))
    return PointCloud(np.vstack([plane, blob]), frame_id="sensor")


@pytest.fixture
def plane_and_two_blobs(rng):
    """400 points on z=0 followed by blobs of 150 and 120 points."""
    plane = make_plane(rng, n=400)
    blob_a = make_blob(rng, (1.0, 1.0, 1.0))
    blob_b = make_blob(rng, (-1.0, -1.0, 1.0), n=120)
    return PointCloud(np.vstack([plane, blob_a, blob_b]))
