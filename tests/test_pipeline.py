import numpy as np
import pytest

from euclidean_cluster.cloud import PointCloud
from euclidean_cluster.labeling import DEFAULT_COLOR, UNCLUSTERED_LABEL
from euclidean_cluster.pipeline import (
    PipelineParams,
    run_frame_pipeline,
    run_sequence_pipeline,
)
from euclidean_cluster.ransac import InsufficientDataError, fit_plane_least_squares, segment_plane

from conftest import make_blob, make_plane


@pytest.fixture
def params():
    return PipelineParams(seed=0)


def test_plane_and_blob(plane_and_blob, params):
    result = run_frame_pipeline(plane_and_blob, params)

    assert 190 <= len(result.plane_indices) <= 200
    assert np.all(result.plane_indices < 200)
    assert result.num_clusters == 1

    cluster = result.clusters[0]
    assert cluster.size == 150
    np.testing.assert_array_equal(result.outlier_indices[cluster.indices], np.arange(200, 350))
    np.testing.assert_allclose(result.centroid_cloud.points[0], [1.0, 1.0, 1.0], atol=0.02)
    np.testing.assert_allclose(
        cluster.centroid, result.labeled_cloud.points[cluster.indices].mean(axis=0)
    )


def test_two_blobs_give_two_clusters(plane_and_two_blobs, params):
    result = run_frame_pipeline(plane_and_two_blobs, params)

    assert result.num_clusters == 2
    first, second = result.clusters
    assert (first.label, second.label) == (1, 2)
    assert first.color != second.color
    np.testing.assert_array_equal(result.outlier_indices[first.indices], np.arange(400, 550))
    np.testing.assert_array_equal(result.outlier_indices[second.indices], np.arange(550, 670))
    assert np.all(result.plane_indices < 400)
    np.testing.assert_allclose(result.centroid_cloud.points[1], [-1.0, -1.0, 1.0], atol=0.02)


def test_small_blob_is_not_a_cluster(rng, params):
    points = np.vstack([make_plane(rng), make_blob(rng, (1.0, 1.0, 1.0), n=50)])
    result = run_frame_pipeline(PointCloud(points), params)

    assert result.num_clusters == 0
    assert len(result.centroid_cloud) == 0
    assert len(result.labeled_cloud) == len(result.outlier_indices) >= 50
    assert set(range(200, 250)) <= set(result.outlier_indices.tolist())
    assert np.all(result.labeled_cloud.colors == DEFAULT_COLOR)
    assert np.all(result.point_labels == UNCLUSTERED_LABEL)
    assert result.rejected_count >= 1


def test_empty_cloud_raises(params):
    with pytest.raises(InsufficientDataError):
        run_frame_pipeline(PointCloud(np.zeros((0, 3))), params)
    with pytest.raises(InsufficientDataError):
        run_frame_pipeline(PointCloud(np.zeros((2, 3))), params)


def test_outputs_are_tagged_world(plane_and_blob, params):
    result = run_frame_pipeline(plane_and_blob, params)
    assert result.source_frame_id == "sensor"
    assert result.labeled_cloud.frame_id == "world"
    assert result.centroid_cloud.frame_id == "world"


def test_labeled_cloud_covers_outliers(plane_and_two_blobs, params):
    result = run_frame_pipeline(plane_and_two_blobs, params)

    assert len(np.intersect1d(result.plane_indices, result.outlier_indices)) == 0
    assert len(result.plane_indices) + len(result.outlier_indices) == len(plane_and_two_blobs)
    np.testing.assert_array_equal(
        result.labeled_cloud.points, plane_and_two_blobs.points[result.outlier_indices]
    )
    for cluster in result.clusters:
        assert np.all(result.labeled_cloud.colors[cluster.indices] == cluster.color)
        assert np.all(result.point_labels[cluster.indices] == cluster.label)
    assert result.noise_count == len(result.outlier_indices) - sum(result.cluster_sizes)


def test_centroid_cloud_matches_clusters(plane_and_two_blobs, params):
    result = run_frame_pipeline(plane_and_two_blobs, params)

    assert len(result.centroid_cloud) == result.num_clusters == 2
    for row, cluster in zip(result.centroid_cloud.points, result.clusters):
        np.testing.assert_allclose(row, cluster.centroid)
        np.testing.assert_allclose(row, result.labeled_cloud.points[cluster.indices].mean(axis=0))


def test_plane_refit_applied(plane_and_blob, params):
    result = run_frame_pipeline(plane_and_blob, params)

    expected = fit_plane_least_squares(result.plane_cloud.points).oriented()
    np.testing.assert_allclose(result.plane_model.normal, expected.normal, atol=1e-12)
    assert result.plane_model.d == pytest.approx(expected.d, abs=1e-12)


def test_plane_refit_disabled_keeps_sampled_model(plane_and_blob):
    params = PipelineParams(seed=0, optimize_plane_coefficients=False)
    result = run_frame_pipeline(plane_and_blob, params)

    raw, inliers = segment_plane(
        plane_and_blob.points, optimize_coefficients=False, rng=np.random.default_rng(0)
    )
    np.testing.assert_array_equal(result.plane_indices, inliers)
    np.testing.assert_array_equal(result.plane_model.normal, raw.normal)
    assert result.plane_model.d == raw.d
    # The sampled model passes exactly through its three sample points
    assert np.sum(raw.distance_to_points(plane_and_blob.points) < 1e-9) >= 3

    refit = fit_plane_least_squares(result.plane_cloud.points).oriented()
    assert not np.allclose(result.plane_model.normal, refit.normal, atol=1e-9)


def test_no_plane_passes_cloud_through(params):
    line = np.column_stack([np.linspace(0, 1.5, 150), np.zeros(150), np.zeros(150)])
    result = run_frame_pipeline(PointCloud(line), params)

    assert result.plane_model is None
    assert len(result.plane_indices) == 0
    assert len(result.labeled_cloud) == 150
    assert result.num_clusters == 1


def test_same_seed_same_result(plane_and_two_blobs):
    params = PipelineParams(seed=11)
    a = run_frame_pipeline(plane_and_two_blobs, params)
    b = run_frame_pipeline(plane_and_two_blobs, params)
    np.testing.assert_array_equal(a.plane_indices, b.plane_indices)
    np.testing.assert_array_equal(a.centroid_cloud.points, b.centroid_cloud.points)
    assert [c.indices.tolist() for c in a.clusters] == [c.indices.tolist() for c in b.clusters]


def test_default_params():
    params = PipelineParams()
    assert params.plane_distance_threshold == 0.04
    assert params.ransac_max_iterations == 100
    assert params.optimize_plane_coefficients is True
    assert params.cluster_tolerance == 0.30
    assert params.min_cluster_size == 100
    assert params.max_cluster_size == 25000


def test_params_from_option_names():
    params = PipelineParams.from_dict({
        "planeDistanceThreshold": 0.1,
        "minClusterSize": 5,
        "max_cluster_size": 50,
        "seed": 3,
    })
    assert params.plane_distance_threshold == 0.1
    assert params.min_cluster_size == 5
    assert params.max_cluster_size == 50
    assert params.to_dict()["seed"] == 3


def test_invalid_params():
    with pytest.raises(ValueError):
        PipelineParams.from_dict({"voxelSize": 0.1})
    with pytest.raises(ValueError):
        PipelineParams(cluster_tolerance=0)
    with pytest.raises(ValueError):
        PipelineParams(min_cluster_size=10, max_cluster_size=5)
    with pytest.raises(ValueError):
        PipelineParams(ransac_max_iterations=0)


def test_sequence_skips_small_frames(plane_and_blob, params):
    skipped = []
    progress = []
    frames = [plane_and_blob, PointCloud(np.zeros((0, 3))), plane_and_blob]

    results = run_sequence_pipeline(
        frames,
        params,
        progress_callback=lambda i, n: progress.append((i, n)),
        skip_callback=lambda i, exc: skipped.append((i, type(exc))),
    )

    assert [r.frame_index for r in results] == [0, 2]
    assert skipped == [(1, InsufficientDataError)]
    assert progress[-1] == (3, 3)
    # Frames are independent: the same input gives the same output
    np.testing.assert_array_equal(results[0].centroid_cloud.points, results[1].centroid_cloud.points)


def test_empty_sequence(params):
    assert run_sequence_pipeline([], params) == []
