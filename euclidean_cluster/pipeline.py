import logging
import time
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Callable, Iterable, List, Mapping, Optional

import numpy as np

from euclidean_cluster.cloud import PointCloud, OUTPUT_FRAME_ID
from euclidean_cluster.kdtree import KDTree
from euclidean_cluster.ransac import segment_plane, PlaneModel, InsufficientDataError
from euclidean_cluster.clustering import euclidean_cluster
from euclidean_cluster.labeling import (
    Cluster,
    DEFAULT_COLOR,
    UNCLUSTERED_LABEL,
    build_clusters,
    compute_centroids,
)

logger = logging.getLogger(__name__)

# camelCase option names accepted by PipelineParams.from_dict
_OPTION_ALIASES = {
    "planeDistanceThreshold": "plane_distance_threshold",
    "ransacMaxIterations": "ransac_max_iterations",
    "optimizePlaneCoefficients": "optimize_plane_coefficients",
    "clusterTolerance": "cluster_tolerance",
    "minClusterSize": "min_cluster_size",
    "maxClusterSize": "max_cluster_size",
    "leafSize": "leaf_size",
}


@dataclass
class PipelineParams:
    """Parameters for the plane removal and clustering pipeline."""
    # RANSAC
    plane_distance_threshold: float = 0.04
    ransac_max_iterations: int = 100
    optimize_plane_coefficients: bool = True
    seed: Optional[int] = None
    # Clustering
    cluster_tolerance: float = 0.30
    min_cluster_size: int = 100
    max_cluster_size: int = 25000
    leaf_size: int = 16

    def __post_init__(self):
        if self.plane_distance_threshold < 0:
            raise ValueError(f"plane_distance_threshold must be >= 0, got {self.plane_distance_threshold}")
        if self.ransac_max_iterations < 1:
            raise ValueError(f"ransac_max_iterations must be >= 1, got {self.ransac_max_iterations}")
        if self.cluster_tolerance <= 0:
            raise ValueError(f"cluster_tolerance must be > 0, got {self.cluster_tolerance}")
        if self.min_cluster_size < 1:
            raise ValueError(f"min_cluster_size must be >= 1, got {self.min_cluster_size}")
        if self.max_cluster_size < self.min_cluster_size:
            raise ValueError(
                f"max_cluster_size ({self.max_cluster_size}) < min_cluster_size ({self.min_cluster_size})"
            )
        if self.leaf_size < 1:
            raise ValueError(f"leaf_size must be >= 1, got {self.leaf_size}")

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "PipelineParams":
        """
        Build params from a mapping of snake_case field names or camelCase option names.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown pipeline option: {key}")
            kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class FrameResult:
    """Result of processing a single frame."""
    # Outputs
    labeled_cloud: PointCloud
    centroid_cloud: PointCloud

    # Plane segmentation
    plane_model: Optional[PlaneModel]
    plane_indices: np.ndarray
    plane_cloud: PointCloud
    outlier_indices: np.ndarray

    # Clustering
    clusters: List[Cluster]
    point_labels: np.ndarray
    rejected_count: int

    source_frame_id: str
    frame_index: int = 0
    elapsed_ms: float = 0.0
    cluster_sizes: List[int] = field(init=False)

    def __post_init__(self):
        self.cluster_sizes = [c.size for c in self.clusters]

    @property
    def num_clusters(self) -> int:
        return len(self.clusters)

    @property
    def noise_count(self) -> int:
        return int((self.point_labels == UNCLUSTERED_LABEL).sum())


def run_frame_pipeline(
    cloud: PointCloud,
    params: PipelineParams,
    frame_index: int = 0,
) -> FrameResult:
    """
    Run plane removal and clustering on a single frame.

    Raises InsufficientDataError for clouds with fewer than 3 points.
    """
    start = time.perf_counter()

    # Plane segmentation
    rng = np.random.default_rng(params.seed)
    plane, plane_indices = segment_plane(
        cloud.points,
        distance_threshold=params.plane_distance_threshold,
        max_iterations=params.ransac_max_iterations,
        optimize_coefficients=params.optimize_plane_coefficients,
        rng=rng,
    )
    outlier_mask = np.ones(len(cloud), dtype=bool)
    outlier_mask[plane_indices] = False
    outlier_indices = np.flatnonzero(outlier_mask)
    outliers = cloud.select(outlier_indices)

    # Clustering
    tree = KDTree(outliers.points, leaf_size=params.leaf_size)
    cluster_result = euclidean_cluster(
        outliers.points,
        index=tree,
        tolerance=params.cluster_tolerance,
        min_cluster_size=params.min_cluster_size,
        max_cluster_size=params.max_cluster_size,
    )
    centroids = compute_centroids(outliers.points, cluster_result.clusters)
    clusters = build_clusters(cluster_result.clusters, centroids)

    # Outputs
    colors = np.tile(np.asarray(DEFAULT_COLOR, dtype=np.uint8), (len(outliers), 1))
    point_labels = np.full(len(outliers), UNCLUSTERED_LABEL, dtype=int)
    for cluster in clusters:
        colors[cluster.indices] = cluster.color
        point_labels[cluster.indices] = cluster.label

    labeled_cloud = PointCloud(outliers.points, colors, frame_id=OUTPUT_FRAME_ID)
    centroid_cloud = PointCloud(centroids, frame_id=OUTPUT_FRAME_ID)

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    logger.info(
        "Frame %d: %d points, %d plane inliers, %d outliers, %d clusters (%d rejected) in %.1f ms",
        frame_index, len(cloud), len(plane_indices), len(outliers),
        len(clusters), cluster_result.rejected_count, elapsed_ms,
    )

    return FrameResult(
        labeled_cloud=labeled_cloud,
        centroid_cloud=centroid_cloud,
        plane_model=plane,
        plane_indices=plane_indices,
        plane_cloud=cloud.select(plane_indices),
        outlier_indices=outlier_indices,
        clusters=clusters,
        point_labels=point_labels,
        rejected_count=cluster_result.rejected_count,
        source_frame_id=cloud.frame_id,
        frame_index=frame_index,
        elapsed_ms=elapsed_ms,
    )


def run_sequence_pipeline(
    frames: Iterable[PointCloud],
    params: PipelineParams,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    skip_callback: Optional[Callable[[int, Exception], None]] = None,
) -> List[FrameResult]:
    """
    Process frames one after another. Frames too small to segment are skipped
    and reported through skip_callback.
    """
    frames = list(frames)
    if not frames:
        return []

    results = []

    for i, cloud in enumerate(frames):
        if progress_callback:
            progress_callback(i, len(frames))

        try:
            result = run_frame_pipeline(cloud, params, frame_index=i)
        except InsufficientDataError as exc:
            logger.warning("Skipping frame %d: %s", i, exc)
            if skip_callback:
                skip_callback(i, exc)
            continue

        results.append(result)

    if progress_callback:
        progress_callback(len(frames), len(frames))

    return results
