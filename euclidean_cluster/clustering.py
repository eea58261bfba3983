import logging
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional

from euclidean_cluster.kdtree import KDTree

logger = logging.getLogger(__name__)


@dataclass
class ClusterResult:
    # Sorted member indices per accepted cluster, in emission order
    clusters: List[np.ndarray]
    # Per point: position of its cluster in `clusters`, or -1
    labels: np.ndarray
    rejected_count: int = 0
    cluster_sizes: List[int] = field(init=False)

    def __post_init__(self):
        self.cluster_sizes = [len(c) for c in self.clusters]

    @property
    def num_clusters(self) -> int:
        return len(self.clusters)

    @property
    def noise_count(self) -> int:
        return int((self.labels == -1).sum())


def euclidean_cluster(
    points: np.ndarray,
    index: Optional[KDTree] = None,
    tolerance: float = 0.3,
    min_cluster_size: int = 100,
    max_cluster_size: int = 25000,
) -> ClusterResult:
    """
    Euclidean cluster extraction by flood fill over radius neighbourhoods.

    Seeds are taken in point order. Every point reached from a seed through a
    chain of neighbours at most `tolerance` apart joins its candidate; candidates
    whose size falls outside [min_cluster_size, max_cluster_size] are dropped
    and their points are not revisited.
    """
    if tolerance <= 0:
        raise ValueError(f"tolerance must be positive, got {tolerance}")
    if min_cluster_size < 1:
        raise ValueError(f"min_cluster_size must be >= 1, got {min_cluster_size}")
    if max_cluster_size < min_cluster_size:
        raise ValueError(
            f"max_cluster_size ({max_cluster_size}) is smaller than min_cluster_size ({min_cluster_size})"
        )

    xyz = np.asarray(points, dtype=np.float64)
    if xyz.size == 0:
        return ClusterResult(clusters=[], labels=np.array([], dtype=int))
    xyz = xyz[:, :3]
    n = len(xyz)

    if index is None:
        index = KDTree(xyz)
    elif index.size != n:
        raise ValueError(f"Index holds {index.size} points but cloud has {n}")

    visited = np.zeros(n, dtype=bool)
    labels = np.full(n, -1, dtype=int)
    clusters = []
    rejected = 0

    for seed in range(n):
        if visited[seed]:
            continue

        visited[seed] = True
        members = [seed]
        sq_idx = 0
        while sq_idx < len(members):
            neighbors = index.query_ball_point(xyz[members[sq_idx]], tolerance)
            fresh = neighbors[~visited[neighbors]]
            if len(fresh):
                visited[fresh] = True
                members.extend(fresh.tolist())
            sq_idx += 1

        size = len(members)
        if size < min_cluster_size or size > max_cluster_size:
            rejected += 1
            logger.debug("Rejected candidate seeded at %d with %d points", seed, size)
            continue

        cluster = np.sort(np.asarray(members, dtype=np.intp))
        labels[cluster] = len(clusters)
        clusters.append(cluster)
        logger.debug("Accepted cluster %d seeded at %d with %d points", len(clusters) - 1, seed, size)

    return ClusterResult(clusters=clusters, labels=labels, rejected_count=rejected)
