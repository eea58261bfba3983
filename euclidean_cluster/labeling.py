import numpy as np
from dataclasses import dataclass
from typing import List, Sequence, Tuple

LABEL_BASE = 1
UNCLUSTERED_LABEL = 0

# Color for outlier points outside every accepted cluster
DEFAULT_COLOR = (128, 128, 128)

CLUSTER_COLORS = [
    "#e6194b", "#3cb44b", "#ffe119", "#4363d8", "#f58231",
    "#911eb4", "#42d4f4", "#f032e6", "#bfef45", "#fabed4",
    "#469990", "#dcbeff", "#9A6324", "#800000", "#aaffc3",
    "#808000", "#ffd8b1", "#000075",
]

# Brightness per pass through the palette
_SHADES = (1.0, 0.75, 0.5, 0.25)


@dataclass
class Cluster:
    label: int
    indices: np.ndarray
    centroid: np.ndarray
    color: Tuple[int, int, int]

    @property
    def size(self) -> int:
        return len(self.indices)


def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    return (int(color[1:3], 16), int(color[3:5], 16), int(color[5:7], 16))


def compute_centroid(points: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """
    Coordinate-wise mean of the selected points.
    """
    indices = np.asarray(indices, dtype=np.intp)
    if len(indices) == 0:
        raise ValueError("Cannot compute the centroid of an empty cluster")
    return points[indices, :3].mean(axis=0)


def compute_centroids(points: np.ndarray, clusters: Sequence[np.ndarray]) -> np.ndarray:
    if len(clusters) == 0:
        return np.zeros((0, 3))
    return np.vstack([compute_centroid(points, c) for c in clusters])


def assign_labels(count: int, base: int = LABEL_BASE) -> List[int]:
    return list(range(base, base + count))


def label_color(label: int, base: int = LABEL_BASE) -> Tuple[int, int, int]:
    """
    Display color for a label. Labels cycle through CLUSTER_COLORS, each pass
    darker than the last; distinct for the first len(CLUSTER_COLORS) * 4 labels.
    """
    if label < base:
        return DEFAULT_COLOR
    k = label - base
    r, g, b = hex_to_rgb(CLUSTER_COLORS[k % len(CLUSTER_COLORS)])
    shade = _SHADES[(k // len(CLUSTER_COLORS)) % len(_SHADES)]
    return (int(round(r * shade)), int(round(g * shade)), int(round(b * shade)))


def build_clusters(
    index_sets: Sequence[np.ndarray],
    centroids: np.ndarray,
    base: int = LABEL_BASE,
) -> List[Cluster]:
    """Attach centroid, label and color to each index set, keeping their order."""
    if len(centroids) != len(index_sets):
        raise ValueError(f"Got {len(centroids)} centroids for {len(index_sets)} clusters")
    labels = assign_labels(len(index_sets), base)
    return [
        Cluster(
            label=label,
            indices=indices,
            centroid=centroid,
            color=label_color(label, base),
        )
        for label, indices, centroid in zip(labels, index_sets, centroids)
    ]
