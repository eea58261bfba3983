import logging
import numpy as np
from dataclasses import dataclass
from scipy import linalg
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class InsufficientDataError(ValueError):
    """Raised when a cloud has too few points to fit a plane."""


@dataclass
class PlaneModel:
    """
    Represents a 3D plane: normal * point + d = 0
    """
    # Unit vector with distance parameter to represent plane
    normal: np.ndarray
    d: float

    def distance_to_points(self, points: np.ndarray) -> np.ndarray:
        return np.abs(np.dot(points[:, :3], self.normal) + self.d)

    @property
    def coefficients(self) -> Tuple[float, float, float, float]:
        return (float(self.normal[0]), float(self.normal[1]), float(self.normal[2]), float(self.d))

    @property
    def equation_string(self) -> str:
        return f"{self.normal[0]:.4f}x + {self.normal[1]:.4f}y + {self.normal[2]:.4f}z + {self.d:.4f} = 0"

    def oriented(self) -> "PlaneModel":
        """Same plane with the normal flipped, if needed, so that normal z >= 0."""
        if self.normal[2] < 0:
            return PlaneModel(normal=-self.normal, d=-self.d)
        return self


def fit_plane_from_points(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray) -> PlaneModel:
    """
    Fit a plane through three 3D points.
    """
    v1 = p2 - p1
    v2 = p3 - p1

    normal = np.cross(v1, v2)

    norm = np.linalg.norm(normal)
    if norm < 1e-10:
        raise ValueError("Points are collinear")

    normal = normal / norm

    d = -np.dot(normal, p1)

    return PlaneModel(normal=normal, d=float(d))


def fit_plane_least_squares(points: np.ndarray) -> PlaneModel:
    """
    Total least-squares plane through points: the normal is the eigenvector of
    the covariance matrix with the smallest eigenvalue.
    """
    xyz = points[:, :3]
    if len(xyz) < 3:
        raise InsufficientDataError(f"Need at least 3 points, got {len(xyz)}")

    centroid = xyz.mean(axis=0)
    centered = xyz - centroid
    covariance = centered.T @ centered / len(xyz)

    # eigh returns eigenvalues in ascending order
    _, eigenvectors = linalg.eigh(covariance)
    normal = eigenvectors[:, 0]
    normal = normal / np.linalg.norm(normal)

    d = -np.dot(normal, centroid)
    return PlaneModel(normal=normal, d=float(d))


def segment_plane(
    points: np.ndarray,
    distance_threshold: float = 0.04,
    max_iterations: int = 100,
    optimize_coefficients: bool = True,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[Optional[PlaneModel], np.ndarray]:
    """
    Detect the dominant plane using RANSAC.

    Every iteration draws 3 distinct points; collinear samples are skipped but
    still use up the iteration. The model with the most inliers (distance <=
    distance_threshold) wins, ties going to the first one found. With
    optimize_coefficients the winner is refit by least squares over its
    inliers; the inlier set itself is kept as sampled.

    Returns the plane (None when no sample produced a plane) and the sorted
    inlier indices. Pass seed or rng for reproducible results, not both.
    """
    if distance_threshold < 0:
        raise ValueError(f"distance_threshold must be non-negative, got {distance_threshold}")
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")

    xyz = np.asarray(points, dtype=np.float64)
    if xyz.size == 0:
        xyz = xyz.reshape(0, 3)
    xyz = xyz[:, :3]
    n_points = len(xyz)

    if n_points < 3:
        raise InsufficientDataError(f"Need at least 3 points, got {n_points}")

    if rng is None:
        rng = np.random.default_rng(seed)
    elif seed is not None:
        raise ValueError("Pass either seed or rng, not both")

    best_plane = None
    best_inlier_count = 0
    best_inlier_mask = np.zeros(n_points, dtype=bool)
    degenerate = 0

    for _ in range(max_iterations):
        sample_indices = rng.choice(n_points, 3, replace=False)
        p1, p2, p3 = xyz[sample_indices]

        try:
            plane = fit_plane_from_points(p1, p2, p3)
        except ValueError:
            degenerate += 1
            continue

        distances = plane.distance_to_points(xyz)
        inlier_mask = distances <= distance_threshold
        inlier_count = int(np.sum(inlier_mask))

        if inlier_count > best_inlier_count:
            best_inlier_count = inlier_count
            best_plane = plane.oriented()
            best_inlier_mask = inlier_mask

    if best_plane is None:
        logger.debug("No plane found: all %d samples were collinear", max_iterations)
        return None, np.empty(0, dtype=np.intp)

    inliers = np.flatnonzero(best_inlier_mask)

    if optimize_coefficients and len(inliers) >= 3:
        refined = fit_plane_least_squares(xyz[inliers])
        # Keep the orientation of the sampled model
        if np.dot(refined.normal, best_plane.normal) < 0:
            refined = PlaneModel(normal=-refined.normal, d=-refined.d)
        best_plane = refined

    logger.debug("RANSAC plane %s with %d/%d inliers (%d degenerate samples)",
                 best_plane.equation_string, len(inliers), n_points, degenerate)

    return best_plane, inliers
