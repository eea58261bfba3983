import numpy as np
from dataclasses import dataclass
from typing import Optional

# Reference tag carried by every output cloud
OUTPUT_FRAME_ID = "world"


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class PointCloud:
    """
    Ordered set of 3D points with optional per-point RGB colors.
    Arrays are copied and frozen on construction.
    """
    points: np.ndarray
    colors: Optional[np.ndarray] = None
    frame_id: str = OUTPUT_FRAME_ID

    def __post_init__(self):
        points = np.asarray(self.points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3:
            if points.size == 0:
                points = points.reshape(0, 3)
            else:
                raise ValueError(f"Expected (N, 3) points, got shape {points.shape}")
        if not np.all(np.isfinite(points)):
            raise ValueError("Point coordinates must be finite")
        object.__setattr__(self, "points", _readonly(points))

        if self.colors is not None:
            colors = np.asarray(self.colors)
            if colors.shape != (len(points), 3):
                raise ValueError(f"Expected ({len(points)}, 3) colors, got shape {colors.shape}")
            if not np.issubdtype(colors.dtype, np.integer):
                raise ValueError(f"Colors must be integer RGB values, got dtype {colors.dtype}")
            if colors.size and (colors.min() < 0 or colors.max() > 255):
                raise ValueError("Color components must lie in 0..255")
            object.__setattr__(self, "colors", _readonly(colors.astype(np.uint8)))

    def __len__(self) -> int:
        return len(self.points)

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    @classmethod
    def from_array(cls, arr: np.ndarray, frame_id: str = OUTPUT_FRAME_ID) -> "PointCloud":
        """
        Build a cloud from an (N, >=3) array; extra columns such as intensity are dropped.
        """
        arr = np.asarray(arr)
        if arr.size == 0:
            return cls(np.zeros((0, 3)), frame_id=frame_id)
        if arr.ndim != 2 or arr.shape[1] < 3:
            raise ValueError(f"Expected (N, >=3) array, got shape {arr.shape}")
        return cls(arr[:, :3], frame_id=frame_id)

    def select(self, indices: np.ndarray) -> "PointCloud":
        """Subset in the order given by indices."""
        indices = np.asarray(indices, dtype=np.intp)
        colors = None if self.colors is None else self.colors[indices]
        return PointCloud(self.points[indices], colors, self.frame_id)
