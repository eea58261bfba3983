import logging
import numpy as np
from typing import List

logger = logging.getLogger(__name__)

_LEAF = -1


class KDTree:
    """
    Static k-d tree for radius queries over an (N, 3) point array.

    Points are copied once into a contiguous buffer ordered by leaf, with a
    permutation array mapping buffer rows back to input indices. Nodes are kept
    in flat per-node lists; a node with axis -1 is a leaf owning the buffer
    slice [start, end).
    """

    def __init__(self, points: np.ndarray, leaf_size: int = 16):
        if leaf_size < 1:
            raise ValueError(f"leaf_size must be >= 1, got {leaf_size}")

        points = np.asarray(points, dtype=np.float64)
        if points.size == 0:
            points = points.reshape(0, 3)
        if points.ndim != 2 or points.shape[1] < 3:
            raise ValueError(f"Expected (N, 3) points, got shape {points.shape}")

        self.leaf_size = leaf_size
        self._points = points[:, :3]
        self._perm = np.arange(len(self._points), dtype=np.intp)

        self._axis: List[int] = []
        self._split: List[float] = []
        self._left: List[int] = []
        self._right: List[int] = []
        self._start: List[int] = []
        self._end: List[int] = []

        self.depth = 0
        if len(self._points) > 0:
            self._build(0, len(self._points), 0)
        self._data = self._points[self._perm]

        logger.debug("Built KDTree over %d points: %d nodes, depth %d",
                     self.size, len(self._axis), self.depth)

    @property
    def size(self) -> int:
        return len(self._points)

    def __len__(self) -> int:
        return self.size

    def _build(self, start: int, end: int, depth: int) -> int:
        node = len(self._axis)
        self._axis.append(_LEAF)
        self._split.append(0.0)
        self._left.append(_LEAF)
        self._right.append(_LEAF)
        self._start.append(start)
        self._end.append(end)
        self.depth = max(self.depth, depth)

        if end - start <= self.leaf_size:
            return node

        idx = self._perm[start:end]
        pts = self._points[idx]
        spread = pts.max(axis=0) - pts.min(axis=0)
        axis = int(np.argmax(spread))
        # Identical points cannot be separated
        if spread[axis] <= 0.0:
            return node

        # Left half holds values <= split, right half values >= split
        mid = (end - start) // 2
        order = np.argpartition(pts[:, axis], mid)
        self._perm[start:end] = idx[order]
        split = float(self._points[self._perm[start + mid], axis])

        left = self._build(start, start + mid, depth + 1)
        right = self._build(start + mid, end, depth + 1)

        self._axis[node] = axis
        self._split[node] = split
        self._left[node] = left
        self._right[node] = right
        return node

    def query_ball_point(self, point, r: float) -> np.ndarray:
        """
        Indices of all points within Euclidean distance r (inclusive) of point,
        sorted ascending.
        """
        if r < 0:
            raise ValueError(f"Radius must be non-negative, got {r}")
        if self.size == 0:
            return np.empty(0, dtype=np.intp)

        q = np.asarray(point, dtype=np.float64)[:3]
        qc = q.tolist()
        r2 = r * r

        found = []
        stack = [0]
        while stack:
            node = stack.pop()
            axis = self._axis[node]

            if axis == _LEAF:
                start, end = self._start[node], self._end[node]
                diff = self._data[start:end] - q
                mask = np.einsum("ij,ij->i", diff, diff) <= r2
                if mask.any():
                    found.append(self._perm[start:end][mask])
                continue

            delta = qc[axis] - self._split[node]
            if delta <= r:
                stack.append(self._left[node])
            if delta >= -r:
                stack.append(self._right[node])

        if not found:
            return np.empty(0, dtype=np.intp)
        return np.sort(np.concatenate(found))


def build_index(points: np.ndarray, leaf_size: int = 16) -> KDTree:
    return KDTree(points, leaf_size=leaf_size)


def radius_search(index: KDTree, point, radius: float) -> np.ndarray:
    return index.query_ball_point(point, radius)
