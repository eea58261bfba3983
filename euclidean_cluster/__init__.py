"""
Euclidean cluster: dominant plane removal and object clustering for 3D point cloud frames.
"""

from .cloud import PointCloud, OUTPUT_FRAME_ID
from .kdtree import KDTree, build_index, radius_search
from .ransac import segment_plane, PlaneModel, InsufficientDataError
from .clustering import euclidean_cluster, ClusterResult
from .labeling import Cluster, compute_centroid, assign_labels, label_color
from .pipeline import PipelineParams, FrameResult, run_frame_pipeline, run_sequence_pipeline

__version__ = "1.0.0"
