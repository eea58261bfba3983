"""Plotly figures for inspecting a processed frame."""

import plotly.graph_objects as go

from euclidean_cluster.labeling import DEFAULT_COLOR, UNCLUSTERED_LABEL
from euclidean_cluster.pipeline import FrameResult


def rgb_to_css(color, alpha=None):
    r, g, b = (int(c) for c in color)
    if alpha is None:
        return f"rgb({r},{g},{b})"
    return f"rgba({r},{g},{b},{alpha})"


def _layout(fig):
    fig.update_layout(
        scene=dict(aspectmode="data"),
        height=600,
        margin=dict(l=0, r=0, t=30, b=0),
    )
    return fig


def scatter_3d_plane_split(result: FrameResult):
    """Create a 3D scatter plot showing plane inliers vs remaining points."""
    fig = go.Figure()
    plane = result.plane_cloud.points
    rest = result.labeled_cloud.points
    if len(plane) > 0:
        fig.add_trace(go.Scatter3d(
            x=plane[:, 0], y=plane[:, 1], z=plane[:, 2],
            mode="markers",
            marker=dict(size=1, color="blue", opacity=0.4),
            name=f"Plane ({len(plane):,})",
        ))
    if len(rest) > 0:
        fig.add_trace(go.Scatter3d(
            x=rest[:, 0], y=rest[:, 1], z=rest[:, 2],
            mode="markers",
            marker=dict(size=1, color="red", opacity=0.6),
            name=f"Outliers ({len(rest):,})",
        ))
    if result.plane_model is not None:
        fig.update_layout(title=result.plane_model.equation_string)
    return _layout(fig)


def scatter_3d_clusters(result: FrameResult):
    """Create a 3D scatter plot of the labeled cloud with cluster centroids."""
    fig = go.Figure()
    points = result.labeled_cloud.points

    noise = points[result.point_labels == UNCLUSTERED_LABEL]
    if len(noise) > 0:
        fig.add_trace(go.Scatter3d(
            x=noise[:, 0], y=noise[:, 1], z=noise[:, 2],
            mode="markers",
            marker=dict(size=1, color=rgb_to_css(DEFAULT_COLOR), opacity=0.2),
            name=f"Unclustered ({len(noise):,})",
        ))

    for cluster in result.clusters:
        pts = points[cluster.indices]
        fig.add_trace(go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode="markers",
            marker=dict(size=2, color=rgb_to_css(cluster.color), opacity=0.7),
            name=f"Cluster {cluster.label} ({cluster.size:,})",
        ))

    centroids = result.centroid_cloud.points
    if len(centroids) > 0:
        fig.add_trace(go.Scatter3d(
            x=centroids[:, 0], y=centroids[:, 1], z=centroids[:, 2],
            mode="markers+text",
            marker=dict(size=6, symbol="diamond", color="black"),
            text=[str(c.label) for c in result.clusters],
            name="Centroids",
        ))

    return _layout(fig)
