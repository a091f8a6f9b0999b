from __future__ import annotations

from collections.abc import Sequence

import plotly.graph_objects as go  # type: ignore[import-untyped]

from canvas_api.src.models.data_models import Cluster, Point, SessionState, SessionStep

UNASSIGNED_COLOR = "#7F8C8D"
CANVAS_RANGE = (0.0, 800.0, 0.0, 600.0)


def build_session_scatter(
    state: SessionState,
    *,
    pulse: int = 0,
    preview: Sequence[Cluster] | None = None,
    title: str = "Canvas",
) -> go.Figure:
    """Plot mirrored points colored by cluster, with centroids and optional preview."""
    fig = go.Figure()
    if state.points:
        _add_point_traces(fig, state.points)
    if state.clusters:
        _add_centroid_traces(fig, state.clusters, prefix="C")
    if preview:
        _add_centroid_traces(fig, preview, prefix="P", symbol="circle-open")

    subtitle = _step_caption(state.step, pulse)
    x_min, x_max, y_min, y_max = CANVAS_RANGE
    fig.update_layout(
        title=f"{title} - {subtitle}" if subtitle else title,
        xaxis=dict(title="x", range=[x_min, x_max]),
        yaxis=dict(title="y", range=[y_max, y_min]),
        legend=dict(orientation="v"),
        uirevision="canvas-scatter",
        height=600,
        margin=dict(l=20, r=20, t=40, b=20),
    )
    return fig


def _step_caption(step: SessionStep, pulse: int) -> str:
    if step == SessionStep.CLUSTERING_RUNNING:
        return "processing" + "." * (pulse % 4)
    if step == SessionStep.CLUSTERING_COMPLETE:
        return "clusters found"
    if step == SessionStep.WAITING:
        return "waiting for presenter"
    return ""


def _add_point_traces(fig: go.Figure, points: Sequence[Point]) -> None:
    groups: dict[int | None, list[Point]] = {}
    for point in points:
        groups.setdefault(point.cluster_id, []).append(point)
    for cluster_id in sorted(groups, key=lambda cid: -1 if cid is None else cid):
        members = groups[cluster_id]
        name = "Unassigned" if cluster_id is None else f"Cluster {cluster_id}"
        fig.add_trace(
            go.Scatter(
                x=[point.x for point in members],
                y=[point.y for point in members],
                mode="markers",
                name=name,
                text=[point.id for point in members],
                marker=dict(
                    color=[point.color or UNASSIGNED_COLOR for point in members],
                    size=10,
                    opacity=0.5 if cluster_id is None else 0.9,
                ),
            )
        )


def _add_centroid_traces(
    fig: go.Figure, clusters: Sequence[Cluster], *, prefix: str, symbol: str = "x",
) -> None:
    for cluster in clusters:
        label = f"{prefix}{cluster.id}"
        fig.add_trace(
            go.Scatter(
                x=[cluster.centroid.x],
                y=[cluster.centroid.y],
                mode="markers+text",
                name=label,
                text=[label],
                textposition="top center",
                marker=dict(color=cluster.color, size=16, symbol=symbol, line=dict(width=2)),
            )
        )
