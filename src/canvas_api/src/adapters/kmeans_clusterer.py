"""Fixed-iteration K-means used by both the channel router and local previews.

Centroids are seeded by sampling input points uniformly with replacement, so
two calls on the same input may partition it differently unless a seed is
given. The loop always runs ``KMEANS_ITERATIONS`` assignment/update rounds.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from canvas_api.src.adapters.base_clusterer import BaseClusterer
from canvas_api.src.models.data_models import Centroid, Cluster, Point

KMEANS_ITERATIONS = 10
CLUSTER_COLORS = (
    "#FF6B6B",
    "#4ECDC4",
    "#45B7D1",
    "#96CEB4",
    "#FFEAA7",
    "#DDA0DD",
    "#FFB347",
    "#98FB98",
)


def cluster_color(cluster_id: int) -> str:
    return CLUSTER_COLORS[cluster_id % len(CLUSTER_COLORS)]


def assign_points(coords: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the nearest centroid per row; ties go to the lowest index."""
    distances = np.linalg.norm(coords[:, np.newaxis, :] - centroids[np.newaxis, :, :], axis=2)
    return np.argmin(distances, axis=1)


def update_centroids(
    coords: np.ndarray, labels: np.ndarray, centroids: np.ndarray,
) -> np.ndarray:
    """Mean of each cluster's members; a cluster with no members keeps its centroid."""
    updated = centroids.copy()
    for idx in range(centroids.shape[0]):
        mask = labels == idx
        if np.any(mask):
            updated[idx] = coords[mask].mean(axis=0)
    return updated


def kmeans(
    points: Sequence[Point],
    k: int,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
) -> list[Cluster]:
    """Cluster 2-D points into at most ``min(k, len(points))`` non-empty clusters.

    Args:
        points: Points to partition; they are not modified.
        k: Requested cluster count. ``k <= 0`` yields no clusters.
        seed: Optional seed for reproducible centroid sampling.
        rng: Explicit generator, takes precedence over ``seed``.

    Returns:
        Non-empty clusters ordered by id. Ids keep their seeding index, so they
        can be sparse when a cluster ends up empty.
    """
    if not points or k <= 0:
        return []
    effective_k = min(k, len(points))
    generator = rng if rng is not None else np.random.default_rng(seed)

    coords = np.array([[point.x, point.y] for point in points], dtype=float)
    seeds = generator.integers(0, len(points), size=effective_k)
    centroids = coords[seeds].copy()
    labels = np.zeros(len(points), dtype=int)

    for _ in range(KMEANS_ITERATIONS):
        labels = assign_points(coords, centroids)
        centroids = update_centroids(coords, labels, centroids)

    clusters: list[Cluster] = []
    for idx in range(effective_k):
        members = [
            point.model_copy(update={"cluster_id": idx, "color": cluster_color(idx)})
            for point, label in zip(points, labels.tolist())
            if label == idx
        ]
        if not members:
            continue
        clusters.append(
            Cluster(
                id=idx,
                centroid=Centroid(x=float(centroids[idx, 0]), y=float(centroids[idx, 1])),
                points=members,
                color=cluster_color(idx),
            )
        )
    return clusters


def annotate_points(points: Sequence[Point], clusters: Sequence[Cluster]) -> list[Point]:
    """Copy ``points`` in their original order with cluster id and color applied."""
    membership = {
        member.id: (cluster.id, cluster.color)
        for cluster in clusters
        for member in cluster.points
    }
    annotated: list[Point] = []
    for point in points:
        if point.id in membership:
            cluster_id, color = membership[point.id]
            annotated.append(point.model_copy(update={"cluster_id": cluster_id, "color": color}))
        else:
            annotated.append(point.model_copy())
    return annotated


class KMeansClusterer(BaseClusterer):
    """Adapter exposing :func:`kmeans` through the BaseClusterer contract."""

    name = "K-Means"

    def __init__(self, seed: int | None = None):
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def cluster(self, points: Sequence[Point], k: int) -> list[Cluster]:
        return kmeans(points, k, rng=self._rng)
