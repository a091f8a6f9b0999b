import numpy as np
import pytest

from canvas_api.src.adapters.kmeans_clusterer import (
    CLUSTER_COLORS,
    KMeansClusterer,
    annotate_points,
    assign_points,
    kmeans,
    update_centroids,
)
from canvas_api.src.models.data_models import Point


def _points(coords):
    return [Point(id=f"p{idx}", x=x, y=y) for idx, (x, y) in enumerate(coords)]


def _blobs(rng, centers, per_center=15, scale=3.0):
    coords = []
    for cx, cy in centers:
        coords.extend(rng.normal(loc=(cx, cy), scale=scale, size=(per_center, 2)).tolist())
    return _points(coords)


def test_empty_input_or_non_positive_k_returns_no_clusters():
    points = _points([(1.0, 1.0)])

    assert kmeans([], 3) == []
    assert kmeans(points, 0) == []
    assert kmeans(points, -2) == []


def test_k_larger_than_point_count_is_capped():
    # Arrange
    points = _points([(0.0, 0.0), (50.0, 50.0)])

    # Act
    clusters = kmeans(points, 5, seed=3)

    # Assert
    assert 1 <= len(clusters) <= 2
    assert all(cluster.id < 2 for cluster in clusters)


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_clusters_partition_input_without_duplicates(seed):
    # Arrange
    rng = np.random.default_rng(seed)
    points = _blobs(rng, [(100, 100), (400, 120), (250, 450)])

    # Act
    clusters = kmeans(points, 3, seed=seed)

    # Assert
    assert 1 <= len(clusters) <= 3
    member_ids = [member.id for cluster in clusters for member in cluster.points]
    assert len(member_ids) == len(set(member_ids))
    assert set(member_ids) == {point.id for point in points}
    assert all(cluster.points for cluster in clusters)


def test_members_are_annotated_copies():
    # Arrange
    points = _points([(0.0, 0.0), (1.0, 0.0), (100.0, 100.0)])

    # Act
    clusters = kmeans(points, 2, seed=11)

    # Assert
    for cluster in clusters:
        assert cluster.color == CLUSTER_COLORS[cluster.id % len(CLUSTER_COLORS)]
        for member in cluster.points:
            assert member.cluster_id == cluster.id
            assert member.color == cluster.color
    assert all(point.cluster_id is None and point.color is None for point in points)


def test_same_seed_reproduces_partition():
    rng = np.random.default_rng(5)
    points = _blobs(rng, [(0, 0), (200, 0), (0, 200), (200, 200)], per_center=8)

    first = kmeans(points, 4, seed=42)
    second = kmeans(points, 4, seed=42)

    assert [c.model_dump() for c in first] == [c.model_dump() for c in second]


def test_assignment_ties_go_to_lowest_index():
    coords = np.array([[0.0, 0.0], [5.0, 0.0]])
    centroids = np.array([[-1.0, 0.0], [1.0, 0.0], [5.0, 0.0]])

    labels = assign_points(coords, centroids)

    assert labels.tolist() == [0, 2]


def test_empty_cluster_keeps_previous_centroid():
    coords = np.array([[0.0, 0.0], [2.0, 0.0]])
    centroids = np.array([[1.0, 0.0], [50.0, 50.0]])
    labels = np.array([0, 0])

    updated = update_centroids(coords, labels, centroids)

    assert updated[0].tolist() == pytest.approx([1.0, 0.0])
    assert updated[1].tolist() == [50.0, 50.0]


def test_identical_points_leave_sparse_cluster_ids():
    # every distance ties, so cluster 0 wins each assignment and cluster 1 stays empty
    points = _points([(5.0, 5.0), (5.0, 5.0), (5.0, 5.0)])

    clusters = kmeans(points, 2, seed=9)

    assert [cluster.id for cluster in clusters] == [0]
    assert clusters[0].size == 3
    assert clusters[0].centroid.x == pytest.approx(5.0)


def test_final_assignment_uses_nearest_centroid_before_last_update():
    # Arrange
    rng = np.random.default_rng(8)
    points = _blobs(rng, [(50, 50), (300, 60), (150, 350)], per_center=12, scale=25.0)
    coords = np.array([[p.x, p.y] for p in points])
    seed_rng = np.random.default_rng(123)
    seeds = seed_rng.integers(0, len(points), size=3)
    centroids = coords[seeds].copy()
    for _ in range(9):
        centroids = update_centroids(coords, assign_points(coords, centroids), centroids)
    expected_labels = assign_points(coords, centroids)

    # Act
    clusters = kmeans(points, 3, rng=np.random.default_rng(123))

    # Assert
    labels = {member.id: cluster.id for cluster in clusters for member in cluster.points}
    assert [labels[point.id] for point in points] == expected_labels.tolist()


def test_annotate_points_preserves_input_order():
    points = _points([(0.0, 0.0), (100.0, 0.0), (1.0, 0.0)])
    clusters = kmeans(points, 2, seed=1)

    annotated = annotate_points(points, clusters)

    assert [point.id for point in annotated] == ["p0", "p1", "p2"]
    assert all(point.cluster_id is not None for point in annotated)


def test_clusterer_adapter_exposes_algorithm_name():
    clusterer = KMeansClusterer(seed=7)
    points = _points([(0.0, 0.0), (1.0, 1.0), (90.0, 90.0)])

    clusters = clusterer.cluster(points, 2)

    assert clusterer.name == "K-Means"
    assert sum(cluster.size for cluster in clusters) == 3
