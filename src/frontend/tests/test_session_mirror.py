import pytest
from canvas_api.src.models.data_models import Point, SessionState, SessionStep
from canvas_api.src.models.events import (
    ClusteringStarted,
    PointAdded,
    PointMoved,
    SessionEnded,
    SessionSnapshot,
    SessionStarted,
)
from frontend.session_mirror import SessionMirror


def _snapshot(sequence=0, points=()):
    state = SessionState(
        active_script_id="ml-clustering",
        is_running=True,
        step=SessionStep.STARTED,
        points=list(points),
    )
    return SessionSnapshot(channel="main", sequence=sequence, state=state)


def test_deltas_before_snapshot_are_ignored():
    mirror = SessionMirror()

    changed = mirror.apply(PointAdded(sequence=1, point=Point(id="a", x=1.0, y=1.0)))

    assert changed is False
    assert mirror.synced is False


def test_snapshot_then_deltas_build_state():
    # Arrange
    mirror = SessionMirror()

    # Act
    mirror.apply(_snapshot(sequence=4).model_dump(mode="json"))
    mirror.apply(PointAdded(sequence=5, point=Point(id="a", x=1.0, y=1.0)).model_dump(mode="json"))
    mirror.apply(PointMoved(sequence=6, id="a", x=9.0, y=8.0))

    # Assert
    assert mirror.sequence == 6
    assert [(p.id, p.x, p.y) for p in mirror.state.points] == [("a", 9.0, 8.0)]


def test_duplicate_delta_is_ignored():
    mirror = SessionMirror()
    mirror.apply(_snapshot(sequence=1))
    event = PointAdded(sequence=2, point=Point(id="a", x=1.0, y=1.0))

    mirror.apply(event)
    changed = mirror.apply(event)

    assert changed is False
    assert len(mirror.state.points) == 1


def test_sequence_gap_marks_mirror_stale_until_snapshot():
    # Arrange
    mirror = SessionMirror()
    mirror.apply(_snapshot(sequence=1))

    # Act
    mirror.apply(PointAdded(sequence=3, point=Point(id="b", x=2.0, y=2.0)))
    stale = mirror.stale
    mirror.apply(_snapshot(sequence=3, points=[Point(id="a", x=1.0, y=1.0), Point(id="b", x=2.0, y=2.0)]))

    # Assert
    assert stale is True
    assert mirror.synced is True
    assert [p.id for p in mirror.state.points] == ["a", "b"]


def test_session_lifecycle_events():
    mirror = SessionMirror()
    mirror.apply(SessionSnapshot(sequence=0, state=SessionState()))

    mirror.apply(
        SessionStarted(
            sequence=1,
            script_id="theft-pattern-map",
            demo={"id": "theft-pattern-map"},
            explanations=["started"],
        )
    )
    started_step = mirror.state.step
    mirror.apply(SessionEnded(sequence=2))

    assert started_step == SessionStep.STARTED
    assert mirror.state == SessionState()


def test_rejections_are_recorded_without_touching_state():
    mirror = SessionMirror(role="presenter")
    mirror.apply(_snapshot(sequence=1))

    changed = mirror.apply({"type": "rejected", "error": "not_found", "detail": "missing"})

    assert changed is False
    assert mirror.last_rejection.error == "not_found"
    assert mirror.sequence == 1


def test_pulse_only_advances_while_clustering_runs():
    mirror = SessionMirror()
    mirror.apply(_snapshot(sequence=0, points=[Point(id="a", x=1.0, y=1.0)]))
    mirror.apply(ClusteringStarted(sequence=1))

    assert [mirror.tick() for _ in range(3)] == [1, 2, 3]

    mirror.load_status(
        {"channel": "main", "sequence": 2, "state": _snapshot().state.model_dump(mode="json")}
    )
    assert mirror.tick() == 0


def test_preview_is_presenter_only():
    audience = SessionMirror(role="audience")
    presenter = SessionMirror(role="presenter")
    points = [Point(id="a", x=1.0, y=1.0), Point(id="b", x=100.0, y=100.0)]
    presenter.apply(_snapshot(points=points))

    with pytest.raises(PermissionError):
        audience.preview_clusters(2)
    preview = presenter.preview_clusters(2, seed=0)

    assert sum(cluster.size for cluster in preview) == 2
    assert all(point.cluster_id is None for point in presenter.state.points)
