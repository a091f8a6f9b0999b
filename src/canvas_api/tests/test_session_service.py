import pytest

from canvas_api.src.models.data_models import Centroid, Cluster, Point, SessionStep
from canvas_api.src.models.errors import InvalidArgumentError, NotFoundError
from canvas_api.src.services.session_service import DemoSession


@pytest.fixture
def session(demos):
    started = DemoSession()
    started.start(demos[0], ["started"])
    return started


def test_new_session_waits_for_presenter():
    session = DemoSession()

    assert session.step == SessionStep.WAITING
    assert session.state.is_running is False


def test_start_resets_previous_content(session, demos):
    # Arrange
    session.add_point(Point(id="a", x=1.0, y=1.0))

    # Act
    session.start(demos[1], ["again"])

    # Assert
    assert session.state.active_script_id == "theft-pattern-map"
    assert session.state.points == []
    assert session.step == SessionStep.STARTED
    assert session.state.explanations == ["again"]


def test_add_point_requires_running_session():
    session = DemoSession()

    with pytest.raises(InvalidArgumentError):
        session.add_point(Point(id="a", x=1.0, y=1.0))

    assert session.state.points == []


def test_add_point_rejects_duplicate_id(session):
    session.add_point(Point(id="a", x=1.0, y=1.0))

    with pytest.raises(InvalidArgumentError):
        session.add_point(Point(id="a", x=9.0, y=9.0))

    assert [(p.x, p.y) for p in session.state.points] == [(1.0, 1.0)]


def test_move_and_remove_unknown_point_is_not_found(session):
    with pytest.raises(NotFoundError):
        session.move_point("ghost", 1.0, 1.0)
    with pytest.raises(NotFoundError):
        session.remove_point("ghost")


def test_point_edits_are_rejected_while_clustering_runs(session):
    # Arrange
    session.add_point(Point(id="a", x=1.0, y=1.0))
    session.begin_clustering(["running"])

    # Act / Assert
    with pytest.raises(InvalidArgumentError):
        session.add_point(Point(id="b", x=2.0, y=2.0))
    with pytest.raises(InvalidArgumentError):
        session.move_point("a", 5.0, 5.0)
    with pytest.raises(InvalidArgumentError):
        session.clear_points(["cleared"])
    assert session.state.find_point("a").x == 1.0


def test_begin_clustering_without_points_is_rejected(session):
    with pytest.raises(InvalidArgumentError):
        session.begin_clustering(["running"])

    assert session.step == SessionStep.STARTED


def test_clustering_lifecycle_stores_results(session):
    # Arrange
    point = Point(id="a", x=1.0, y=1.0)
    session.add_point(point)
    annotated = point.model_copy(update={"cluster_id": 0, "color": "#FF6B6B"})
    cluster = Cluster(id=0, centroid=Centroid(x=1.0, y=1.0), points=[annotated], color="#FF6B6B")

    # Act
    session.begin_clustering(["running"])
    session.complete_clustering([annotated], [cluster], ["done"])

    # Assert
    assert session.step == SessionStep.CLUSTERING_COMPLETE
    assert session.state.clusters[0].size == 1
    assert session.state.points[0].cluster_id == 0


def test_points_can_be_edited_after_clustering_completes(session):
    session.add_point(Point(id="a", x=1.0, y=1.0))
    session.begin_clustering(["running"])
    session.complete_clustering(list(session.state.points), [], ["done"])

    session.move_point("a", 3.0, 4.0)

    assert (session.state.points[0].x, session.state.points[0].y) == (3.0, 4.0)


def test_clear_points_drops_points_and_clusters(session):
    session.add_point(Point(id="a", x=1.0, y=1.0))
    session.begin_clustering(["running"])
    session.complete_clustering(list(session.state.points), [], ["done"])

    session.clear_points(["cleared"])

    assert session.state.points == []
    assert session.state.clusters == []
    assert session.step == SessionStep.STARTED
    assert session.state.is_running is True


def test_fail_clustering_reverts_to_started(session):
    session.add_point(Point(id="a", x=1.0, y=1.0))
    session.begin_clustering(["running"])

    session.fail_clustering(["failed"])

    assert session.step == SessionStep.STARTED
    assert session.state.explanations == ["failed"]
    with pytest.raises(InvalidArgumentError):
        session.fail_clustering(["failed"])


def test_snapshot_is_detached_from_live_state(session):
    session.add_point(Point(id="a", x=1.0, y=1.0))

    snapshot = session.snapshot()
    session.move_point("a", 7.0, 7.0)

    assert snapshot.points[0].x == 1.0


def test_reset_returns_to_waiting(session):
    session.add_point(Point(id="a", x=1.0, y=1.0))

    session.reset()

    assert session.step == SessionStep.WAITING
    assert session.state.points == []
    assert session.state.active_script_id is None
