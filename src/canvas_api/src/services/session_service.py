from __future__ import annotations

from typing import List

from canvas_api.src.config import DemoDefinition
from canvas_api.src.models.data_models import Cluster, Point, SessionState, SessionStep
from canvas_api.src.models.errors import InvalidArgumentError, NotFoundError

# Steps reachable from each step; any step may also return to WAITING (stop)
# or to STARTED (start restarts the session).
_TRANSITIONS: dict[SessionStep, set[SessionStep]] = {
    SessionStep.WAITING: set(),
    SessionStep.STARTED: {SessionStep.CLUSTERING_RUNNING},
    SessionStep.CLUSTERING_RUNNING: {SessionStep.CLUSTERING_COMPLETE},
    SessionStep.CLUSTERING_COMPLETE: {SessionStep.CLUSTERING_RUNNING},
}

_EDITABLE_STEPS = {SessionStep.STARTED, SessionStep.CLUSTERING_COMPLETE}


class DemoSession:
    """State machine over one channel's SessionState.

    Every method validates before it mutates, so a rejected call leaves the
    state untouched. Callers are responsible for serializing access.
    """

    def __init__(self) -> None:
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def step(self) -> SessionStep:
        return self._state.step

    def snapshot(self) -> SessionState:
        return self._state.model_copy(deep=True)

    def start(self, demo: DemoDefinition, explanations: List[str]) -> None:
        self._state = SessionState(
            active_script_id=demo.id,
            is_running=True,
            step=SessionStep.STARTED,
            explanations=list(explanations),
        )

    def reset(self) -> None:
        self._state = SessionState()

    def add_point(self, point: Point) -> Point:
        self._require_editable()
        if self._state.find_point(point.id) is not None:
            raise InvalidArgumentError(f"Point id '{point.id}' already exists")
        self._state.points.append(point)
        return point

    def move_point(self, point_id: str, x: float, y: float) -> Point:
        self._require_running(NotFoundError)
        point = self._state.find_point(point_id)
        if point is None:
            raise NotFoundError(f"Point '{point_id}' not found")
        self._require_editable()
        point.x = x
        point.y = y
        return point

    def remove_point(self, point_id: str) -> Point:
        self._require_running(NotFoundError)
        point = self._state.find_point(point_id)
        if point is None:
            raise NotFoundError(f"Point '{point_id}' not found")
        self._require_editable()
        self._state.points = [p for p in self._state.points if p.id != point_id]
        return point

    def clear_points(self, explanations: List[str]) -> None:
        self._require_editable()
        self._state.points = []
        self._state.clusters = []
        self._state.step = SessionStep.STARTED
        self._state.explanations = list(explanations)

    def begin_clustering(self, explanations: List[str]) -> None:
        self._require_running(InvalidArgumentError)
        if not self._state.points:
            raise InvalidArgumentError("There are no points to cluster")
        self._transition(SessionStep.CLUSTERING_RUNNING)
        self._state.explanations = list(explanations)

    def complete_clustering(
        self, points: List[Point], clusters: List[Cluster], explanations: List[str],
    ) -> None:
        self._transition(SessionStep.CLUSTERING_COMPLETE)
        self._state.points = list(points)
        self._state.clusters = list(clusters)
        self._state.explanations = list(explanations)

    def fail_clustering(self, explanations: List[str]) -> None:
        if self._state.step != SessionStep.CLUSTERING_RUNNING:
            raise InvalidArgumentError("Clustering is not running")
        self._state.step = SessionStep.STARTED
        self._state.explanations = list(explanations)

    def _require_running(self, error_cls: type) -> None:
        if not self._state.is_running:
            raise error_cls("No demo session is running")

    def _require_editable(self) -> None:
        self._require_running(InvalidArgumentError)
        if self._state.step not in _EDITABLE_STEPS:
            raise InvalidArgumentError(
                f"Points cannot be edited while the session is '{self._state.step.value}'"
            )

    def _transition(self, target: SessionStep) -> None:
        current = self._state.step
        if target not in _TRANSITIONS[current]:
            raise InvalidArgumentError(
                f"Cannot move from '{current.value}' to '{target.value}'"
            )
        self._state.step = target
