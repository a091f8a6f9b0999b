from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from canvas_api.src.adapters.kmeans_clusterer import kmeans
from canvas_api.src.models.data_models import Cluster, SessionState, SessionStep
from canvas_api.src.models.events import (
    ChannelEventBase,
    ClusteringComplete,
    ClusteringFailed,
    ClusteringStarted,
    CommandRejected,
    PointAdded,
    PointMoved,
    PointRemoved,
    PointsCleared,
    SessionEnded,
    SessionSnapshot,
    SessionStarted,
    parse_event,
)

Role = Literal["presenter", "audience"]


class SessionMirror:
    """Local copy of a channel's session rebuilt from its snapshot and delta stream.

    The mirror never changes state on its own; it only applies events in
    sequence order. A gap in sequence numbers marks it stale until the next
    snapshot is applied.
    """

    def __init__(self, role: Role = "audience") -> None:
        self.role = role
        self.state = SessionState()
        self.sequence: int | None = None
        self.stale = False
        self.pulse = 0
        self.last_rejection: CommandRejected | None = None

    @property
    def synced(self) -> bool:
        return self.sequence is not None and not self.stale

    def apply(self, message: Any) -> bool:
        """Apply one channel message; returns True when the mirrored state changed."""
        if isinstance(message, dict) and message.get("type") == "rejected":
            self.last_rejection = CommandRejected(**message)
            return False
        if isinstance(message, CommandRejected):
            self.last_rejection = message
            return False
        event = message if isinstance(message, BaseModel) else parse_event(message)

        if isinstance(event, SessionSnapshot):
            self.state = event.state.model_copy(deep=True)
            self.sequence = event.sequence
            self.stale = False
            return True
        if self.sequence is None or self.stale or event.sequence <= self.sequence:
            return False
        if event.sequence != self.sequence + 1:
            self.stale = True
            return False
        self._apply_delta(event)
        self.sequence = event.sequence
        return True

    def load_status(self, payload: dict[str, Any]) -> None:
        """Resynchronize from the REST status payload."""
        self.apply(
            SessionSnapshot(
                channel=str(payload.get("channel", "")),
                sequence=int(payload.get("sequence", 0)),
                state=SessionState.model_validate(payload.get("state", {})),
            )
        )

    def tick(self) -> int:
        """Advance the cosmetic pulse shown while clustering runs."""
        if self.state.step == SessionStep.CLUSTERING_RUNNING:
            self.pulse += 1
        else:
            self.pulse = 0
        return self.pulse

    def preview_clusters(self, k: int, seed: int | None = None) -> list[Cluster]:
        """Cluster the mirrored points locally with the same engine the server uses."""
        if self.role != "presenter":
            raise PermissionError("Only presenter mirrors compute local previews")
        return kmeans(self.state.points, k, seed=seed)

    def _apply_delta(self, event: ChannelEventBase) -> None:
        state = self.state
        match event:
            case SessionStarted():
                self.state = SessionState(
                    active_script_id=event.script_id,
                    is_running=True,
                    step=event.step,
                    explanations=list(event.explanations),
                )
            case PointAdded():
                state.points.append(event.point.model_copy())
            case PointMoved():
                for point in state.points:
                    if point.id == event.id:
                        point.x = event.x
                        point.y = event.y
            case PointRemoved():
                state.points = [point for point in state.points if point.id != event.id]
            case PointsCleared():
                state.points = []
                state.clusters = []
                state.step = event.step
                state.explanations = list(event.explanations)
            case ClusteringStarted() | ClusteringFailed():
                state.step = event.step
                state.explanations = list(event.explanations)
            case ClusteringComplete():
                state.points = [point.model_copy() for point in event.points]
                state.clusters = [cluster.model_copy(deep=True) for cluster in event.clusters]
                state.step = event.step
                state.explanations = list(event.explanations)
            case SessionEnded():
                self.state = SessionState()
            case _:
                raise ValueError(f"Unsupported event: {event!r}")
