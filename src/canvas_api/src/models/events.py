from __future__ import annotations

import time
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from canvas_api.src.models.data_models import Cluster, Point, SessionState, SessionStep


class ChannelEventBase(BaseModel):
    """Fields shared by every event broadcast on a channel."""

    channel: str = ""
    sequence: int = Field(0, ge=0)
    timestamp: float = Field(default_factory=time.time)


class SessionStarted(ChannelEventBase):
    type: Literal["session-started"] = "session-started"
    script_id: str
    demo: Dict[str, Any]
    default_params: Dict[str, Any] = Field(default_factory=dict)
    step: SessionStep = SessionStep.STARTED
    explanations: List[str] = Field(default_factory=list)


class PointAdded(ChannelEventBase):
    type: Literal["point-added"] = "point-added"
    point: Point


class PointMoved(ChannelEventBase):
    type: Literal["point-moved"] = "point-moved"
    id: str
    x: float
    y: float


class PointRemoved(ChannelEventBase):
    type: Literal["point-removed"] = "point-removed"
    id: str


class PointsCleared(ChannelEventBase):
    type: Literal["points-cleared"] = "points-cleared"
    step: SessionStep = SessionStep.STARTED
    explanations: List[str] = Field(default_factory=list)


class ClusteringStarted(ChannelEventBase):
    type: Literal["clustering-started"] = "clustering-started"
    step: SessionStep = SessionStep.CLUSTERING_RUNNING
    explanations: List[str] = Field(default_factory=list)


class ClusteringComplete(ChannelEventBase):
    type: Literal["clustering-complete"] = "clustering-complete"
    clusters: List[Cluster]
    points: List[Point]
    step: SessionStep = SessionStep.CLUSTERING_COMPLETE
    explanations: List[str] = Field(default_factory=list)


class ClusteringFailed(ChannelEventBase):
    type: Literal["clustering-failed"] = "clustering-failed"
    step: SessionStep = SessionStep.STARTED
    explanations: List[str] = Field(default_factory=list)


class SessionEnded(ChannelEventBase):
    type: Literal["session-ended"] = "session-ended"
    step: SessionStep = SessionStep.WAITING


class SessionSnapshot(ChannelEventBase):
    type: Literal["session-snapshot"] = "session-snapshot"
    state: SessionState


ChannelEvent = Annotated[
    Union[
        SessionStarted,
        PointAdded,
        PointMoved,
        PointRemoved,
        PointsCleared,
        ClusteringStarted,
        ClusteringComplete,
        ClusteringFailed,
        SessionEnded,
        SessionSnapshot,
    ],
    Field(discriminator="type"),
]

event_adapter: TypeAdapter[ChannelEvent] = TypeAdapter(ChannelEvent)


class CommandRejected(BaseModel):
    """Sent only to the connection whose command failed validation."""

    type: Literal["rejected"] = "rejected"
    error: str
    detail: str
    command: Optional[str] = None


def parse_event(payload: Any) -> ChannelEvent:
    return event_adapter.validate_python(payload)
