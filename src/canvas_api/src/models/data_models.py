from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class SessionStep(str, Enum):
    WAITING = "waiting"
    STARTED = "started"
    CLUSTERING_RUNNING = "clustering-running"
    CLUSTERING_COMPLETE = "clustering-complete"


class Point(BaseModel):
    """A canvas point. ``cluster_id`` and ``color`` are set by the last clustering pass."""

    id: str = Field(..., min_length=1)
    x: float
    y: float
    color: Optional[str] = None
    cluster_id: Optional[int] = None


class Centroid(BaseModel):
    x: float
    y: float


class Cluster(BaseModel):
    """Result of one clustering pass; member points are copies, not live references."""

    id: int = Field(..., ge=0)
    centroid: Centroid
    points: List[Point]
    color: str

    @field_validator("points")
    def _non_empty(cls, points: List[Point]) -> List[Point]:
        if not points:
            raise ValueError("Cluster must contain at least one point")
        return points

    @property
    def size(self) -> int:
        return len(self.points)


class SessionState(BaseModel):
    active_script_id: Optional[str] = None
    is_running: bool = False
    points: List[Point] = Field(default_factory=list)
    clusters: List[Cluster] = Field(default_factory=list)
    step: SessionStep = SessionStep.WAITING
    explanations: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _stopped_session_is_empty(self) -> "SessionState":
        if not self.is_running and (self.points or self.clusters):
            raise ValueError("A stopped session cannot hold points or clusters")
        return self

    def find_point(self, point_id: str) -> Optional[Point]:
        return next((point for point in self.points if point.id == point_id), None)


class ClusterSummary(BaseModel):
    """Aggregated statistics for one clustering pass."""

    total_clusters: int = Field(..., ge=0)
    total_points: int = Field(..., ge=0)
    avg_cluster_size: float = Field(..., ge=0.0)

    @classmethod
    def from_clusters(cls, clusters: List[Cluster], total_points: int) -> "ClusterSummary":
        total_clusters = len(clusters)
        avg_cluster_size = (
            round(total_points / total_clusters, 1) if total_clusters else 0.0
        )
        return cls(
            total_clusters=total_clusters,
            total_points=total_points,
            avg_cluster_size=avg_cluster_size,
        )

    def explanations(self, algorithm: str, k: int) -> List[str]:
        lines = [
            f"Identified {self.total_clusters} distinct groups",
            f"Total points analyzed: {self.total_points}",
            f"Algorithm used: {algorithm} with k={k}",
        ]
        if self.total_clusters:
            lines.append(f"Average group size: {self.avg_cluster_size:g}")
        return lines
