"""Authoritative mutator and broadcaster for one demo channel.

All mutations and their broadcasts run under a single asyncio lock, so every
subscriber receives events in the order the router accepted the commands.
Fan-out is a synchronous ``put_nowait`` on each subscriber's unbounded queue;
a slow reader therefore never reorders or drops another reader's events.
"""

from __future__ import annotations

import asyncio
import math
import uuid
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

import numpy as np

from canvas_api.src.adapters.base_clusterer import BaseClusterer
from canvas_api.src.adapters.kmeans_clusterer import KMeansClusterer, annotate_points
from canvas_api.src.config import DemoDefinition
from canvas_api.src.models.commands import (
    AddPointCommand,
    ClearPointsCommand,
    Command,
    MovePointCommand,
    RemovePointCommand,
    RunClusteringCommand,
    StartCommand,
    StopCommand,
)
from canvas_api.src.models.data_models import (
    Cluster,
    ClusterSummary,
    Point,
    SessionState,
    SessionStep,
)
from canvas_api.src.models.errors import (
    ComputationFailure,
    InvalidArgumentError,
    NotFoundError,
)
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
)
from canvas_api.src.services.metrics_service import MetricsService
from canvas_api.src.services.session_service import DemoSession
from canvas_api.src.utils.latency import measure_latency
from canvas_api.src.utils.logging_utils import log_error, log_info, log_warning

CLEARED_EXPLANATIONS = ["Points cleared", "Add new points to continue"]
RUNNING_EXPLANATIONS = ["Running the K-Means algorithm...", "Looking for patterns in the data"]
FAILED_EXPLANATIONS = ["Clustering failed", "Try again"]


@dataclass(eq=False)
class Subscription:
    """One connection's view of a channel: an ordered queue of outgoing messages."""

    id: str
    channel: str
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)

    def deliver(self, message: ChannelEventBase | CommandRejected) -> None:
        self.queue.put_nowait(message)

    async def next_message(self) -> ChannelEventBase | CommandRejected:
        return await self.queue.get()

    def drain(self) -> list[ChannelEventBase | CommandRejected]:
        """Return every queued message without waiting."""
        messages = []
        while not self.queue.empty():
            messages.append(self.queue.get_nowait())
        return messages


@dataclass(frozen=True)
class ClusteringTicket:
    generation: int
    k: int


def _require_coordinate(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgumentError(f"Coordinate '{name}' must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidArgumentError(f"Coordinate '{name}' must be finite, got {value!r}")
    return float(value)


class CommandRouter:
    """Applies presenter commands to a channel session and fans out the resulting events."""

    def __init__(
        self,
        channel: str,
        demos: Sequence[DemoDefinition],
        clusterer: BaseClusterer | None = None,
        metrics: MetricsService | None = None,
        processing_delay: float = 0.0,
        default_k: int = 3,
    ) -> None:
        self.channel = channel
        self._demos = {demo.id: demo for demo in demos}
        self._clusterer = clusterer or KMeansClusterer()
        self._metrics = metrics or MetricsService()
        self._processing_delay = processing_delay
        self._default_k = default_k
        self._session = DemoSession()
        self._subscribers: dict[str, Subscription] = {}
        self._lock = asyncio.Lock()
        self._sequence = 0
        # bumped on start/stop so a clustering pass outliving its session is dropped
        self._generation = 0

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def processing_delay(self) -> float:
        return self._processing_delay

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def snapshot(self) -> SessionState:
        return self._session.snapshot()

    async def status(self) -> SessionSnapshot:
        """Sequence number and state read together, consistent with the event stream."""
        async with self._lock:
            return SessionSnapshot(
                channel=self.channel,
                sequence=self._sequence,
                state=self._session.snapshot(),
            )

    async def subscribe(self) -> Subscription:
        """Register a subscriber whose first message is a snapshot of the current state."""
        async with self._lock:
            subscription = Subscription(id=uuid.uuid4().hex, channel=self.channel)
            subscription.deliver(
                SessionSnapshot(
                    channel=self.channel,
                    sequence=self._sequence,
                    state=self._session.snapshot(),
                )
            )
            self._subscribers[subscription.id] = subscription
        log_info(
            "subscriber joined",
            channel=self.channel,
            subscriber=subscription.id,
            subscribers=len(self._subscribers),
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscribers.pop(subscription.id, None) is not None:
            log_info("subscriber left", channel=self.channel, subscriber=subscription.id)

    async def dispatch(self, command: Command) -> Any:
        match command:
            case StartCommand():
                return await self.start(command.script_id)
            case AddPointCommand():
                return await self.add_point(command.x, command.y, point_id=command.id)
            case MovePointCommand():
                return await self.move_point(command.id, command.x, command.y)
            case RemovePointCommand():
                return await self.remove_point(command.id)
            case ClearPointsCommand():
                return await self.clear_points()
            case RunClusteringCommand():
                return await self.run_clustering(command.k)
            case StopCommand():
                return await self.stop()
            case _:
                raise InvalidArgumentError(f"Unsupported command: {command!r}")

    async def start(self, script_id: str) -> SessionStarted:
        demo = self._demos.get(script_id)
        if demo is None:
            raise NotFoundError(f"Demo '{script_id}' not found")
        explanations = [f'Demo "{demo.name}" started', "Click to add data points"]
        async with self._lock:
            self._session.start(demo, explanations)
            self._generation += 1
            event = self._broadcast(
                SessionStarted(
                    script_id=demo.id,
                    demo=asdict(demo),
                    default_params=dict(demo.default_params),
                    explanations=explanations,
                )
            )
        log_info("session started", channel=self.channel, script_id=script_id)
        return event

    async def add_point(self, x: Any, y: Any, point_id: str | None = None) -> Point:
        x_value = _require_coordinate("x", x)
        y_value = _require_coordinate("y", y)
        if point_id is not None and (not isinstance(point_id, str) or not point_id):
            raise InvalidArgumentError("Point id must be a non-empty string")
        async with self._lock:
            point = Point(id=point_id or uuid.uuid4().hex, x=x_value, y=y_value)
            self._session.add_point(point)
            self._broadcast(PointAdded(point=point.model_copy()))
            return point.model_copy()

    async def move_point(self, point_id: str, x: Any, y: Any) -> Point:
        x_value = _require_coordinate("x", x)
        y_value = _require_coordinate("y", y)
        async with self._lock:
            point = self._session.move_point(point_id, x_value, y_value)
            self._broadcast(PointMoved(id=point_id, x=x_value, y=y_value))
            return point.model_copy()

    async def remove_point(self, point_id: str) -> Point:
        async with self._lock:
            point = self._session.remove_point(point_id)
            self._broadcast(PointRemoved(id=point_id))
            return point

    async def clear_points(self) -> PointsCleared:
        async with self._lock:
            self._session.clear_points(CLEARED_EXPLANATIONS)
            return self._broadcast(PointsCleared(explanations=list(CLEARED_EXPLANATIONS)))

    async def run_clustering(self, k: int | None = None) -> list[Cluster]:
        """Announce, compute and publish one clustering pass."""
        ticket = await self.begin_clustering(k)
        return await self.finish_clustering(ticket)

    async def begin_clustering(self, k: int | None = None) -> ClusteringTicket:
        """Validate and broadcast ``clustering-started``; the pass itself runs in finish_clustering."""
        requested = self._default_k if k is None else k
        if isinstance(requested, bool) or not isinstance(requested, int) or requested <= 0:
            raise InvalidArgumentError(f"k must be a positive integer, got {requested!r}")
        async with self._lock:
            self._session.begin_clustering(RUNNING_EXPLANATIONS)
            self._broadcast(ClusteringStarted(explanations=list(RUNNING_EXPLANATIONS)))
            return ClusteringTicket(generation=self._generation, k=requested)

    async def finish_clustering(self, ticket: ClusteringTicket) -> list[Cluster]:
        if self._processing_delay > 0:
            await asyncio.sleep(self._processing_delay)
        async with self._lock:
            if (
                ticket.generation != self._generation
                or self._session.step != SessionStep.CLUSTERING_RUNNING
            ):
                log_warning("discarding clustering pass for a finished session", channel=self.channel)
                return []
            points = [point.model_copy() for point in self._session.state.points]
            effective_k = min(ticket.k, len(points))
            try:
                with measure_latency() as latency:
                    clusters = self._clusterer.cluster(points, effective_k)
            except Exception as exc:
                log_error(
                    f"clustering failed: {exc}",
                    channel=self.channel,
                    k=effective_k,
                    points=len(points),
                )
                self._session.fail_clustering(FAILED_EXPLANATIONS)
                self._broadcast(ClusteringFailed(explanations=list(FAILED_EXPLANATIONS)))
                raise ComputationFailure(f"Clustering failed: {exc}") from exc

            annotated = annotate_points(points, clusters)
            summary = ClusterSummary.from_clusters(clusters, len(points))
            explanations = summary.explanations(self._clusterer.name, effective_k)
            self._session.complete_clustering(annotated, clusters, explanations)
            self._broadcast(
                ClusteringComplete(
                    clusters=[cluster.model_copy(deep=True) for cluster in clusters],
                    points=[point.model_copy() for point in annotated],
                    explanations=explanations,
                )
            )
            log_info(
                f"clustering complete in {latency.seconds:.3f}s",
                channel=self.channel,
                clusters=len(clusters),
                points=len(points),
            )
            self._record_metrics(annotated, effective_k, latency.ms)
            return [cluster.model_copy(deep=True) for cluster in clusters]

    async def stop(self) -> SessionEnded:
        async with self._lock:
            was_running = self._session.state.is_running
            self._session.reset()
            self._generation += 1
            event = self._broadcast(SessionEnded())
        log_info("session ended", channel=self.channel, was_running=was_running)
        return event

    def reject(self, subscription: Subscription, error: str, detail: str, command: str | None = None) -> None:
        """Report a failed command to its sender only."""
        subscription.deliver(CommandRejected(error=error, detail=detail, command=command))
        log_warning(f"command rejected: {detail}", channel=self.channel, error=error, command=command)

    def _broadcast(self, event: ChannelEventBase) -> ChannelEventBase:
        self._sequence += 1
        event.channel = self.channel
        event.sequence = self._sequence
        for subscription in self._subscribers.values():
            subscription.deliver(event)
        log_info(
            f"broadcast {event.type}",
            channel=self.channel,
            sequence=event.sequence,
            subscribers=len(self._subscribers),
        )
        return event

    def _record_metrics(self, points: list[Point], k: int, latency_ms: float) -> None:
        assigned = [point for point in points if point.cluster_id is not None]
        features = np.array([[point.x, point.y] for point in assigned], dtype=float).reshape(-1, 2)
        labels = np.array([point.cluster_id for point in assigned], dtype=int)
        self._metrics.evaluate(
            features, labels, channel=self.channel, requested_k=k, latency_ms=latency_ms,
        )
