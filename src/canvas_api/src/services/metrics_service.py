from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass

import numpy as np
from loguru import logger
from sklearn.metrics import silhouette_score


@dataclass(frozen=True, slots=True)
class ClusteringMetricsRecord:
    """Evaluation of one clustering pass on a channel."""

    timestamp: float
    channel: str
    run_id: int
    n_points: int
    number_of_clusters: int
    requested_k: int
    silhouette_score: float | None
    latency_ms: float


class MetricsService:
    """Compute and keep a bounded history of clustering metrics per channel."""

    def __init__(self, history_size: int = 100) -> None:
        if history_size <= 0:
            msg = f"history_size must be greater than 0, got {history_size}"
            raise ValueError(msg)
        self._history_size = history_size
        self._history: dict[str, deque[ClusteringMetricsRecord]] = {}
        self._runs: dict[str, int] = {}

    def evaluate(
        self,
        features: np.ndarray,
        labels: np.ndarray,
        *,
        channel: str,
        requested_k: int,
        latency_ms: float = 0.0,
    ) -> ClusteringMetricsRecord:
        """Compute metrics for one pass and store the result."""
        if not channel:
            msg = "channel must be a non-empty string"
            raise ValueError(msg)
        data = np.asarray(features, dtype=float)
        label_array = np.asarray(labels)
        if data.ndim != 2:
            msg = f"features must be a 2D array-like structure, got {data.ndim}D"
            raise ValueError(msg)
        if label_array.ndim != 1:
            msg = f"labels must be a 1D array-like structure, got {label_array.ndim}D"
            raise ValueError(msg)
        n_points = int(data.shape[0])
        if n_points != int(label_array.size):
            msg = (
                "features and labels must have matching lengths, "
                f"got {n_points} and {label_array.size}"
            )
            raise ValueError(msg)

        number_of_clusters = len({int(label) for label in label_array.tolist()})
        run_id = self._runs.get(channel, 0) + 1
        self._runs[channel] = run_id
        record = ClusteringMetricsRecord(
            timestamp=time.time(),
            channel=channel,
            run_id=run_id,
            n_points=n_points,
            number_of_clusters=number_of_clusters,
            requested_k=requested_k,
            silhouette_score=self._safe_silhouette_score(data, label_array, number_of_clusters),
            latency_ms=latency_ms,
        )
        self._store(record)
        self._log(record)
        return record

    def get_latest(
        self, channel: str | None = None,
    ) -> ClusteringMetricsRecord | None | dict[str, ClusteringMetricsRecord]:
        """Return the latest record for a channel or for all channels."""
        if channel is None:
            return {
                name: records[-1] for name, records in self._history.items() if records
            }
        records = self._history.get(channel)
        return records[-1] if records else None

    def get_history(self, channel: str) -> tuple[ClusteringMetricsRecord, ...]:
        """Return a read-only copy of stored metrics for a channel."""
        records = self._history.get(channel)
        return tuple(records) if records else ()

    def _store(self, record: ClusteringMetricsRecord) -> None:
        records = self._history.setdefault(
            record.channel,
            deque(maxlen=self._history_size),
        )
        records.append(record)

    def _safe_silhouette_score(
        self, data: np.ndarray, labels: np.ndarray, number_of_clusters: int,
    ) -> float | None:
        # silhouette is defined only for 2 <= n_clusters <= n_samples - 1
        n_points = data.shape[0]
        if number_of_clusters < 2 or number_of_clusters > n_points - 1:
            return None
        return float(silhouette_score(data, labels))

    def _log(self, record: ClusteringMetricsRecord) -> None:
        level = "INFO" if record.number_of_clusters > 1 else "WARNING"
        logger.log(
            level,
            "metrics computed | channel={channel} run={run} n_points={n} "
            "n_clusters={clusters} k={k} silhouette={silhouette} latency_ms={latency:.2f}",
            channel=record.channel,
            run=record.run_id,
            n=record.n_points,
            clusters=record.number_of_clusters,
            k=record.requested_k,
            silhouette=record.silhouette_score,
            latency=record.latency_ms,
        )
