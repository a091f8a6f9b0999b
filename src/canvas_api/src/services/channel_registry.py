from __future__ import annotations

import re
import threading
from collections.abc import Callable, Sequence

from canvas_api.src.adapters.base_clusterer import BaseClusterer
from canvas_api.src.adapters.kmeans_clusterer import KMeansClusterer
from canvas_api.src.config import CanvasConfig, DemoDefinition
from canvas_api.src.models.errors import InvalidArgumentError
from canvas_api.src.services.command_router import CommandRouter
from canvas_api.src.services.metrics_service import MetricsService
from canvas_api.src.utils.logging_utils import log_info

CHANNEL_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")


class ChannelRegistry:
    """Owns one CommandRouter per named channel; channels never share state."""

    def __init__(
        self,
        demos: Sequence[DemoDefinition],
        clusterer_factory: Callable[[], BaseClusterer] | None = None,
        metrics: MetricsService | None = None,
        processing_delay: float = 0.0,
        default_k: int = 3,
    ) -> None:
        self._demos = list(demos)
        self._factory = clusterer_factory or KMeansClusterer
        self.metrics = metrics or MetricsService()
        self._processing_delay = processing_delay
        self._default_k = default_k
        self._routers: dict[str, CommandRouter] = {}
        # sync handlers such as health run in worker threads
        self._routers_lock = threading.Lock()

    @classmethod
    def from_config(cls, settings: CanvasConfig) -> "ChannelRegistry":
        seed = settings.clustering.seed
        return cls(
            demos=settings.demos,
            clusterer_factory=lambda: KMeansClusterer(seed=seed),
            processing_delay=settings.clustering.processing_delay_seconds,
            default_k=settings.clustering.default_k,
        )

    @property
    def demos(self) -> list[DemoDefinition]:
        return list(self._demos)

    def channels(self) -> list[str]:
        with self._routers_lock:
            return sorted(self._routers)

    def get(self, channel: str) -> CommandRouter:
        """Return the channel's router, creating it on first use."""
        if not CHANNEL_PATTERN.fullmatch(channel):
            raise InvalidArgumentError(f"Invalid channel name: {channel!r}")
        with self._routers_lock:
            router = self._routers.get(channel)
            if router is not None:
                return router
            router = CommandRouter(
                channel=channel,
                demos=self._demos,
                clusterer=self._factory(),
                metrics=self.metrics,
                processing_delay=self._processing_delay,
                default_k=self._default_k,
            )
            self._routers[channel] = router
        log_info("channel created", channel=channel)
        return router
