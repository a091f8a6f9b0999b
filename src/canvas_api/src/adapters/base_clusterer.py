"""Shared abstraction for clustering engines driven by a channel router.

The router only depends on this contract so tests and previews can swap the
engine without touching session handling.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from canvas_api.src.models.data_models import Cluster, Point


class BaseClusterer(abc.ABC):
    """Common contract for clustering adapters."""

    name: str = "clusterer"

    @abc.abstractmethod
    def cluster(self, points: Sequence[Point], k: int) -> list[Cluster]:
        """Partition ``points`` into at most ``k`` non-empty clusters."""
