from __future__ import annotations

from dataclasses import asdict, dataclass

from fastapi import APIRouter, Request

router = APIRouter(prefix="/v1/metrics", tags=["Metrics"])


@dataclass(frozen=True, slots=True)
class MetricsResponse:
    latest: dict[str, dict[str, object]]

    def to_dict(self) -> dict[str, dict[str, dict[str, object]]]:
        return {"latest": self.latest}


@router.get("/latest", summary="Fetch the latest clustering metrics per channel")
def get_latest_metrics(request: Request) -> dict[str, dict[str, dict]]:
    latest = request.app.state.registry.metrics.get_latest()
    payload = {channel: asdict(record) for channel, record in latest.items()}
    return MetricsResponse(latest=payload).to_dict()


@router.get("/{channel}/history", summary="Fetch stored clustering metrics for a channel")
def get_metrics_history(channel: str, request: Request) -> dict[str, object]:
    history = request.app.state.registry.metrics.get_history(channel)
    return {"channel": channel, "history": [asdict(record) for record in history]}
