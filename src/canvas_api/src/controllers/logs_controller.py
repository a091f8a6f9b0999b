from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Query

from canvas_api.src.utils.logging_utils import get_recent_logs

router = APIRouter(prefix="/v1/logs", tags=["Logs"])


@router.get("/recent", summary="Fetch recent service logs, oldest first")
def recent_logs(
    limit: Annotated[int, Query(ge=1, le=1000)] = 200,
    channel: Annotated[Optional[str], Query(description="Only records bound to this channel")] = None,
) -> dict[str, object]:
    logs = get_recent_logs(limit, channel=channel)
    return {"logs": logs, "count": len(logs), "channel": channel}
