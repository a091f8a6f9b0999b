from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Request

router = APIRouter(prefix="/v1/demos", tags=["Demos"])


@router.get("", summary="List the demos a channel can start")
def list_demos(request: Request) -> dict[str, object]:
    demos = [asdict(demo) for demo in request.app.state.registry.demos]
    return {"demos": demos, "total": len(demos)}
