from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Request, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, StrictInt, ValidationError

from canvas_api.src.models.commands import Coordinate, parse_command
from canvas_api.src.models.data_models import Point
from canvas_api.src.models.errors import CommandError, ComputationFailure, InvalidArgumentError
from canvas_api.src.services.channel_registry import ChannelRegistry
from canvas_api.src.services.command_router import ClusteringTicket, CommandRouter, Subscription
from canvas_api.src.utils.logging_utils import log_info, log_warning

router = APIRouter(prefix="/v1/channels", tags=["Channels"])

ROLES = ("presenter", "audience")


class StartPayload(BaseModel):
    script_id: str = Field(..., min_length=1)


class PointPayload(BaseModel):
    x: Coordinate
    y: Coordinate
    id: Optional[str] = None


class MovePayload(BaseModel):
    x: Coordinate
    y: Coordinate


class ClusteringPayload(BaseModel):
    k: Optional[StrictInt] = None


async def get_registry(request: Request) -> ChannelRegistry:
    return request.app.state.registry


async def get_command_router(
    channel: str, registry: ChannelRegistry = Depends(get_registry),
) -> CommandRouter:
    return registry.get(channel)


def _event_response(event) -> dict[str, Any]:
    return event.model_dump(mode="json")


@router.get("/{channel}/status", summary="Snapshot of the channel's session")
async def get_status(command_router: CommandRouter = Depends(get_command_router)) -> dict[str, Any]:
    status = await command_router.status()
    return {
        "channel": command_router.channel,
        "sequence": status.sequence,
        "subscribers": command_router.subscriber_count,
        "state": status.state.model_dump(mode="json"),
    }


@router.post("/{channel}/start", summary="Start a demo on the channel")
async def start_session(
    payload: StartPayload, command_router: CommandRouter = Depends(get_command_router),
):
    return _event_response(await command_router.start(payload.script_id))


@router.post("/{channel}/points", summary="Add a point", status_code=201)
async def add_point(
    payload: PointPayload, command_router: CommandRouter = Depends(get_command_router),
) -> Point:
    return await command_router.add_point(payload.x, payload.y, point_id=payload.id)


@router.patch("/{channel}/points/{point_id}", summary="Move a point")
async def move_point(
    point_id: str,
    payload: MovePayload,
    command_router: CommandRouter = Depends(get_command_router),
) -> Point:
    return await command_router.move_point(point_id, payload.x, payload.y)


@router.delete("/{channel}/points/{point_id}", summary="Remove a point")
async def remove_point(
    point_id: str, command_router: CommandRouter = Depends(get_command_router),
):
    removed = await command_router.remove_point(point_id)
    return {"id": removed.id, "remaining_points": len(command_router.snapshot().points)}


@router.delete("/{channel}/points", summary="Clear all points")
async def clear_points(command_router: CommandRouter = Depends(get_command_router)):
    return _event_response(await command_router.clear_points())


async def _finish_clustering(command_router: CommandRouter, ticket: ClusteringTicket) -> None:
    try:
        await command_router.finish_clustering(ticket)
    except ComputationFailure as exc:
        # already broadcast to the channel as clustering-failed
        log_warning(f"clustering pass failed: {exc}", channel=command_router.channel)


@router.post("/{channel}/clustering", summary="Run K-Means on the channel's points", status_code=202)
async def run_clustering(
    background_tasks: BackgroundTasks,
    payload: Optional[ClusteringPayload] = None,
    command_router: CommandRouter = Depends(get_command_router),
):
    ticket = await command_router.begin_clustering(payload.k if payload else None)
    background_tasks.add_task(_finish_clustering, command_router, ticket)
    return {
        "message": "Clustering started",
        "k": ticket.k,
        "estimated_seconds": command_router.processing_delay,
    }


@router.post("/{channel}/stop", summary="Stop the channel's session")
async def stop_session(command_router: CommandRouter = Depends(get_command_router)):
    return _event_response(await command_router.stop())


@router.post("/{channel}/commands", summary="Apply a tagged presenter command")
async def apply_command(
    payload: dict[str, Any] = Body(...),
    command_router: CommandRouter = Depends(get_command_router),
):
    command = parse_command(payload)
    result = await command_router.dispatch(command)
    if isinstance(result, list):
        return {"type": command.type, "clusters": [item.model_dump(mode="json") for item in result]}
    return {"type": command.type, "result": result.model_dump(mode="json")}


async def _forward_messages(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        message = await subscription.next_message()
        try:
            await websocket.send_json(message.model_dump(mode="json"))
        except (WebSocketDisconnect, RuntimeError):
            log_info("stopped forwarding to closed socket", channel=subscription.channel)
            return


async def _handle_incoming(
    command_router: CommandRouter, subscription: Subscription, role: str, raw: str,
) -> None:
    if role != "presenter":
        command_router.reject(subscription, InvalidArgumentError.error, "Audience connections are read-only")
        return
    try:
        command = parse_command(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        command_router.reject(subscription, InvalidArgumentError.error, f"Malformed command: {exc}")
        return
    try:
        await command_router.dispatch(command)
    except CommandError as exc:
        command_router.reject(subscription, exc.error, exc.message, command=command.type)


@router.websocket("/{channel}/ws")
async def channel_socket(websocket: WebSocket, channel: str, role: str = "audience"):
    """Join a channel: receive a snapshot, then every event in order.

    Presenter sockets may also send tagged commands; failures come back to the
    sender only as ``rejected`` messages.
    """
    registry: ChannelRegistry = websocket.app.state.registry
    if role not in ROLES:
        await websocket.close(code=4000, reason=f"Unknown role: {role}")
        return
    try:
        command_router = registry.get(channel)
    except InvalidArgumentError as exc:
        await websocket.close(code=4004, reason=exc.message)
        return

    await websocket.accept()
    subscription = await command_router.subscribe()
    sender = asyncio.create_task(_forward_messages(websocket, subscription))
    log_info("socket joined", channel=channel, role=role, subscriber=subscription.id)
    try:
        while True:
            raw = await websocket.receive_text()
            await _handle_incoming(command_router, subscription, role, raw)
    except WebSocketDisconnect:
        log_info("socket left", channel=channel, role=role, subscriber=subscription.id)
    finally:
        command_router.unsubscribe(subscription)
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender
