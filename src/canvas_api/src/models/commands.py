"""Presenter commands accepted by a channel router.

Commands form a closed union discriminated by ``type`` so an unknown or
misspelled command is rejected at parse time instead of being silently ignored.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, TypeAdapter

Coordinate = Union[StrictInt, StrictFloat]


class _Command(BaseModel):
    model_config = ConfigDict(extra="forbid")


class StartCommand(_Command):
    type: Literal["start"] = "start"
    script_id: str = Field(..., min_length=1)


class AddPointCommand(_Command):
    type: Literal["add-point"] = "add-point"
    x: Coordinate
    y: Coordinate
    id: Optional[str] = None


class MovePointCommand(_Command):
    type: Literal["move-point"] = "move-point"
    id: str
    x: Coordinate
    y: Coordinate


class RemovePointCommand(_Command):
    type: Literal["remove-point"] = "remove-point"
    id: str


class ClearPointsCommand(_Command):
    type: Literal["clear-points"] = "clear-points"


class RunClusteringCommand(_Command):
    type: Literal["run-clustering"] = "run-clustering"
    k: Optional[StrictInt] = None


class StopCommand(_Command):
    type: Literal["stop"] = "stop"


Command = Annotated[
    Union[
        StartCommand,
        AddPointCommand,
        MovePointCommand,
        RemovePointCommand,
        ClearPointsCommand,
        RunClusteringCommand,
        StopCommand,
    ],
    Field(discriminator="type"),
]

command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def parse_command(payload: Any) -> Command:
    """Validate a raw JSON payload into a command; raises pydantic.ValidationError."""
    return command_adapter.validate_python(payload)
