from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from canvas_api.src.config import CanvasConfig, config
from canvas_api.src.controllers.channel_controller import router as channel_api
from canvas_api.src.controllers.demo_controller import router as demo_api
from canvas_api.src.controllers.health_controller import health_api
from canvas_api.src.controllers.logs_controller import router as logs_api
from canvas_api.src.controllers.metrics_controller import router as metrics_api
from canvas_api.src.models.errors import CommandError, InvalidArgumentError
from canvas_api.src.services.channel_registry import ChannelRegistry
from canvas_api.src.utils.logging_utils import configure_logger, log_warning


def _format_validation_errors(errors) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in errors
    )


async def _command_error_handler(request: Request, exc: CommandError) -> JSONResponse:
    log_warning(f"command rejected: {exc.message}", path=request.url.path, error=exc.error)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _validation_error_handler(request: Request, exc) -> JSONResponse:
    detail = _format_validation_errors(exc.errors())
    log_warning(f"invalid payload: {detail}", path=request.url.path)
    return JSONResponse(
        status_code=InvalidArgumentError.status_code,
        content={"error": InvalidArgumentError.error, "detail": detail},
    )


def create_app(
    registry: Optional[ChannelRegistry] = None, settings: CanvasConfig = config,
) -> FastAPI:
    configure_logger(settings.app.log_level, settings.app.log_buffer_size)
    app = FastAPI(title="Canvas Clustering API", version=str(settings.version))
    app.state.settings = settings
    app.state.registry = registry or ChannelRegistry.from_config(settings)
    app.add_exception_handler(CommandError, _command_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.include_router(health_api)
    app.include_router(demo_api)
    app.include_router(channel_api)
    app.include_router(metrics_api)
    app.include_router(logs_api)
    return app
