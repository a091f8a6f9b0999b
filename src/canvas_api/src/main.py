import uvicorn

from canvas_api.src.app import create_app
from canvas_api.src.config import config
from canvas_api.src.utils.logging_utils import log_info

app = create_app()


def run() -> None:
    log_info(
        "starting canvas api",
        port=config.app.server_port,
        processing_delay=config.clustering.processing_delay_seconds,
    )
    uvicorn.run(
        "canvas_api.src.main:app",
        host="0.0.0.0",
        port=config.app.server_port,
        log_level=config.app.log_level.lower(),
    )


if __name__ == "__main__":
    run()
