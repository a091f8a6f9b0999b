import sys
from collections import deque

from loguru import logger
LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)

_recent_logs: deque[dict[str, object]] = deque(maxlen=500)


def _buffer_sink(message) -> None:
    record = message.record
    _recent_logs.append(
        {
            "time": record["time"].isoformat(),
            "level": record["level"].name,
            "name": record["name"],
            "function": record["function"],
            "message": record["message"],
            "extra": {key: str(value) for key, value in record["extra"].items()},
        }
    )


def configure_logger(level: str = "INFO", buffer_size: int = 500) -> None:
    """Configure Loguru console logger with colored output and a recent-logs buffer."""
    global _recent_logs
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        colorize=True,
        format=LOG_FORMAT,
        backtrace=True,
        diagnose=True,
    )
    if buffer_size != _recent_logs.maxlen:
        _recent_logs = deque(_recent_logs, maxlen=buffer_size)
    logger.add(_buffer_sink, level=level.upper(), format="{message}")


def get_recent_logs(limit: int = 200, channel: str | None = None) -> list[dict[str, object]]:
    """Return up to ``limit`` buffered records, oldest first, optionally for one channel."""
    if limit <= 0:
        return []
    records = list(_recent_logs)
    if channel is not None:
        records = [record for record in records if record["extra"].get("channel") == channel]
    return records[-limit:]


def clear_recent_logs() -> None:
    _recent_logs.clear()


def log_info(message: str, **kwargs) -> None:
    logger.bind(**kwargs).info(message)


def log_warning(message: str, **kwargs) -> None:
    logger.bind(**kwargs).warning(message)


def log_error(message: str, **kwargs) -> None:
    logger.bind(**kwargs).error(message)
