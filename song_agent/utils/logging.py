"""Логирование Song Agent на Loguru.

Все записи получают trace_id текущего запроса. В development пишем
цветной текст, в остальных окружениях одну JSON строку на запись.
Стандартный logging (uvicorn, httpx, openai) перенаправляется в Loguru.
"""

import logging
import sys
from typing import TYPE_CHECKING, Any

import orjson
from loguru import logger

from song_agent.config import settings
from song_agent.shared.errors.context import trace_id_var

if TYPE_CHECKING:
    from loguru import Logger

REDACTED_KEYS = frozenset({"password", "token", "secret", "api_key", "access_token", "authorization"})
_REDACTED = "***REDACTED***"

_TEXT_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <8}</level> "
    "<cyan>{name}:{line}</cyan> [<yellow>{extra[trace_id]}</yellow>] <level>{message}</level>"
)

# библиотека -> уровень вне production (в production не ниже WARNING)
_STDLIB_LOGGERS: dict[str, int] = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.INFO,
    "fastapi": logging.INFO,
    "httpx": logging.INFO,
    "openai": logging.INFO,
}
_NOISY_IN_PRODUCTION = {"uvicorn.access", "httpx", "openai"}


class InterceptHandler(logging.Handler):
    """Перенаправляет записи стандартного logging в Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str | int
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # поднимаемся до кадра, который вызвал logging
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def trace_id_patcher(record: dict[str, Any]) -> None:
    record["extra"].setdefault("trace_id", trace_id_var.get() or "-")


def _redact(extra: dict[str, Any]) -> dict[str, Any]:
    return {key: _REDACTED if key.lower() in REDACTED_KEYS else value for key, value in extra.items()}


def json_formatter(record: dict[str, Any]) -> str:
    """Сериализовать запись в одну JSON строку.

    Результат Loguru прогоняет через format_map, поэтому фигурные
    скобки экранируются.
    """
    entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "logger": record["name"],
        "location": f"{record['function']}:{record['line']}",
        "message": record["message"],
        **_redact(record["extra"]),
    }

    exception = record.get("exception")
    if exception:
        entry["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
        }

    line = orjson.dumps(entry, default=str).decode()
    return line.replace("{", "{{").replace("}", "}}") + "\n"


def _add_console_sink() -> None:
    if settings.app_env == "development":
        logger.add(sys.stdout, format=_TEXT_FORMAT, level=settings.log_level, colorize=True, diagnose=True)
    else:
        logger.add(sys.stdout, format=json_formatter, level=settings.log_level, diagnose=False, enqueue=True)


def _add_debug_file_sink() -> None:
    logger.add(
        "logs/song_agent_{time:YYYY-MM-DD}.log",
        format=json_formatter,
        level="DEBUG",
        rotation="50 MB",
        retention="7 days",
        compression="zip",
    )


def setup_logging() -> None:
    """Сконфигурировать Loguru и перехват стандартного logging."""
    logger.remove()
    logger.configure(patcher=trace_id_patcher)

    _add_console_sink()
    if settings.debug:
        _add_debug_file_sink()

    configure_third_party_loggers()
    logger.info("Логирование настроено", level=settings.log_level, env=settings.app_env)


def configure_third_party_loggers() -> None:
    """Направить логи библиотек в Loguru."""
    logging.basicConfig(handlers=[InterceptHandler()], level=logging.INFO, force=True)

    production = settings.app_env == "production"
    for name, level in _STDLIB_LOGGERS.items():
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [InterceptHandler()]
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING if production and name in _NOISY_IN_PRODUCTION else level)


def get_logger(name: str | None = None) -> "Logger":
    """Logger, опционально привязанный к имени компонента."""
    return logger.bind(name=name) if name else logger
