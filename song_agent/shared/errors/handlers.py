"""Обработчики исключений REST endpoints.

JSON-RPC маршруты формируют ошибки сами (см. api/routes/a2a.py), сюда
попадают только ошибки обычных HTTP роутов.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from song_agent.shared.errors.base import AppException
from song_agent.shared.errors.context import get_trace_id
from song_agent.shared.errors.schemas import ErrorResponse


def error_json(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Собрать JSONResponse с ErrorResponse и служебными заголовками."""
    trace_id = get_trace_id()
    body = ErrorResponse(error=code, message=message, details=details or {}, trace_id=trace_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers={"X-Error-Code": code, "X-Trace-Id": trace_id},
    )


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    log = logger.bind(path=request.url.path, error_code=exc.code)
    if exc.status_code >= 500:
        log.error("Ошибка обработки запроса: {}", exc.message)
    else:
        log.warning("Запрос отклонён: {}", exc.message)

    return error_json(exc.status_code, exc.code, exc.message, exc.details)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    logger.warning("Невалидный запрос", path=request.url.path, errors_count=len(errors))

    return error_json(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Ошибка валидации входных данных",
        {"errors": errors},
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    """Непредвиденная ошибка: полный traceback в лог, клиенту общий ответ."""
    logger.opt(exception=exc).error(
        "Необработанное исключение {}",
        type(exc).__name__,
        path=request.url.path,
    )

    return error_json(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        AppException.code,
        AppException.default_message,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Подключить обработчики к приложению."""
    handlers: list[tuple[type[Exception], Any]] = [
        (AppException, handle_app_exception),
        (RequestValidationError, handle_validation_error),
        (Exception, handle_unexpected),
    ]
    for exc_class, handler in handlers:
        app.add_exception_handler(exc_class, handler)

    logger.debug("Обработчики исключений зарегистрированы", count=len(handlers))
