"""A2A JSON-RPC Routes.

Endpoints протокола A2A поверх JSON-RPC 2.0:
- tasks/send: создать задачу
- tasks/sendSubscribe: создать задачу с подпиской (SSE или webhook)
- tasks/get: получить задачу
- tasks/cancel: отменить задачу
"""

from typing import Any, TypeVar

from fastapi import APIRouter, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from song_agent.api.dependencies import OrchestratorDep
from song_agent.api.schemas import CancelTaskResponse, JsonRpcRequest, JsonRpcResponse, TaskIdParams
from song_agent.api.sse import accepts_event_stream, channel_response, error_response
from song_agent.models.a2a import NotificationMode, TaskSendParams
from song_agent.services.notifications import StreamChannel
from song_agent.shared.errors import (
    RPC_INTERNAL_ERROR,
    AppException,
    InvalidParamsError,
    InvalidRequestError,
    get_trace_id,
)
from song_agent.utils.logging import get_logger

logger = get_logger()

router = APIRouter(prefix="/tasks", tags=["a2a"])

ParamsT = TypeVar("ParamsT", bound=BaseModel)

INVALID_REQUEST_MESSAGE = "Invalid JSON-RPC 2.0 request"

RPC_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"description": "Невалидный JSON-RPC запрос или параметры"},
    500: {"description": "Внутренняя ошибка"},
}


async def _read_envelope(request: Request) -> JsonRpcRequest:
    """Прочитать тело запроса как JSON-RPC envelope (пустой при невалидном JSON)."""
    try:
        body = await request.json()
        return JsonRpcRequest.model_validate(body)
    except ValueError as e:
        logger.warning("Невалидное тело JSON-RPC запроса", path=request.url.path, error=str(e))
        return JsonRpcRequest()


def _require_envelope(rpc: JsonRpcRequest) -> None:
    if not rpc.is_valid_envelope():
        raise InvalidRequestError(INVALID_REQUEST_MESSAGE)


def _parse_params(model: type[ParamsT], params: Any) -> ParamsT:
    try:
        return model.model_validate(params)
    except PydanticValidationError as e:
        raise InvalidParamsError(
            "Invalid params",
            details={"errors": jsonable_encoder(e.errors(include_url=False))},
        ) from e


def _rpc_error(request_id: str | int | None, exc: AppException) -> JSONResponse:
    logger.warning(
        "JSON-RPC ошибка",
        error_code=exc.code,
        rpc_code=exc.rpc_code,
        error_message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=JsonRpcResponse.failure(request_id, exc.to_rpc_error()),
        headers={"X-Error-Code": exc.code, "X-Trace-Id": get_trace_id()},
    )


def _rpc_internal_error(request_id: str | int | None, exc: Exception) -> JSONResponse:
    logger.exception("Необработанная ошибка JSON-RPC", exception_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=JsonRpcResponse.failure(
            request_id,
            {"code": RPC_INTERNAL_ERROR, "message": str(exc) or "Internal server error"},
        ),
        headers={"X-Trace-Id": get_trace_id()},
    )


def _rpc_result(request_id: str | int | None, result: Any) -> JSONResponse:
    return JSONResponse(content=JsonRpcResponse.success(request_id, result))


@router.post(
    "/send",
    summary="tasks/send",
    description="Создаёт задачу генерации песни и ставит её в очередь",
    responses=RPC_RESPONSES,
)
async def send_task(request: Request, orchestrator: OrchestratorDep) -> JSONResponse:
    """Создать задачу (JSON-RPC tasks/send).

    Returns:
        JSON-RPC ответ с сохранённой задачей

    """
    rpc = await _read_envelope(request)

    try:
        _require_envelope(rpc)
        params = _parse_params(TaskSendParams, rpc.params)
        task = orchestrator.create_task(params)
    except AppException as e:
        return _rpc_error(rpc.id, e)
    except Exception as e:
        return _rpc_internal_error(rpc.id, e)

    return _rpc_result(rpc.id, task.to_wire())


@router.post(
    "/sendSubscribe",
    summary="tasks/sendSubscribe",
    description=(
        "Создаёт задачу с подпиской на события. В режиме sse ответ - поток событий, "
        "в режиме webhook сразу возвращается {taskId}"
    ),
    responses={200: {"content": {"text/event-stream": {}}}, **RPC_RESPONSES},
)
async def send_task_subscribe(request: Request, orchestrator: OrchestratorDep) -> Response:
    """Создать задачу с подпиской (JSON-RPC tasks/sendSubscribe).

    Ошибки для клиента с Accept: text/event-stream отправляются одним
    SSE событием error.
    """
    rpc = await _read_envelope(request)
    wants_stream = accepts_event_stream(request)
    task_hint = rpc.params.get("id") if isinstance(rpc.params, dict) else None
    task_hint = str(task_hint) if task_hint else None

    try:
        _require_envelope(rpc)
        params = _parse_params(TaskSendParams, rpc.params)

        notification = params.notification
        if notification is not None and notification.mode == NotificationMode.WEBHOOK and notification.url:
            result = orchestrator.create_task_with_subscription(params)
            return _rpc_result(rpc.id, result)

        channel = StreamChannel()
        task = orchestrator.create_task_with_subscription(params, channel)

    except AppException as e:
        if wants_stream:
            logger.warning("JSON-RPC ошибка в SSE потоке", error_code=e.code, rpc_code=e.rpc_code)
            return error_response(task_hint, e.to_rpc_error())
        return _rpc_error(rpc.id, e)

    except Exception as e:
        if wants_stream:
            logger.exception("Необработанная ошибка в SSE потоке", exception_type=type(e).__name__)
            return error_response(task_hint, {"code": RPC_INTERNAL_ERROR, "message": str(e) or "Internal server error"})
        return _rpc_internal_error(rpc.id, e)

    return channel_response(channel, lambda: orchestrator.unsubscribe_stream(task.id, channel))


@router.post(
    "/get",
    summary="tasks/get",
    description="Возвращает задачу по id",
    responses=RPC_RESPONSES,
)
async def get_task(request: Request, orchestrator: OrchestratorDep) -> JSONResponse:
    """Получить задачу (JSON-RPC tasks/get)."""
    rpc = await _read_envelope(request)

    try:
        _require_envelope(rpc)
        params = _parse_params(TaskIdParams, rpc.params)
        task = orchestrator.get_task(params.id)
    except AppException as e:
        return _rpc_error(rpc.id, e)
    except Exception as e:
        return _rpc_internal_error(rpc.id, e)

    return _rpc_result(rpc.id, task.to_wire())


@router.post(
    "/cancel",
    summary="tasks/cancel",
    description="Отменяет задачу по id",
    responses=RPC_RESPONSES,
)
async def cancel_task(request: Request, orchestrator: OrchestratorDep) -> JSONResponse:
    """Отменить задачу (JSON-RPC tasks/cancel)."""
    rpc = await _read_envelope(request)

    try:
        _require_envelope(rpc)
        params = _parse_params(TaskIdParams, rpc.params)
        cancelled = orchestrator.cancel_task(params.id)
    except AppException as e:
        return _rpc_error(rpc.id, e)
    except Exception as e:
        return _rpc_internal_error(rpc.id, e)

    return _rpc_result(rpc.id, CancelTaskResponse(task_id=params.id, cancelled=cancelled).to_wire())
