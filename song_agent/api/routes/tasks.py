"""Tasks API Routes для Song Agent.

REST endpoints для чтения задач, отмены и подписок на уведомления.
"""

from typing import Any

from fastapi import APIRouter, Query, status
from fastapi.responses import StreamingResponse

from song_agent.api.dependencies import OrchestratorDep
from song_agent.api.schemas import CancelTaskResponse, WebhookRegistrationRequest
from song_agent.api.sse import channel_response
from song_agent.services.notifications import StreamChannel
from song_agent.shared.errors import InvalidParamsError, TaskNotFoundError
from song_agent.utils.logging import get_logger

logger = get_logger()

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get(
    "",
    summary="Список задач",
    description="Возвращает все задачи, опционально только для указанной сессии",
)
async def list_tasks(
    orchestrator: OrchestratorDep,
    session_id: str | None = Query(default=None, description="Фильтр по sessionId"),
) -> list[dict[str, Any]]:
    """Получить список задач.

    Args:
        orchestrator: TaskOrchestrator
        session_id: Фильтр по сессии

    Returns:
        Список задач

    """
    return [task.to_wire() for task in orchestrator.list_tasks(session_id=session_id)]


@router.get(
    "/{task_id}",
    summary="Получить задачу",
    description="Возвращает текущий статус, историю и артефакты задачи",
    responses={404: TaskNotFoundError.openapi_response()},
)
async def get_task(task_id: str, orchestrator: OrchestratorDep) -> dict[str, Any]:
    """Получить задачу.

    Raises:
        TaskNotFoundError: 404 если задача не найдена

    """
    return orchestrator.get_task(task_id).to_wire()


@router.get(
    "/{task_id}/history",
    summary="История статусов задачи",
    responses={404: TaskNotFoundError.openapi_response()},
)
async def get_task_history(task_id: str, orchestrator: OrchestratorDep) -> list[dict[str, Any]]:
    """Получить историю статусов (в хронологическом порядке)."""
    return [entry.to_wire() for entry in orchestrator.get_task_history(task_id)]


@router.post(
    "/{task_id}/cancel",
    summary="Отменить задачу",
    responses={404: TaskNotFoundError.openapi_response()},
)
async def cancel_task(task_id: str, orchestrator: OrchestratorDep) -> dict[str, Any]:
    """Отменить задачу.

    Returns:
        {taskId, cancelled}; cancelled=false если задача уже завершена

    """
    cancelled = orchestrator.cancel_task(task_id)
    return CancelTaskResponse(task_id=task_id, cancelled=cancelled).to_wire()


@router.get(
    "/{task_id}/notifications",
    summary="SSE подписка на задачу",
    description="Открывает поток событий существующей задачи",
    responses={
        200: {"content": {"text/event-stream": {}}},
        404: TaskNotFoundError.openapi_response(),
    },
)
async def subscribe_notifications(task_id: str, orchestrator: OrchestratorDep) -> StreamingResponse:
    """Подписаться на события задачи через SSE.

    Для завершённой задачи поток содержит её финальный статус и закрывается.
    """
    channel = StreamChannel()
    orchestrator.subscribe_stream(task_id, channel)

    return channel_response(channel, lambda: orchestrator.unsubscribe_stream(task_id, channel))


@router.post(
    "/{task_id}/notifications",
    status_code=status.HTTP_201_CREATED,
    summary="Зарегистрировать webhook",
    description="Регистрирует webhook для задачи (последняя регистрация заменяет предыдущую)",
    responses={
        400: InvalidParamsError.openapi_response(),
        404: TaskNotFoundError.openapi_response(),
    },
)
async def register_webhook(
    task_id: str,
    request: WebhookRegistrationRequest,
    orchestrator: OrchestratorDep,
) -> dict[str, Any]:
    """Зарегистрировать webhook.

    Returns:
        Сохранённая подписка {taskId, webhookUrl, eventTypes}

    """
    subscription = orchestrator.subscribe_webhook(task_id, request.to_config())
    return subscription.to_wire()
