"""Помощники для Server-Sent Events ответов."""

from collections.abc import AsyncIterator, Callable

from fastapi import Request
from fastapi.responses import StreamingResponse

from song_agent.models.a2a import EventType, PushNotificationEvent
from song_agent.services.notifications import StreamChannel, encode_sse_event
from song_agent.utils.logging import get_logger

logger = get_logger()

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def accepts_event_stream(request: Request) -> bool:
    """Клиент ожидает SSE (Accept: text/event-stream)."""
    return SSE_MEDIA_TYPE in request.headers.get("accept", "")


def sse_response(frames: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(frames, media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS)


def channel_response(channel: StreamChannel, on_close: Callable[[], None]) -> StreamingResponse:
    """SSE ответ из канала подписчика.

    on_close вызывается при любом завершении потока, в том числе
    при отключении клиента.
    """

    async def frames() -> AsyncIterator[str]:
        try:
            async for frame in channel:
                yield frame
        finally:
            channel.close()
            on_close()
            logger.debug("SSE поток завершён", task_id=channel.task_id)

    return sse_response(frames())


def error_response(task_id: str | None, error: dict) -> StreamingResponse:
    """SSE ответ из одного события error."""
    event = PushNotificationEvent(type=EventType.ERROR, task_id=task_id or "unknown", data=error)

    async def frames() -> AsyncIterator[str]:
        yield encode_sse_event(event)

    return sse_response(frames())
