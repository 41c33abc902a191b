"""Streaming Service - доставка событий задач через SSE.

Каждый подписчик получает StreamChannel: очередь готовых SSE frames,
которую HTTP слой отдаёт клиенту через StreamingResponse.

Порядок событий на одно обновление задачи:
    status_update -> artifact (по одному на артефакт) -> completion (если финал)

Example:
    >>> service = StreamingService()
    >>> channel = StreamChannel(task_id)
    >>> service.subscribe(task_id, channel)
    >>> async for frame in channel:
    ...     yield frame

"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import orjson

from song_agent.models.a2a import EventType, PushNotificationEvent, Task, TaskState, TaskStatus
from song_agent.utils.logging import get_logger

logger = get_logger()


def encode_sse_event(event: PushNotificationEvent) -> str:
    """Сформировать SSE frame: `event: <type>` + `data: <json>`."""
    data = orjson.dumps(event.to_wire()).decode("utf-8")
    return f"event: {event.type.value}\ndata: {data}\n\n"


class ChannelClosedError(Exception):
    """Канал уже закрыт (клиент отключился или задача завершена)."""


class StreamChannel:
    """Канал SSE одного подписчика.

    send() не блокирует: frames копятся в очереди, пока клиент их читает.
    """

    _CLOSE = object()

    def __init__(self, task_id: str | None = None) -> None:
        self.task_id = task_id
        self._frames: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: PushNotificationEvent) -> None:
        """Поставить событие в очередь.

        Raises:
            ChannelClosedError: Если канал закрыт

        """
        if self._closed:
            raise ChannelClosedError(self.task_id or "unbound")
        self._frames.put_nowait(encode_sse_event(event))

    def close(self) -> None:
        """Закрыть канал: итерация завершится после уже отправленных frames."""
        if not self._closed:
            self._closed = True
            self._frames.put_nowait(self._CLOSE)

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iter_frames()

    async def _iter_frames(self) -> AsyncIterator[str]:
        while True:
            frame = await self._frames.get()
            if frame is self._CLOSE:
                return
            yield frame


class StreamingService:
    """Service для SSE подписок на задачи.

    Attributes:
        _channels: task_id -> набор открытых каналов

    """

    def __init__(self) -> None:
        """Инициализировать StreamingService."""
        self._channels: dict[str, set[StreamChannel]] = {}
        logger.info("StreamingService инициализирован")

    def subscribe(self, task_id: str, channel: StreamChannel) -> None:
        """Подписать канал на события задачи.

        Сразу отправляет подтверждение status_update(SUBMITTED).

        Args:
            task_id: ID задачи
            channel: Канал подписчика

        """
        channel.task_id = task_id
        self._channels.setdefault(task_id, set()).add(channel)

        ack = TaskStatus(state=TaskState.SUBMITTED)
        self._send(
            task_id,
            channel,
            PushNotificationEvent(
                type=EventType.STATUS_UPDATE,
                task_id=task_id,
                data={"status": ack.to_wire(), "final": False},
            ),
        )

        logger.info("Клиент подписан на SSE события", task_id=task_id, subscribers=self.subscriber_count(task_id))

    def unsubscribe(self, task_id: str, channel: StreamChannel) -> None:
        """Отписать канал (идемпотентно).

        Args:
            task_id: ID задачи
            channel: Канал подписчика

        """
        channels = self._channels.get(task_id)
        if channels is None or channel not in channels:
            return

        channels.discard(channel)
        if not channels:
            del self._channels[task_id]

        logger.info("Клиент отписан от SSE событий", task_id=task_id)

    def has_subscribers(self, task_id: str) -> bool:
        return bool(self._channels.get(task_id))

    def subscriber_count(self, task_id: str) -> int:
        return len(self._channels.get(task_id, ()))

    def notify_task_update(self, task: Task) -> None:
        """Разослать обновление задачи всем подписчикам.

        Для финального состояния после status_update и артефактов
        отправляется completion, затем каналы закрываются.

        Args:
            task: Текущая версия задачи

        """
        if not self.has_subscribers(task.id):
            return

        status = task.status.to_wire()
        is_final = task.status.state.is_final

        self._broadcast(
            task.id,
            PushNotificationEvent(
                type=EventType.STATUS_UPDATE,
                task_id=task.id,
                data={"status": status, "final": is_final},
            ),
        )

        artifacts = task.artifacts or []
        for position, artifact in enumerate(artifacts):
            self._broadcast(
                task.id,
                PushNotificationEvent(
                    type=EventType.ARTIFACT,
                    task_id=task.id,
                    data={
                        "artifact": {
                            "parts": [part.to_wire() for part in artifact.parts],
                            "index": artifact.index,
                            "append": bool(artifact.append),
                            "lastChunk": position == len(artifacts) - 1,
                        },
                    },
                ),
            )

        if is_final:
            self._broadcast(
                task.id,
                PushNotificationEvent(
                    type=EventType.COMPLETION,
                    task_id=task.id,
                    data={"finalStatus": status},
                ),
            )
            self.close_task_channels(task.id)

    def notify_error(self, task_id: str, code: int, message: str, data: Any = None) -> None:
        """Отправить событие ошибки всем подписчикам задачи.

        Args:
            task_id: ID задачи
            code: Код ошибки (JSON-RPC)
            message: Сообщение об ошибке
            data: Дополнительные данные

        """
        error: dict[str, Any] = {"code": code, "message": message}
        if data is not None:
            error["data"] = data

        self._broadcast(
            task_id,
            PushNotificationEvent(type=EventType.ERROR, task_id=task_id, data=error),
        )

    def close_task_channels(self, task_id: str) -> None:
        """Закрыть и удалить все каналы задачи."""
        for channel in self._channels.pop(task_id, set()):
            channel.close()

        logger.debug("SSE каналы задачи закрыты", task_id=task_id)

    def _broadcast(self, task_id: str, event: PushNotificationEvent) -> None:
        for channel in list(self._channels.get(task_id, ())):
            self._send(task_id, channel, event)

    def _send(self, task_id: str, channel: StreamChannel, event: PushNotificationEvent) -> None:
        try:
            channel.send(event)
        except Exception as e:
            logger.warning(
                "Ошибка отправки SSE события, канал отключён",
                task_id=task_id,
                event_type=event.type.value,
                error=str(e),
            )
            self.unsubscribe(task_id, channel)
