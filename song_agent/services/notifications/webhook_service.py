"""Push Notification Service - доставка событий задач на webhook.

Отвечает ТОЛЬКО за отправку событий на зарегистрированный URL.
НЕ управляет задачами и НЕ меняет их состояние (SRP).

Доставка best-effort: ошибки логируются, повторы только если
webhook_max_retries > 0. События одной задачи отправляются строго
по порядку.

Example:
    >>> service = PushNotificationService()
    >>> service.subscribe_webhook(task_id, NotificationConfig(mode="webhook", url=url))
    >>> service.notify(task)
    >>> await service.drain()

"""

import asyncio
from typing import Any

import httpx

from song_agent.config import settings
from song_agent.models.a2a import (
    EventType,
    NotificationConfig,
    PushNotificationEvent,
    Task,
    WebhookSubscription,
)
from song_agent.utils.logging import get_logger

logger = get_logger()


class PushNotificationService:
    """Service для webhook уведомлений.

    Single Responsibility: HTTP callbacks с опциональным retry.

    Attributes:
        timeout: HTTP timeout в секундах
        max_retries: Максимум повторов (0 = без повторов)

    """

    def __init__(
        self,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Инициализировать PushNotificationService.

        Args:
            timeout: HTTP timeout (defaults из settings)
            max_retries: Максимум retry (defaults из settings)
            transport: Custom httpx transport (для тестов)

        """
        self.timeout = timeout or settings.webhook_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.webhook_max_retries
        self._transport = transport

        self._subscriptions: dict[str, WebhookSubscription] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._in_flight: dict[str, int] = {}
        self._pending: set[asyncio.Task[bool]] = set()

        logger.info(
            "PushNotificationService инициализирован",
            timeout=self.timeout,
            max_retries=self.max_retries,
        )

    def subscribe_webhook(self, task_id: str, config: NotificationConfig) -> WebhookSubscription:
        """Зарегистрировать webhook для задачи (последняя регистрация побеждает).

        Args:
            task_id: ID задачи
            config: Конфигурация уведомлений с url

        Returns:
            Сохранённая подписка

        Raises:
            ValueError: Если url не указан

        """
        if not config.url:
            msg = "Для webhook уведомлений требуется url"
            raise ValueError(msg)

        subscription = WebhookSubscription(
            task_id=task_id,
            webhook_url=config.url,
            event_types=list(config.event_types),
        )
        self._subscriptions[task_id] = subscription

        logger.info(
            "Webhook зарегистрирован",
            task_id=task_id,
            url=config.url,
            event_types=subscription.event_types,
        )

        return subscription

    def get_subscription(self, task_id: str) -> WebhookSubscription | None:
        return self._subscriptions.get(task_id)

    def notify(self, task: Task) -> None:
        """Запланировать отправку события по обновлению задачи.

        Не финальный статус -> status_update {status, artifacts}.
        Финальный статус -> completion {finalStatus, artifacts}.

        Args:
            task: Текущая версия задачи

        """
        subscription = self._subscriptions.get(task.id)
        if subscription is None:
            return

        status = task.status.to_wire()
        artifacts = [artifact.to_wire() for artifact in task.artifacts or []]

        if task.status.state.is_final:
            event = PushNotificationEvent(
                type=EventType.COMPLETION,
                task_id=task.id,
                data={"finalStatus": status, "artifacts": artifacts},
            )
        else:
            event = PushNotificationEvent(
                type=EventType.STATUS_UPDATE,
                task_id=task.id,
                data={"status": status, "artifacts": artifacts},
            )

        self._schedule(subscription, event)

    def notify_error(self, task_id: str, code: int, message: str, data: Any = None) -> None:
        """Запланировать отправку события ошибки.

        Args:
            task_id: ID задачи
            code: Код ошибки
            message: Сообщение об ошибке
            data: Дополнительные данные

        """
        subscription = self._subscriptions.get(task_id)
        if subscription is None:
            return

        error: dict[str, Any] = {"code": code, "message": message}
        if data is not None:
            error["data"] = data

        self._schedule(subscription, PushNotificationEvent(type=EventType.ERROR, task_id=task_id, data=error))

    async def drain(self) -> None:
        """Дождаться отправки всех запланированных событий."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        """Дождаться доставки и освободить ресурсы (shutdown)."""
        await self.drain()
        self._locks.clear()
        self._in_flight.clear()

    def _schedule(self, subscription: WebhookSubscription, event: PushNotificationEvent) -> None:
        if not subscription.accepts(event.type):
            logger.debug(
                "Событие не входит в подписку webhook",
                task_id=subscription.task_id,
                event_type=event.type.value,
            )
            return

        delivery = asyncio.create_task(self._deliver_in_order(subscription, event))
        self._pending.add(delivery)
        delivery.add_done_callback(self._pending.discard)

    async def _deliver_in_order(self, subscription: WebhookSubscription, event: PushNotificationEvent) -> bool:
        task_id = subscription.task_id
        lock = self._locks.setdefault(task_id, asyncio.Lock())
        self._in_flight[task_id] = self._in_flight.get(task_id, 0) + 1

        try:
            async with lock:
                return await self.send_webhook(subscription.webhook_url, event)
        finally:
            # lock задачи живёт, пока есть доставки в очереди на него
            self._in_flight[task_id] -= 1
            if not self._in_flight[task_id]:
                del self._in_flight[task_id]
                self._locks.pop(task_id, None)

    async def send_webhook(self, webhook_url: str, event: PushNotificationEvent) -> bool:
        """Отправить событие на webhook.

        Args:
            webhook_url: URL для callback
            event: Событие для отправки

        Returns:
            True если webhook отправлен успешно, False иначе

        Note:
            НЕ бросает исключения - логирует ошибки и возвращает False.

        """
        logger.info(
            "Отправка webhook",
            task_id=event.task_id,
            url=webhook_url,
            event_type=event.type.value,
        )

        payload = event.to_wire()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                for attempt in range(self.max_retries + 1):
                    try:
                        response = await client.post(webhook_url, json=payload)
                        response.raise_for_status()

                        logger.info(
                            "Webhook отправлен успешно",
                            task_id=event.task_id,
                            url=webhook_url,
                            status_code=response.status_code,
                            attempt=attempt + 1,
                        )

                        return True

                    except httpx.HTTPError as e:
                        if attempt < self.max_retries:
                            backoff_seconds = 2**attempt
                            logger.warning(
                                "Webhook failed, повтор",
                                task_id=event.task_id,
                                url=webhook_url,
                                attempt=attempt + 1,
                                max_retries=self.max_retries,
                                backoff_seconds=backoff_seconds,
                                error=str(e),
                            )
                            await asyncio.sleep(backoff_seconds)
                        else:
                            raise

        except Exception as e:
            logger.error(
                "Не удалось отправить webhook",
                task_id=event.task_id,
                url=webhook_url,
                total_attempts=self.max_retries + 1,
                error=str(e),
            )
            return False

        return False
