"""Task Orchestrator - координация жизненного цикла задач.

Orchestrator связывает TaskStore, TaskStateManager, TaskQueue и сервисы
уведомлений. НЕ содержит бизнес-логику генерации - она в pipeline.

Example:
    >>> orchestrator = TaskOrchestrator(store, state_manager, queue, streaming, push)
    >>> task = orchestrator.create_task(params)
    >>> orchestrator.cancel_task(task.id)
    >>> await orchestrator.stop()

"""

from typing import Any

from song_agent.models.a2a import (
    NotificationConfig,
    NotificationMode,
    QueueStatus,
    Task,
    TaskSendParams,
    TaskStatus,
    WebhookSubscription,
)
from song_agent.services.notifications.streaming_service import StreamChannel, StreamingService
from song_agent.services.notifications.webhook_service import PushNotificationService
from song_agent.services.task.task_queue import TaskQueue
from song_agent.services.task.task_state_manager import TaskStateManager
from song_agent.services.task.task_store import TaskStore
from song_agent.shared.errors import InvalidParamsError, TaskNotFoundError
from song_agent.utils.logging import get_logger

logger = get_logger()


class TaskOrchestrator:
    """Orchestrator для координации задач.

    Orchestrator pattern: координирует компоненты, НЕ содержит логику.
    Делегирует ответственности:
    - TaskStore: хранение и история
    - TaskStateManager: переходы состояний
    - TaskQueue: планирование и выполнение pipeline
    - StreamingService / PushNotificationService: доставка событий

    Attributes:
        task_store: Хранилище задач
        state_manager: Manager переходов состояний
        queue: Очередь задач
        streaming_service: SSE подписки
        push_service: Webhook подписки

    """

    def __init__(
        self,
        task_store: TaskStore,
        state_manager: TaskStateManager,
        queue: TaskQueue,
        streaming_service: StreamingService,
        push_service: PushNotificationService,
    ) -> None:
        """Инициализировать TaskOrchestrator.

        Регистрирует listener store, который пересылает изменения
        в оба сервиса уведомлений.

        Args:
            task_store: TaskStore instance
            state_manager: TaskStateManager instance
            queue: TaskQueue instance
            streaming_service: StreamingService instance
            push_service: PushNotificationService instance

        """
        self.task_store = task_store
        self.state_manager = state_manager
        self.queue = queue
        self.streaming_service = streaming_service
        self.push_service = push_service

        self.task_store.add_status_listener(self._on_task_update)

        logger.info("TaskOrchestrator инициализирован")

    # =================================================================
    # Создание задач
    # =================================================================

    def create_task(self, params: TaskSendParams) -> Task:
        """Создать задачу и поставить её в очередь.

        Args:
            params: Параметры tasks/send

        Returns:
            Сохранённая задача (SUBMITTED)

        Raises:
            InvalidParamsError: Нет текстовой части с непустым текстом
            DuplicateTaskError: Задача с таким id уже существует

        """
        task = self._store_task(params)
        self.queue.enqueue_task(task)
        return task

    def create_task_with_subscription(
        self,
        params: TaskSendParams,
        channel: StreamChannel | None = None,
    ) -> Task | dict[str, Any]:
        """Создать задачу с подпиской на события.

        Webhook режим с url: регистрирует webhook и возвращает {taskId}.
        Иначе подписывает переданный SSE канал. Подписка выполняется
        до постановки в очередь, поэтому ни одно событие не теряется.

        Args:
            params: Параметры tasks/sendSubscribe
            channel: SSE канал клиента (для режима sse)

        Returns:
            {taskId} для webhook режима, иначе сохранённая задача

        """
        task = self._store_task(params)
        notification = params.notification

        if notification is not None and notification.mode == NotificationMode.WEBHOOK and notification.url:
            self.push_service.subscribe_webhook(task.id, notification)
            self.queue.enqueue_task(task)

            logger.info("Задача создана с webhook подпиской", task_id=task.id, url=notification.url)

            return {"taskId": task.id}

        if channel is not None:
            self.streaming_service.subscribe(task.id, channel)

        self.queue.enqueue_task(task)

        logger.info("Задача создана с SSE подпиской", task_id=task.id, has_channel=channel is not None)

        return task

    def _store_task(self, params: TaskSendParams) -> Task:
        if params.message is None or not params.message.has_prompt():
            msg = "Task must contain a non-empty message text"
            raise InvalidParamsError(msg)

        draft = Task(
            session_id=params.session_id,
            message=params.message,
            metadata=params.metadata,
            accepted_output_modes=params.accepted_output_modes,
        )
        if params.id:
            draft.id = params.id

        task = self.task_store.create_task(draft)

        logger.info("Задача создана", task_id=task.id, session_id=task.session_id)

        return task

    # =================================================================
    # Подписки
    # =================================================================

    def subscribe_stream(self, task_id: str, channel: StreamChannel) -> None:
        """Подписать SSE канал на существующую задачу.

        Для задачи в финальном состоянии сразу отправляется её финальный
        статус, и канал закрывается.

        Raises:
            TaskNotFoundError: Если задача не найдена

        """
        task = self.get_task(task_id)
        self.streaming_service.subscribe(task_id, channel)

        if task.status.state.is_final:
            self.streaming_service.notify_task_update(task)

    def unsubscribe_stream(self, task_id: str, channel: StreamChannel) -> None:
        self.streaming_service.unsubscribe(task_id, channel)

    def subscribe_webhook(self, task_id: str, config: NotificationConfig) -> WebhookSubscription:
        """Зарегистрировать webhook для существующей задачи.

        Raises:
            TaskNotFoundError: Если задача не найдена
            InvalidParamsError: Если url не указан

        """
        self.get_task(task_id)

        if not config.url:
            msg = "Webhook registration requires a url"
            raise InvalidParamsError(msg)

        return self.push_service.subscribe_webhook(task_id, config)

    # =================================================================
    # Отмена
    # =================================================================

    def cancel_task(self, task_id: str) -> bool:
        """Отменить задачу.

        Args:
            task_id: ID задачи

        Returns:
            True если отмена принята очередью

        Raises:
            TaskNotFoundError: Если задача не найдена

        """
        self.get_task(task_id)

        cancelled = self.queue.cancel_task(task_id)
        if cancelled:
            self.state_manager.mark_as_cancelled(task_id)

        logger.info("Запрос отмены задачи", task_id=task_id, cancelled=cancelled)

        return cancelled

    # =================================================================
    # Чтение
    # =================================================================

    def get_task(self, task_id: str) -> Task:
        """Получить задачу.

        Raises:
            TaskNotFoundError: Если задача не найдена

        """
        task = self.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(self, session_id: str | None = None) -> list[Task]:
        """Все задачи, опционально с фильтром по session_id."""
        tasks = self.task_store.list_tasks()
        if session_id is not None:
            tasks = [task for task in tasks if task.session_id == session_id]
        return tasks

    def get_task_history(self, task_id: str) -> list[TaskStatus]:
        """История статусов задачи.

        Raises:
            TaskNotFoundError: Если задача не найдена

        """
        return self.get_task(task_id).history

    def get_queue_status(self) -> QueueStatus:
        return self.queue.get_queue_status()

    # =================================================================
    # Уведомления
    # =================================================================

    def notify_error(self, task_id: str, code: int, message: str, data: Any = None) -> None:
        """Отправить событие ошибки подписчикам задачи (SSE и webhook)."""
        self.streaming_service.notify_error(task_id, code, message, data)
        self.push_service.notify_error(task_id, code, message, data)

    def _on_task_update(self, task: Task) -> None:
        """Listener store: переслать изменение в оба канала доставки."""
        try:
            self.streaming_service.notify_task_update(task)
        except Exception as e:
            logger.exception("Ошибка SSE уведомления", task_id=task.id, error=str(e))

        try:
            self.push_service.notify(task)
        except Exception as e:
            logger.exception("Ошибка webhook уведомления", task_id=task.id, error=str(e))

    # =================================================================
    # Lifecycle
    # =================================================================

    async def stop(self) -> None:
        """Остановить обработку и дождаться доставки webhooks."""
        await self.queue.stop()
        await self.push_service.aclose()

        logger.info("TaskOrchestrator остановлен")


# Singleton instance
_orchestrator_instance: TaskOrchestrator | None = None


def get_task_orchestrator() -> TaskOrchestrator:
    """Получить singleton instance TaskOrchestrator.

    Returns:
        Глобальный экземпляр TaskOrchestrator

    Raises:
        RuntimeError: Если orchestrator не инициализирован

    """
    if _orchestrator_instance is None:
        msg = "TaskOrchestrator не инициализирован. Вызовите create_task_orchestrator() сначала."
        raise RuntimeError(msg)

    return _orchestrator_instance


def create_task_orchestrator(
    task_store: TaskStore,
    state_manager: TaskStateManager,
    queue: TaskQueue,
    streaming_service: StreamingService,
    push_service: PushNotificationService,
) -> TaskOrchestrator:
    """Создать и инициализировать TaskOrchestrator.

    Returns:
        TaskOrchestrator instance

    """
    global _orchestrator_instance

    _orchestrator_instance = TaskOrchestrator(
        task_store=task_store,
        state_manager=state_manager,
        queue=queue,
        streaming_service=streaming_service,
        push_service=push_service,
    )

    return _orchestrator_instance


# Для тестирования
def set_task_orchestrator(orchestrator: TaskOrchestrator | None) -> None:
    """Установить custom instance (для тестов).

    Args:
        orchestrator: Custom TaskOrchestrator instance

    """
    global _orchestrator_instance
    _orchestrator_instance = orchestrator
