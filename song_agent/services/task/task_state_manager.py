"""Task State Manager - управление состоянием задач.

Отвечает ТОЛЬКО за переходы состояний задач в TaskStore.
НЕ отвечает за выполнение pipeline и доставку уведомлений (SRP).

Example:
    >>> manager = TaskStateManager(task_store)
    >>> manager.mark_as_working(task_id, "Generating song metadata...")
    >>> manager.apply_update(task_id, TaskState.COMPLETED, message, artifacts)

"""

from song_agent.models.a2a import (
    Message,
    Task,
    TaskArtifact,
    TaskState,
    TaskStatus,
    agent_message,
    is_valid_transition,
)
from song_agent.services.task.task_store import TaskStore
from song_agent.shared.errors import InvalidTransitionError, TaskNotFoundError
from song_agent.utils.logging import get_logger

logger = get_logger()


def _first_text(message: Message | None) -> str | None:
    return message.first_text() if message else None


class TaskStateManager:
    """Manager для управления состоянием задач.

    Single Responsibility: state transitions.
    Тонкий wrapper над TaskStore: проверка state machine, dedup,
    ведение history.

    Attributes:
        task_store: Хранилище задач

    """

    def __init__(self, task_store: TaskStore) -> None:
        """Инициализировать TaskStateManager.

        Args:
            task_store: TaskStore instance

        """
        self.task_store = task_store
        logger.info("TaskStateManager инициализирован")

    def apply_update(
        self,
        task_id: str,
        state: TaskState,
        message: Message | None = None,
        artifacts: list[TaskArtifact] | None = None,
    ) -> Task | None:
        """Применить переход состояния.

        Повтор того же состояния с тем же текстом сообщения не пишется
        в store (listeners не вызываются), в том числе для терминальной задачи.

        Args:
            task_id: ID задачи
            state: Новое состояние
            message: Сообщение агента для статуса
            artifacts: Артефакты (заменяют текущие, если переданы)

        Returns:
            Обновлённая задача или None если обновление подавлено dedup

        Raises:
            TaskNotFoundError: Если задача не найдена
            InvalidTransitionError: Если переход недопустим

        """
        task = self.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        current = task.status.state

        if state == current and _first_text(message) == _first_text(task.status.message):
            logger.debug("Повторное обновление пропущено", task_id=task_id, state=state.value)
            return None

        if current.is_terminal or not is_valid_transition(current, state):
            logger.warning(
                "Недопустимый переход состояния",
                task_id=task_id,
                current=current.value,
                requested=state.value,
            )
            raise InvalidTransitionError(task_id, current.value, state.value)

        status = TaskStatus(state=state, message=message)
        task.status = status
        task.history.append(status)
        if artifacts is not None:
            task.artifacts = artifacts

        updated = self.task_store.update_task(task)

        logger.debug(
            "Статус задачи обновлён",
            task_id=task_id,
            state=state.value,
            history_size=len(updated.history),
        )

        return updated

    def mark_as_working(self, task_id: str, text: str | None = None) -> Task | None:
        """Отметить задачу как обрабатываемую.

        Args:
            task_id: ID задачи
            text: Текст прогресса (опционально)

        """
        return self.apply_update(task_id, TaskState.WORKING, agent_message(text) if text else None)

    def mark_as_failed(self, task_id: str, error_message: str) -> Task | None:
        """Отметить задачу как провалившуюся.

        Args:
            task_id: ID задачи
            error_message: Сообщение об ошибке

        """
        updated = self.apply_update(task_id, TaskState.FAILED, agent_message(error_message))

        logger.error("Задача отмечена как failed", task_id=task_id, error=error_message)

        return updated

    def mark_as_cancelled(self, task_id: str, reason: str = "Task cancelled by user") -> Task | None:
        """Отметить задачу как отменённую.

        Args:
            task_id: ID задачи
            reason: Текст сообщения отмены

        """
        updated = self.apply_update(task_id, TaskState.CANCELLED, agent_message(reason))

        logger.info("Задача отмечена как cancelled", task_id=task_id)

        return updated

    def get_task(self, task_id: str) -> Task | None:
        """Получить задачу из store.

        Args:
            task_id: ID задачи

        Returns:
            Задача или None если не найдена

        """
        return self.task_store.get_task(task_id)
