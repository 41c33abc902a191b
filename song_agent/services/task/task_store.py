"""Task Store для Song Agent.

In-memory хранилище задач - единственный источник истины о состоянии.

Все изменения задач проходят через update_task(), после успешной записи
синхронно вызываются status listeners (в порядке регистрации).
Хранилище отдаёт копии записей: читатели и listeners не могут изменить
сохранённое состояние.

Example:
    >>> store = TaskStore()
    >>> store.add_status_listener(lambda task: print(task.status.state))
    >>> task = store.create_task(Task(message=message))
    >>> store.update_task(updated_task)

"""

from collections.abc import Callable

from song_agent.models.a2a import Task, TaskState, TaskStatus
from song_agent.shared.errors import DuplicateTaskError, InvalidTransitionError, TaskNotFoundError
from song_agent.utils.logging import get_logger

logger = get_logger()

StatusListener = Callable[[Task], None]


class TaskStore:
    """In-memory хранилище задач с уведомлением об изменениях.

    Хранение без вытеснения: записи живут до delete_task().

    Attributes:
        _tasks: task_id -> Task
        _listeners: Callbacks, вызываемые после каждого update_task()

    """

    def __init__(self) -> None:
        """Инициализировать пустое хранилище."""
        self._tasks: dict[str, Task] = {}
        self._listeners: list[StatusListener] = []

    def create_task(self, draft: Task) -> Task:
        """Сохранить новую задачу в статусе SUBMITTED.

        Args:
            draft: Черновик задачи (id генерируется моделью, если не задан)

        Returns:
            Копия сохранённой задачи

        Raises:
            DuplicateTaskError: Если задача с таким id уже есть

        """
        if draft.id in self._tasks:
            raise DuplicateTaskError(draft.id)

        task = draft.model_copy(deep=True)
        task.status = TaskStatus(state=TaskState.SUBMITTED)
        task.history = []
        self._tasks[task.id] = task

        logger.info("Задача создана в store", task_id=task.id, session_id=task.session_id)

        return task.model_copy(deep=True)

    def get_task(self, task_id: str) -> Task | None:
        """Получить задачу.

        Args:
            task_id: ID задачи

        Returns:
            Копия задачи или None если не найдена

        """
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    def update_task(self, task: Task) -> Task:
        """Заменить запись задачи и уведомить listeners.

        Args:
            task: Новая версия задачи (ключ - task.id)

        Returns:
            Копия сохранённой задачи

        Raises:
            TaskNotFoundError: Если задачи нет в store
            InvalidTransitionError: Если задача уже в терминальном состоянии
                и новая версия отличается от сохранённой

        """
        current = self._tasks.get(task.id)
        if current is None:
            raise TaskNotFoundError(task.id)

        if current.status.state.is_terminal:
            if task == current:
                logger.debug("Повторная запись терминальной задачи пропущена", task_id=task.id)
                return current.model_copy(deep=True)

            logger.warning(
                "Отклонено обновление терминальной задачи",
                task_id=task.id,
                current=current.status.state.value,
                requested=task.status.state.value,
            )
            raise InvalidTransitionError(task.id, current.status.state.value, task.status.state.value)

        stored = task.model_copy(deep=True)
        self._tasks[task.id] = stored

        logger.debug("Задача обновлена", task_id=task.id, state=stored.status.state.value)

        self._notify_listeners(stored)
        return stored.model_copy(deep=True)

    def list_tasks(self) -> list[Task]:
        """Все задачи (без пагинации)."""
        return [task.model_copy(deep=True) for task in self._tasks.values()]

    def delete_task(self, task_id: str) -> None:
        """Удалить задачу (идемпотентно).

        Args:
            task_id: ID задачи

        """
        if self._tasks.pop(task_id, None) is not None:
            logger.debug("Задача удалена из store", task_id=task_id)

    def add_status_listener(self, listener: StatusListener) -> None:
        """Зарегистрировать listener изменений.

        Args:
            listener: Callback(task), вызывается после каждого update_task()

        """
        self._listeners.append(listener)

    def _notify_listeners(self, task: Task) -> None:
        """Вызвать listeners по порядку, ошибки только логируются."""
        for listener in self._listeners:
            try:
                listener(task.model_copy(deep=True))
            except Exception as e:
                logger.exception(
                    "Ошибка в status listener",
                    task_id=task.id,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    error=str(e),
                )

    def __len__(self) -> int:
        return len(self._tasks)
