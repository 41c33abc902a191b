"""Unit тесты для TaskStore."""

from unittest.mock import MagicMock

import pytest

from song_agent.models.a2a import Task, TaskState, TaskStatus
from song_agent.services.task import TaskStore
from song_agent.shared.errors import DuplicateTaskError, InvalidTransitionError, TaskNotFoundError


class TestTaskStoreCreate:
    """Тесты для создания задач."""

    def test_create_task_forces_submitted(self, task_store: TaskStore, make_message) -> None:
        """Тест: новая задача всегда SUBMITTED с пустой историей."""
        draft = Task(
            message=make_message(),
            status=TaskStatus(state=TaskState.WORKING),
            history=[TaskStatus(state=TaskState.WORKING)],
        )

        task = task_store.create_task(draft)

        assert task.status.state == TaskState.SUBMITTED
        assert task.history == []
        assert len(task_store) == 1

    def test_create_task_duplicate_id(self, task_store: TaskStore, make_message) -> None:
        """Тест: повторный id отклоняется."""
        task_store.create_task(Task(id="task-1", message=make_message()))

        with pytest.raises(DuplicateTaskError) as exc_info:
            task_store.create_task(Task(id="task-1", message=make_message()))

        assert exc_info.value.details == {"task_id": "task-1"}
        assert exc_info.value.status_code == 409

    def test_create_task_generates_id(self, task_store: TaskStore, make_message) -> None:
        """Тест генерации id для задачи без id."""
        first = task_store.create_task(Task(message=make_message()))
        second = task_store.create_task(Task(message=make_message()))

        assert first.id
        assert first.id != second.id


class TestTaskStoreRead:
    """Тесты для чтения задач."""

    def test_get_task_missing(self, task_store: TaskStore) -> None:
        """Тест: неизвестная задача -> None."""
        assert task_store.get_task("missing") is None

    def test_get_task_returns_copy(self, task_store: TaskStore, make_task) -> None:
        """Тест: изменение полученной копии не меняет store."""
        task = make_task()

        copy = task_store.get_task(task.id)
        copy.status = TaskStatus(state=TaskState.FAILED)
        copy.history.append(copy.status)

        stored = task_store.get_task(task.id)
        assert stored.status.state == TaskState.SUBMITTED
        assert stored.history == []

    def test_list_tasks(self, task_store: TaskStore, make_task) -> None:
        """Тест списка задач."""
        make_task()
        make_task()

        assert len(task_store.list_tasks()) == 2

    def test_delete_task_idempotent(self, task_store: TaskStore, make_task) -> None:
        """Тест: удаление идемпотентно."""
        task = make_task()

        task_store.delete_task(task.id)
        task_store.delete_task(task.id)

        assert task_store.get_task(task.id) is None
        assert len(task_store) == 0


class TestTaskStoreUpdate:
    """Тесты для обновления задач и listeners."""

    def test_update_missing_task(self, task_store: TaskStore, make_message) -> None:
        """Тест: обновление неизвестной задачи."""
        with pytest.raises(TaskNotFoundError):
            task_store.update_task(Task(id="missing", message=make_message()))

    def test_update_notifies_listeners_in_order(self, task_store: TaskStore, make_task) -> None:
        """Тест: listeners вызываются по порядку регистрации."""
        calls: list[str] = []
        task_store.add_status_listener(lambda task: calls.append(f"first:{task.status.state.value}"))
        task_store.add_status_listener(lambda task: calls.append(f"second:{task.status.state.value}"))

        task = make_task()
        task.status = TaskStatus(state=TaskState.WORKING)
        task_store.update_task(task)

        assert calls == ["first:working", "second:working"]

    def test_listener_error_does_not_break_others(self, task_store: TaskStore, make_task) -> None:
        """Тест: ошибка listener не мешает остальным и не отменяет запись."""
        failing = MagicMock(side_effect=RuntimeError("listener failed"))
        healthy = MagicMock()
        task_store.add_status_listener(failing)
        task_store.add_status_listener(healthy)

        task = make_task()
        task.status = TaskStatus(state=TaskState.WORKING)
        task_store.update_task(task)

        healthy.assert_called_once()
        assert task_store.get_task(task.id).status.state == TaskState.WORKING

    def test_terminal_task_rejects_new_status(self, task_store: TaskStore, make_task) -> None:
        """Тест: терминальная задача не принимает новый статус."""
        task = make_task()
        task.status = TaskStatus(state=TaskState.COMPLETED)
        task_store.update_task(task)

        task.status = TaskStatus(state=TaskState.WORKING)
        with pytest.raises(InvalidTransitionError):
            task_store.update_task(task)

        assert task_store.get_task(task.id).status.state == TaskState.COMPLETED

    def test_terminal_task_rejects_rewritten_history(self, task_store: TaskStore, make_task) -> None:
        """Тест: тот же терминальный статус с другой историей отклоняется."""
        task = make_task()
        failed = TaskStatus(state=TaskState.FAILED)
        task.status = failed
        task.history = [TaskStatus(state=TaskState.WORKING), failed]
        task_store.update_task(task)

        listener = MagicMock()
        task_store.add_status_listener(listener)

        task.history = []
        with pytest.raises(InvalidTransitionError):
            task_store.update_task(task)

        listener.assert_not_called()
        assert len(task_store.get_task(task.id).history) == 2

    def test_identical_terminal_write_is_silent(self, task_store: TaskStore, make_task) -> None:
        """Тест: повторная запись той же терминальной задачи не вызывает listeners."""
        task = make_task()
        task.status = TaskStatus(state=TaskState.COMPLETED)
        stored = task_store.update_task(task)

        listener = MagicMock()
        task_store.add_status_listener(listener)

        assert task_store.update_task(stored) == stored
        listener.assert_not_called()
