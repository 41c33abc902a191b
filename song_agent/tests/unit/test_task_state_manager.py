"""Unit тесты для TaskStateManager."""

import pytest

from song_agent.models.a2a import TaskState, agent_message
from song_agent.services.task import TaskStateManager, TaskStore
from song_agent.shared.errors import InvalidTransitionError, TaskNotFoundError


class TestApplyUpdate:
    """Тесты для apply_update."""

    def test_status_matches_last_history_entry(self, state_manager: TaskStateManager, make_task) -> None:
        """Тест: после каждого обновления status == history[-1]."""
        task = make_task()

        for text in ("Starting...", "Generating song metadata..."):
            updated = state_manager.apply_update(task.id, TaskState.WORKING, agent_message(text))
            assert updated.status == updated.history[-1]

        updated = state_manager.apply_update(task.id, TaskState.COMPLETED, agent_message("Done"))

        assert updated.status == updated.history[-1]
        assert [entry.state for entry in updated.history] == [
            TaskState.WORKING,
            TaskState.WORKING,
            TaskState.COMPLETED,
        ]

    def test_duplicate_update_is_suppressed(
        self,
        state_manager: TaskStateManager,
        task_store: TaskStore,
        make_task,
    ) -> None:
        """Тест: то же состояние с тем же текстом не пишется и не уведомляет listeners."""
        task = make_task()
        notified: list[str] = []
        task_store.add_status_listener(lambda t: notified.append(t.status.state.value))

        state_manager.mark_as_working(task.id, "Generating...")
        result = state_manager.mark_as_working(task.id, "Generating...")

        assert result is None
        assert notified == ["working"]
        assert len(task_store.get_task(task.id).history) == 1

    def test_same_state_new_text_is_written(self, state_manager: TaskStateManager, make_task) -> None:
        """Тест: прогресс с новым текстом записывается."""
        task = make_task()

        state_manager.mark_as_working(task.id, "Generating audio... 50%")
        updated = state_manager.mark_as_working(task.id, "Generating audio... 100%")

        assert len(updated.history) == 2
        assert updated.status.message.first_text() == "Generating audio... 100%"

    def test_repeated_cancel_on_terminal_task_is_noop(self, state_manager: TaskStateManager, make_task) -> None:
        """Тест: повторная отмена уже отменённой задачи ничего не пишет."""
        task = make_task()

        state_manager.mark_as_cancelled(task.id)
        result = state_manager.mark_as_cancelled(task.id)

        assert result is None
        assert len(state_manager.get_task(task.id).history) == 1

    def test_terminal_task_rejects_transition(self, state_manager: TaskStateManager, make_task) -> None:
        """Тест: из терминального состояния переходы запрещены."""
        task = make_task()
        state_manager.mark_as_working(task.id)
        state_manager.mark_as_failed(task.id, "boom")

        with pytest.raises(InvalidTransitionError) as exc_info:
            state_manager.mark_as_working(task.id, "again")

        assert exc_info.value.details["current"] == "failed"
        assert exc_info.value.details["requested"] == "working"

    def test_submitted_cannot_complete_directly(self, state_manager: TaskStateManager, make_task) -> None:
        """Тест: SUBMITTED -> COMPLETED без WORKING недопустим."""
        task = make_task()

        with pytest.raises(InvalidTransitionError):
            state_manager.apply_update(task.id, TaskState.COMPLETED)

    def test_input_required_only_allows_cancel(self, state_manager: TaskStateManager, make_task) -> None:
        """Тест: из INPUT_REQUIRED допустима только отмена."""
        task = make_task()
        state_manager.mark_as_working(task.id)
        state_manager.apply_update(task.id, TaskState.INPUT_REQUIRED, agent_message("Need more details"))

        with pytest.raises(InvalidTransitionError):
            state_manager.mark_as_working(task.id, "resume")

        cancelled = state_manager.mark_as_cancelled(task.id)
        assert cancelled.status.state == TaskState.CANCELLED

    def test_artifacts_replaced_when_given(self, state_manager: TaskStateManager, make_task, artifact) -> None:
        """Тест: артефакты сохраняются вместе со статусом."""
        task = make_task()
        state_manager.mark_as_working(task.id)

        updated = state_manager.apply_update(task.id, TaskState.COMPLETED, agent_message("Done"), [artifact])

        assert updated.artifacts == [artifact]

    def test_unknown_task(self, state_manager: TaskStateManager) -> None:
        """Тест: неизвестная задача."""
        with pytest.raises(TaskNotFoundError):
            state_manager.mark_as_working("missing")


class TestHelpers:
    """Тесты для mark_as_* helpers."""

    def test_mark_as_failed_message(self, state_manager: TaskStateManager, make_task) -> None:
        """Тест: текст ошибки попадает в сообщение статуса."""
        task = make_task()
        state_manager.mark_as_working(task.id)

        updated = state_manager.mark_as_failed(task.id, "Song API unavailable")

        assert updated.status.state == TaskState.FAILED
        assert updated.status.message.role == "agent"
        assert updated.status.message.first_text() == "Song API unavailable"

    def test_mark_as_cancelled_from_submitted(self, state_manager: TaskStateManager, make_task) -> None:
        """Тест: отмена SUBMITTED задачи."""
        task = make_task()

        updated = state_manager.mark_as_cancelled(task.id)

        assert updated.status.state == TaskState.CANCELLED
        assert updated.status.message.first_text() == "Task cancelled by user"
