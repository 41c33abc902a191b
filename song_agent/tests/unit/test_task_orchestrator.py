"""Unit тесты для TaskOrchestrator."""

import asyncio
from unittest.mock import MagicMock

import pytest

from song_agent.models.a2a import (
    NotificationConfig,
    NotificationMode,
    TaskSendParams,
    TaskState,
    TaskYieldUpdate,
    agent_message,
)
from song_agent.services.notifications import StreamChannel
from song_agent.services.task import (
    TaskOrchestrator,
    TaskQueue,
    TaskStateManager,
    TaskStore,
    create_task_orchestrator,
    get_task_orchestrator,
    set_task_orchestrator,
)
from song_agent.shared.errors import DuplicateTaskError, InvalidParamsError, TaskNotFoundError

WEBHOOK_URL = "https://client.test/webhook"


@pytest.fixture
def send_params(make_message) -> TaskSendParams:
    """Параметры tasks/send."""
    return TaskSendParams(session_id="session-1", message=make_message(), metadata={"tags": ["pop"]})


class TestCreateTask:
    """Тесты для создания задач."""

    @pytest.mark.asyncio
    async def test_create_task_runs_to_completion(
        self,
        orchestrator: TaskOrchestrator,
        send_params: TaskSendParams,
    ) -> None:
        """Тест: задача создаётся SUBMITTED и обрабатывается очередью."""
        task = orchestrator.create_task(send_params)

        assert task.status.state == TaskState.SUBMITTED
        assert task.session_id == "session-1"

        await orchestrator.queue.wait_idle()

        stored = orchestrator.get_task(task.id)
        assert stored.status.state == TaskState.COMPLETED
        assert stored.status == stored.history[-1]

    @pytest.mark.asyncio
    async def test_create_task_requires_text(self, orchestrator: TaskOrchestrator, make_message) -> None:
        """Тест: сообщение без текста отклоняется."""
        with pytest.raises(InvalidParamsError):
            orchestrator.create_task(TaskSendParams(message=make_message("   ")))

        with pytest.raises(InvalidParamsError):
            orchestrator.create_task(TaskSendParams())

    @pytest.mark.asyncio
    async def test_create_task_duplicate_id(self, orchestrator: TaskOrchestrator, make_message) -> None:
        """Тест: клиентский id уже занят."""
        orchestrator.create_task(TaskSendParams(id="task-1", message=make_message()))

        with pytest.raises(DuplicateTaskError):
            orchestrator.create_task(TaskSendParams(id="task-1", message=make_message()))

    @pytest.mark.asyncio
    async def test_create_with_webhook(
        self,
        orchestrator: TaskOrchestrator,
        make_message,
        webhook_requests: list[dict],
    ) -> None:
        """Тест: webhook режим возвращает {taskId} и отправляет события до completion."""
        params = TaskSendParams(
            message=make_message(),
            notification=NotificationConfig(mode=NotificationMode.WEBHOOK, url=WEBHOOK_URL),
        )

        result = orchestrator.create_task_with_subscription(params)

        assert set(result) == {"taskId"}
        assert orchestrator.push_service.get_subscription(result["taskId"]) is not None

        await orchestrator.queue.wait_idle()
        await orchestrator.push_service.drain()

        assert [request["type"] for request in webhook_requests] == ["status_update", "completion"]
        assert webhook_requests[-1]["data"]["finalStatus"]["state"] == "completed"

    @pytest.mark.asyncio
    async def test_create_with_stream(self, orchestrator: TaskOrchestrator, send_params, sse_parser) -> None:
        """Тест: SSE канал получает ack, обновления и completion."""
        channel = StreamChannel()

        task = orchestrator.create_task_with_subscription(send_params, channel)
        events = sse_parser("".join([frame async for frame in channel]))

        assert channel.task_id == task.id
        assert [event_type for event_type, _ in events] == [
            "status_update",
            "status_update",
            "status_update",
            "artifact",
            "completion",
        ]
        assert [payload["data"]["status"]["state"] for _, payload in events[:3]] == [
            "submitted",
            "working",
            "completed",
        ]


class TestSubscriptions:
    """Тесты для подписок на существующие задачи."""

    @pytest.mark.asyncio
    async def test_subscribe_to_final_task(
        self,
        orchestrator: TaskOrchestrator,
        send_params: TaskSendParams,
        sse_parser,
    ) -> None:
        """Тест: подписка на завершённую задачу отдаёт финальный статус и закрывается."""
        task = orchestrator.create_task(send_params)
        await orchestrator.queue.wait_idle()

        channel = StreamChannel()
        orchestrator.subscribe_stream(task.id, channel)
        events = sse_parser("".join([frame async for frame in channel]))

        event_types = [event_type for event_type, _ in events]
        assert event_types[0] == "status_update"
        assert event_types[-1] == "completion"
        assert events[-1][1]["data"]["finalStatus"]["state"] == "completed"
        assert channel.closed

    @pytest.mark.asyncio
    async def test_subscribe_unknown_task(self, orchestrator: TaskOrchestrator) -> None:
        """Тест: подписка на неизвестную задачу."""
        with pytest.raises(TaskNotFoundError):
            orchestrator.subscribe_stream("missing", StreamChannel())

    @pytest.mark.asyncio
    async def test_subscribe_webhook_requires_url(self, orchestrator: TaskOrchestrator, send_params) -> None:
        """Тест: регистрация webhook без url."""
        task = orchestrator.create_task(send_params)

        with pytest.raises(InvalidParamsError):
            orchestrator.subscribe_webhook(task.id, NotificationConfig(mode=NotificationMode.WEBHOOK))


class TestCancelTask:
    """Тесты для отмены задач."""

    @pytest.mark.asyncio
    async def test_cancel_queued_task(self, orchestrator: TaskOrchestrator, pipeline, send_params) -> None:
        """Тест: отмена задачи в очереди, CANCELLED записан один раз."""
        pipeline.gate = asyncio.Event()
        orchestrator.create_task(send_params)
        queued = orchestrator.create_task(send_params)

        assert orchestrator.cancel_task(queued.id) is True

        pipeline.gate.set()
        await orchestrator.queue.wait_idle()

        history = orchestrator.get_task_history(queued.id)
        assert [entry.state for entry in history] == [TaskState.CANCELLED]

    @pytest.mark.asyncio
    async def test_cancel_processing_task(self, orchestrator: TaskOrchestrator, pipeline, send_params) -> None:
        """Тест: обрабатываемая задача сразу становится CANCELLED."""
        pipeline.gate = asyncio.Event()
        task = orchestrator.create_task(send_params)

        assert orchestrator.cancel_task(task.id) is True
        assert orchestrator.get_task(task.id).status.state == TaskState.CANCELLED

        pipeline.gate.set()
        await orchestrator.queue.wait_idle()

        stored = orchestrator.get_task(task.id)
        assert [entry.state for entry in stored.history] == [TaskState.CANCELLED]
        assert orchestrator.get_queue_status().cancelled_tasks == 1

    @pytest.mark.asyncio
    async def test_cancel_completed_task(self, orchestrator: TaskOrchestrator, send_params) -> None:
        """Тест: завершённую задачу отменить нельзя."""
        task = orchestrator.create_task(send_params)
        await orchestrator.queue.wait_idle()

        assert orchestrator.cancel_task(task.id) is False
        assert orchestrator.get_task(task.id).status.state == TaskState.COMPLETED

    @pytest.mark.asyncio
    async def test_cancel_unknown_task(self, orchestrator: TaskOrchestrator) -> None:
        """Тест: отмена неизвестной задачи."""
        with pytest.raises(TaskNotFoundError):
            orchestrator.cancel_task("missing")


class TestReads:
    """Тесты для чтения задач."""

    @pytest.mark.asyncio
    async def test_list_tasks_by_session(self, orchestrator: TaskOrchestrator, make_message) -> None:
        """Тест фильтра по session_id."""
        orchestrator.create_task(TaskSendParams(session_id="a", message=make_message()))
        orchestrator.create_task(TaskSendParams(session_id="b", message=make_message()))

        assert len(orchestrator.list_tasks()) == 2
        assert [task.session_id for task in orchestrator.list_tasks(session_id="a")] == ["a"]

    @pytest.mark.asyncio
    async def test_get_unknown_task(self, orchestrator: TaskOrchestrator) -> None:
        """Тест: неизвестная задача."""
        with pytest.raises(TaskNotFoundError):
            orchestrator.get_task("missing")


class TestListenerIsolation:
    """Тесты для изоляции сервисов уведомлений."""

    def test_streaming_error_does_not_block_webhooks(
        self,
        task_store: TaskStore,
        state_manager: TaskStateManager,
        task_queue: TaskQueue,
        make_task,
    ) -> None:
        """Тест: ошибка SSE сервиса не мешает webhook уведомлению."""
        streaming_service = MagicMock()
        streaming_service.notify_task_update.side_effect = RuntimeError("stream failed")
        push_service = MagicMock()
        TaskOrchestrator(task_store, state_manager, task_queue, streaming_service, push_service)

        task = make_task()
        state_manager.mark_as_working(task.id, "Generating...")

        push_service.notify.assert_called_once()
        assert push_service.notify.call_args.args[0].status.state == TaskState.WORKING


class TestSingleton:
    """Тесты для singleton helpers."""

    def test_get_before_create(self) -> None:
        """Тест: orchestrator не инициализирован."""
        set_task_orchestrator(None)

        with pytest.raises(RuntimeError):
            get_task_orchestrator()

    def test_create_registers_instance(
        self,
        task_store: TaskStore,
        state_manager: TaskStateManager,
        task_queue: TaskQueue,
        streaming_service,
        push_service,
    ) -> None:
        """Тест: create_task_orchestrator регистрирует singleton."""
        orchestrator = create_task_orchestrator(task_store, state_manager, task_queue, streaming_service, push_service)

        try:
            assert get_task_orchestrator() is orchestrator
        finally:
            set_task_orchestrator(None)


class TestEndToEndScenarios:
    """Сквозные сценарии: SSE порядок, retry с webhook, очередь."""

    @pytest.mark.asyncio
    async def test_sse_progress_order(
        self,
        orchestrator: TaskOrchestrator,
        pipeline,
        send_params,
        artifact,
        sse_parser,
    ) -> None:
        """Тест порядка SSE событий при прогрессе 10% -> 100% -> COMPLETED."""
        pipeline.updates = [
            TaskYieldUpdate(state=TaskState.WORKING, message=agent_message("Generating audio... 10%")),
            TaskYieldUpdate(state=TaskState.WORKING, message=agent_message("Generating audio... 100%")),
            TaskYieldUpdate(state=TaskState.COMPLETED, message=agent_message("Done"), artifacts=[artifact]),
        ]
        channel = StreamChannel()

        orchestrator.create_task_with_subscription(send_params, channel)
        events = sse_parser("".join([frame async for frame in channel]))

        assert [event_type for event_type, _ in events] == [
            "status_update",
            "status_update",
            "status_update",
            "status_update",
            "artifact",
            "completion",
        ]
        assert [payload["data"]["status"]["message"]["parts"][0]["text"] for _, payload in events[1:3]] == [
            "Generating audio... 10%",
            "Generating audio... 100%",
        ]
        _, artifact_event = events[4]
        assert artifact_event["data"]["artifact"]["index"] == 0
        assert artifact_event["data"]["artifact"]["lastChunk"] is True

    @pytest.mark.asyncio
    async def test_webhook_receives_single_failed_completion(
        self,
        orchestrator: TaskOrchestrator,
        pipeline,
        make_message,
        webhook_requests: list[dict],
    ) -> None:
        """Тест: pipeline всегда падает, после retry webhook получает один completion(failed)."""
        pipeline.failures = 100
        params = TaskSendParams(
            message=make_message(),
            notification=NotificationConfig(mode=NotificationMode.WEBHOOK, url=WEBHOOK_URL),
        )

        orchestrator.create_task_with_subscription(params)
        await orchestrator.queue.wait_idle()
        await orchestrator.push_service.drain()

        assert pipeline.calls == orchestrator.queue.max_retries + 1
        completions = [request for request in webhook_requests if request["type"] == "completion"]
        assert len(completions) == 1
        assert completions[0]["data"]["finalStatus"]["state"] == "failed"

    @pytest.mark.asyncio
    async def test_second_task_waits_for_first(
        self,
        orchestrator: TaskOrchestrator,
        task_store: TaskStore,
        pipeline,
        send_params,
    ) -> None:
        """Тест: при max_concurrent=1 история второй задачи пуста, пока первая не финальна."""
        writes: list[tuple[str, TaskState]] = []
        task_store.add_status_listener(lambda task: writes.append((task.id, task.status.state)))
        pipeline.gate = asyncio.Event()

        first = orchestrator.create_task(send_params)
        second = orchestrator.create_task(send_params)
        await asyncio.sleep(0)

        assert orchestrator.get_task_history(second.id) == []

        pipeline.gate.set()
        await orchestrator.queue.wait_idle()

        first_final = writes.index((first.id, TaskState.COMPLETED))
        second_writes = [position for position, (task_id, _) in enumerate(writes) if task_id == second.id]
        assert second_writes
        assert min(second_writes) > first_final
