"""Pytest configuration для unit тестов."""

import asyncio
from collections.abc import AsyncIterator, Callable

import httpx
import orjson
import pytest

from song_agent.models.a2a import (
    AudioPart,
    DataPart,
    Message,
    Task,
    TaskArtifact,
    TaskContext,
    TaskState,
    TaskYieldUpdate,
    TextPart,
    agent_message,
)
from song_agent.services.notifications import PushNotificationService, StreamingService
from song_agent.services.task import TaskOrchestrator, TaskQueue, TaskStateManager, TaskStore

SONG_PROMPT = "A happy pop song about summer adventures"


class ScriptedPipeline:
    """Pipeline с заранее заданной последовательностью обновлений.

    Attributes:
        updates: Обновления, которые отдаются по порядку
        failures: Сколько первых вызовов падают до первого обновления
        error_after: Упасть после указанного числа обновлений
        gate: Event, который pipeline ждёт перед стартом

    """

    def __init__(self, updates: list[TaskYieldUpdate] | None = None) -> None:
        self.updates = list(updates or [])
        self.failures = 0
        self.error_after: int | None = None
        self.gate: asyncio.Event | None = None
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def handle_task(self, context: TaskContext) -> AsyncIterator[TaskYieldUpdate]:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)

        try:
            if self.gate is not None:
                await self.gate.wait()

            if self.calls <= self.failures:
                msg = f"pipeline crashed on attempt {self.calls}"
                raise RuntimeError(msg)

            for position, update in enumerate(self.updates):
                if self.error_after is not None and position == self.error_after:
                    msg = "pipeline crashed mid-way"
                    raise RuntimeError(msg)

                if context.is_cancelled():
                    yield TaskYieldUpdate(state=TaskState.CANCELLED, message=agent_message("Task cancelled by user"))
                    return

                yield update
        finally:
            self.active -= 1


def user_message(text: str = SONG_PROMPT) -> Message:
    """Сообщение пользователя из одной текстовой части."""
    return Message(role="user", parts=[TextPart(text=text)])


def song_artifact() -> TaskArtifact:
    """Артефакт песни для тестов."""
    return TaskArtifact(
        parts=[
            AudioPart(audio_url="https://cdn.test/song.mp3"),
            DataPart(data={"title": "Summer Vibes", "tags": ["pop", "summer", "happy"]}),
        ],
        metadata={"title": "Summer Vibes"},
        index=0,
    )


def default_updates() -> list[TaskYieldUpdate]:
    """WORKING -> COMPLETED с артефактом."""
    return [
        TaskYieldUpdate(state=TaskState.WORKING, message=agent_message("Generating song metadata...")),
        TaskYieldUpdate(
            state=TaskState.COMPLETED,
            message=agent_message('Song "Summer Vibes" has been generated successfully!'),
            artifacts=[song_artifact()],
        ),
    ]


def parse_sse(payload: str) -> list[tuple[str, dict]]:
    """Разобрать SSE поток в список (event, data)."""
    events = []
    for frame in payload.split("\n\n"):
        if not frame.strip():
            continue
        lines = dict(line.split(": ", 1) for line in frame.splitlines())
        events.append((lines["event"], orjson.loads(lines["data"])))
    return events


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Фабрика сообщений пользователя."""
    return user_message


@pytest.fixture
def sse_parser() -> Callable[[str], list[tuple[str, dict]]]:
    """Парсер SSE потока."""
    return parse_sse


@pytest.fixture
def artifact() -> TaskArtifact:
    """Артефакт песни."""
    return song_artifact()


@pytest.fixture
def task_store() -> TaskStore:
    """Пустое хранилище задач."""
    return TaskStore()


@pytest.fixture
def state_manager(task_store: TaskStore) -> TaskStateManager:
    """TaskStateManager поверх task_store."""
    return TaskStateManager(task_store)


@pytest.fixture
def make_task(task_store: TaskStore) -> Callable[..., Task]:
    """Фабрика задач, сохранённых в store."""

    def factory(text: str = SONG_PROMPT, **kwargs) -> Task:
        return task_store.create_task(Task(message=user_message(text), **kwargs))

    return factory


@pytest.fixture
def pipeline() -> ScriptedPipeline:
    """Pipeline: WORKING -> COMPLETED."""
    return ScriptedPipeline(default_updates())


@pytest.fixture
def make_pipeline() -> Callable[..., ScriptedPipeline]:
    """Фабрика pipeline с произвольными обновлениями."""
    return ScriptedPipeline


@pytest.fixture
def task_queue(pipeline: ScriptedPipeline, state_manager: TaskStateManager) -> TaskQueue:
    """Очередь без пауз между повторами."""
    return TaskQueue(pipeline, state_manager, max_concurrent=1, max_retries=3, retry_delay=0)


@pytest.fixture
def webhook_requests() -> list[dict]:
    """Тела запросов, полученных webhook endpoint."""
    return []


@pytest.fixture
def webhook_transport(webhook_requests: list[dict]) -> httpx.MockTransport:
    """Mock транспорт webhook endpoint: сохраняет тела запросов."""

    def handler(request: httpx.Request) -> httpx.Response:
        webhook_requests.append(orjson.loads(request.content))
        return httpx.Response(200, json={"ok": True})

    return httpx.MockTransport(handler)


@pytest.fixture
def streaming_service() -> StreamingService:
    """StreamingService без подписчиков."""
    return StreamingService()


@pytest.fixture
def push_service(webhook_transport: httpx.MockTransport) -> PushNotificationService:
    """PushNotificationService с mock транспортом."""
    return PushNotificationService(timeout=5, max_retries=0, transport=webhook_transport)


@pytest.fixture
async def orchestrator(
    task_store: TaskStore,
    state_manager: TaskStateManager,
    task_queue: TaskQueue,
    streaming_service: StreamingService,
    push_service: PushNotificationService,
) -> AsyncIterator[TaskOrchestrator]:
    """TaskOrchestrator на scripted pipeline."""
    orchestrator = TaskOrchestrator(
        task_store=task_store,
        state_manager=state_manager,
        queue=task_queue,
        streaming_service=streaming_service,
        push_service=push_service,
    )
    yield orchestrator
    await orchestrator.stop()
