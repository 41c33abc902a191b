"""A2A модели для Song Agent.

Pydantic models задач, статусов, сообщений и артефактов протокола A2A.
На wire все поля в camelCase (sessionId, audioUrl, lastChunk).
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Текущее время в UTC."""
    return datetime.now(UTC)


class A2AModel(BaseModel):
    """Базовая модель с camelCase алиасами."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Сериализовать для отправки клиенту (JSON, camelCase, без None)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TaskState(str, Enum):
    """Состояние задачи."""

    SUBMITTED = "submitted"
    WORKING = "working"
    INPUT_REQUIRED = "input-required"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "canceled"

    @property
    def is_terminal(self) -> bool:
        """Терминальное состояние: переходы из него запрещены."""
        return self in TERMINAL_STATES

    @property
    def is_final(self) -> bool:
        """Финальное для уведомлений: закрывает каналы доставки."""
        return self in FINAL_STATES


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELLED})
FINAL_STATES = TERMINAL_STATES | {TaskState.INPUT_REQUIRED}

VALID_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.SUBMITTED: frozenset({TaskState.WORKING, TaskState.CANCELLED}),
    TaskState.WORKING: frozenset(
        {
            TaskState.WORKING,
            TaskState.INPUT_REQUIRED,
            TaskState.COMPLETED,
            TaskState.FAILED,
            TaskState.CANCELLED,
        }
    ),
    TaskState.INPUT_REQUIRED: frozenset({TaskState.CANCELLED}),
}


def is_valid_transition(current: TaskState, requested: TaskState) -> bool:
    """Проверить допустимость перехода current -> requested."""
    return requested in VALID_TRANSITIONS.get(current, frozenset())


# =================================================================
# Message parts
# =================================================================


class TextPart(A2AModel):
    """Текстовая часть сообщения."""

    type: Literal["text"] = "text"
    text: str
    metadata: dict[str, Any] | None = None


class AudioPart(A2AModel):
    """Аудио (ссылка на сгенерированный файл)."""

    type: Literal["audio"] = "audio"
    audio_url: str
    metadata: dict[str, Any] | None = None


class FileContent(A2AModel):
    """Содержимое файла: inline bytes (base64) или uri."""

    name: str | None = None
    mime_type: str | None = None
    bytes: str | None = None
    uri: str | None = None


class FilePart(A2AModel):
    """Файловая часть сообщения."""

    type: Literal["file"] = "file"
    file: FileContent
    metadata: dict[str, Any] | None = None


class DataPart(A2AModel):
    """Структурированные данные."""

    type: Literal["data"] = "data"
    data: dict[str, Any]
    metadata: dict[str, Any] | None = None


Part = Annotated[TextPart | AudioPart | FilePart | DataPart, Field(discriminator="type")]


class Message(A2AModel):
    """Сообщение: роль + упорядоченные части."""

    role: Literal["user", "agent"]
    parts: list[Part] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None

    def first_text(self) -> str | None:
        """Текст первой текстовой части (None если её нет)."""
        for part in self.parts:
            if isinstance(part, TextPart):
                return part.text
        return None

    def has_prompt(self) -> bool:
        """Есть ли текстовая часть с непустым текстом."""
        return any(isinstance(part, TextPart) and part.text.strip() for part in self.parts)


def agent_message(text: str) -> Message:
    """Сообщение агента из одной текстовой части."""
    return Message(role="agent", parts=[TextPart(text=text)])


# =================================================================
# Task
# =================================================================


class TaskStatus(A2AModel):
    """Статус задачи в момент времени."""

    state: TaskState
    timestamp: datetime = Field(default_factory=utc_now)
    message: Message | None = None


class TaskArtifact(A2AModel):
    """Результат задачи (упорядочен по index)."""

    name: str | None = None
    description: str | None = None
    parts: list[Part] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None
    index: int = 0
    append: bool | None = None


class Task(A2AModel):
    """Задача генерации.

    Инвариант: после любого успешного обновления status == history[-1].
    Начальный SUBMITTED статус в history не входит.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str | None = None
    status: TaskStatus = Field(default_factory=lambda: TaskStatus(state=TaskState.SUBMITTED))
    history: list[TaskStatus] = Field(default_factory=list)
    message: Message | None = None
    metadata: dict[str, Any] | None = None
    accepted_output_modes: list[str] | None = None
    artifacts: list[TaskArtifact] | None = None


class TaskYieldUpdate(A2AModel):
    """Очередное обновление, которое отдаёт pipeline."""

    state: TaskState
    message: Message | None = None
    artifacts: list[TaskArtifact] | None = None


@dataclass
class TaskContext:
    """Контекст выполнения задачи для pipeline.

    is_cancelled проверяется pipeline между шагами (кооперативная отмена).
    """

    task: Task
    is_cancelled: Callable[[], bool]


# =================================================================
# Notifications
# =================================================================


class NotificationMode(str, Enum):
    """Канал доставки событий задачи."""

    SSE = "sse"
    WEBHOOK = "webhook"


class NotificationConfig(A2AModel):
    """Выбор канала уведомлений при создании задачи."""

    mode: NotificationMode = NotificationMode.SSE
    url: str | None = None
    event_types: list[str] = Field(default_factory=list)


class TaskSendParams(A2AModel):
    """Параметры tasks/send и tasks/sendSubscribe."""

    id: str | None = None
    session_id: str | None = None
    message: Message | None = None
    metadata: dict[str, Any] | None = None
    accepted_output_modes: list[str] | None = None
    notification: NotificationConfig | None = None


class EventType(str, Enum):
    """Тип события уведомления."""

    STATUS_UPDATE = "status_update"
    COMPLETION = "completion"
    ARTIFACT = "artifact"
    ERROR = "error"


class PushNotificationEvent(A2AModel):
    """Envelope события: {type, taskId, timestamp, data}."""

    type: EventType
    task_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    data: dict[str, Any] = Field(default_factory=dict)


class WebhookSubscription(A2AModel):
    """Регистрация webhook для задачи."""

    task_id: str
    webhook_url: str
    event_types: list[str] = Field(default_factory=list)

    def accepts(self, event_type: EventType) -> bool:
        """Подписан ли webhook на событие (пустой список = на все)."""
        return not self.event_types or event_type.value in self.event_types


class QueueStatus(A2AModel):
    """Счётчики очереди задач."""

    queued_tasks: int = 0
    processing_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    cancelled_tasks: int = 0
