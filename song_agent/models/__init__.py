"""Модели данных Song Agent.

- a2a: задачи, статусы, сообщения, артефакты, события уведомлений
- song: метаданные песни и ответы сервиса генерации аудио
"""

from song_agent.models.a2a import (
    FINAL_STATES,
    TERMINAL_STATES,
    AudioPart,
    DataPart,
    EventType,
    FilePart,
    Message,
    NotificationConfig,
    NotificationMode,
    PushNotificationEvent,
    QueueStatus,
    Task,
    TaskArtifact,
    TaskContext,
    TaskSendParams,
    TaskState,
    TaskStatus,
    TaskYieldUpdate,
    TextPart,
    WebhookSubscription,
    agent_message,
    is_valid_transition,
)

__all__ = [
    "FINAL_STATES",
    "TERMINAL_STATES",
    "AudioPart",
    "DataPart",
    "EventType",
    "FilePart",
    "Message",
    "NotificationConfig",
    "NotificationMode",
    "PushNotificationEvent",
    "QueueStatus",
    "Task",
    "TaskArtifact",
    "TaskContext",
    "TaskSendParams",
    "TaskState",
    "TaskStatus",
    "TaskYieldUpdate",
    "TextPart",
    "WebhookSubscription",
    "agent_message",
    "is_valid_transition",
]
