"""Request Schemas для Song Agent API.

Pydantic models для валидации входящих запросов.
"""

from typing import Any

from pydantic import BaseModel, Field

from song_agent.models.a2a import A2AModel, NotificationConfig, NotificationMode


class JsonRpcRequest(BaseModel):
    """Envelope запроса JSON-RPC 2.0.

    Поля необязательны на уровне схемы: корректность envelope проверяется
    в роутере, чтобы ответить кодом -32600, а не 422.
    """

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "jsonrpc": "2.0",
                    "id": "req-1",
                    "method": "tasks/send",
                    "params": {
                        "sessionId": "session-42",
                        "message": {
                            "role": "user",
                            "parts": [{"type": "text", "text": "A happy pop song about summer adventures"}],
                        },
                        "metadata": {"tags": ["pop", "summer"], "duration": 120},
                    },
                },
            ]
        }
    }

    jsonrpc: str | None = None
    id: str | int | None = None
    method: str | None = None
    params: Any = None

    def is_valid_envelope(self) -> bool:
        """jsonrpc == "2.0", есть id, method и объект params."""
        return (
            self.jsonrpc == "2.0"
            and self.id is not None
            and self.id != ""
            and bool(self.method)
            and isinstance(self.params, dict)
        )


class TaskIdParams(A2AModel):
    """Параметры tasks/get и tasks/cancel."""

    id: str = Field(min_length=1, description="ID задачи")


class WebhookRegistrationRequest(A2AModel):
    """Регистрация webhook для существующей задачи.

    POST /tasks/{task_id}/notifications
    """

    url: str = Field(min_length=1, description="URL для callback")
    event_types: list[str] = Field(
        default_factory=list,
        description="Типы событий (пусто = все): status_update, completion, artifact, error",
    )

    def to_config(self) -> NotificationConfig:
        return NotificationConfig(mode=NotificationMode.WEBHOOK, url=self.url, event_types=self.event_types)
