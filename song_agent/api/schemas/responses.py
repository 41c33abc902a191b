"""Response Schemas для Song Agent API.

Pydantic models для API responses.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from song_agent.models.a2a import A2AModel


class JsonRpcResponse(BaseModel):
    """Ответ JSON-RPC 2.0: result или error."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: str | int | None = None
    result: Any = None
    error: dict[str, Any] | None = None

    @classmethod
    def success(cls, request_id: str | int | None, result: Any) -> dict[str, Any]:
        return cls(id=request_id, result=result).model_dump(exclude={"error"})

    @classmethod
    def failure(cls, request_id: str | int | None, error: dict[str, Any]) -> dict[str, Any]:
        return cls(id=request_id, error=error).model_dump(exclude={"result"})


class CancelTaskResponse(A2AModel):
    """Результат отмены задачи."""

    task_id: str = Field(description="ID задачи")
    cancelled: bool = Field(description="Принята ли отмена")


class HealthResponse(BaseModel):
    """Ответ health check."""

    status: Literal["healthy"] = "healthy"
    service: str = Field(description="Название сервиса")
    version: str = Field(description="Версия сервиса")
    environment: str = Field(description="Окружение")
    demo_mode: bool = Field(description="Используется демо-клиент генерации")
