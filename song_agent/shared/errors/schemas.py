"""Error schemas.

Pydantic схемы для ошибок.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Стандартный ответ с ошибкой."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "TASK_NOT_FOUND",
                "message": "Задача не найдена",
                "details": {"task_id": "0b6f5c1e-8d1c-4c4e-9f3a-2a7d9b1f6e11"},
                "trace_id": "a1b2c3d4-e5f6-4789-9012-345678901234",
            }
        }
    )

    error: str = Field(..., description="Код ошибки")
    message: str = Field(..., description="Человекочитаемое сообщение")
    details: dict[str, Any] = Field(default_factory=dict, description="Дополнительные детали")
    trace_id: str = Field(default="", description="ID трассировки для отладки")
