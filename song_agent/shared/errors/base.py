"""Базовое исключение Song Agent.

Каждая бизнес-ошибка несёт два представления:
- HTTP: status_code + ErrorResponse (REST endpoints)
- JSON-RPC: rpc_code + объект error (A2A endpoints)

code и default_message подклассов выводятся из имени класса и docstring.
"""

import re
from typing import Any, ClassVar

from song_agent.shared.errors.context import get_trace_id
from song_agent.shared.errors.schemas import ErrorResponse

# JSON-RPC 2.0: "Server error" из зарезервированного диапазона
RPC_INTERNAL_ERROR = -32000

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def error_code_from_name(class_name: str) -> str:
    """InvalidTransitionError -> INVALID_TRANSITION."""
    for suffix in ("Exception", "Error"):
        if class_name.endswith(suffix) and class_name != suffix:
            class_name = class_name.removesuffix(suffix)
            break
    return _CAMEL_BOUNDARY.sub("_", class_name).upper()


class AppException(Exception):
    """Внутренняя ошибка сервера."""

    status_code: ClassVar[int] = 500
    rpc_code: ClassVar[int] = RPC_INTERNAL_ERROR
    code: str = "INTERNAL_ERROR"
    default_message: ClassVar[str] = "Внутренняя ошибка сервера"

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        if "code" not in vars(cls):
            cls.code = error_code_from_name(cls.__name__)

        if "default_message" not in vars(cls) and cls.__doc__:
            cls.default_message = cls.__doc__.strip().splitlines()[0]

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        """Создать ошибку.

        Args:
            message: Текст ошибки (по умолчанию первая строка docstring класса)
            details: Структурированные детали (попадают в details / error.data)
            status_code: Переопределить HTTP статус для этого экземпляра
            code: Переопределить строковый код для этого экземпляра

        """
        self.message = message or self.default_message
        self.details: dict[str, Any] = dict(details or {})

        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Тело HTTP ответа с ошибкой."""
        return ErrorResponse(
            error=self.code,
            message=self.message,
            details=self.details,
            trace_id=get_trace_id(),
        )

    def to_rpc_error(self) -> dict[str, Any]:
        """Объект error JSON-RPC 2.0: {code, message[, data]}."""
        error: dict[str, Any] = {"code": self.rpc_code, "message": self.message}
        if self.details:
            error["data"] = self.details
        return error

    @classmethod
    def openapi_response(cls) -> dict[str, Any]:
        """Описание ответа для `responses=` в декораторах роутов."""
        example = ErrorResponse(error=cls.code, message=cls.default_message, trace_id="example-trace-id")
        return {
            "model": ErrorResponse,
            "description": cls.default_message,
            "content": {"application/json": {"example": example.model_dump()}},
        }
