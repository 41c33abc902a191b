"""Domain errors.

Доменные исключения приложения.
"""

from song_agent.shared.errors.base import AppException

# Коды ошибок JSON-RPC 2.0 и A2A
RPC_INVALID_REQUEST = -32600
RPC_INVALID_PARAMS = -32602
RPC_TASK_NOT_FOUND = -32001


class InvalidRequestError(AppException):
    """Некорректный JSON-RPC запрос."""

    status_code = 400
    rpc_code = RPC_INVALID_REQUEST


class InvalidParamsError(InvalidRequestError):
    """Некорректные параметры запроса."""

    rpc_code = RPC_INVALID_PARAMS


class NotFoundError(AppException):
    """Ресурс не найден."""

    status_code = 404
    code = "NOT_FOUND"


class TaskNotFoundError(NotFoundError):
    """Задача не найдена."""

    code = "TASK_NOT_FOUND"
    rpc_code = RPC_TASK_NOT_FOUND

    def __init__(self, task_id: str) -> None:
        """Инициализация исключения.

        Args:
            task_id: Идентификатор задачи.

        """
        super().__init__(
            message=f"Задача с ID '{task_id}' не найдена",
            details={"task_id": task_id},
        )


class ValidationError(AppException):
    """Ошибка валидации данных."""

    status_code = 422
    code = "VALIDATION_ERROR"


class ConflictError(AppException):
    """Конфликт данных."""

    status_code = 409
    code = "CONFLICT"


class DuplicateTaskError(ConflictError):
    """Задача с таким ID уже существует."""

    def __init__(self, task_id: str) -> None:
        """Инициализация исключения.

        Args:
            task_id: Идентификатор задачи.

        """
        super().__init__(
            message=f"Задача с ID '{task_id}' уже существует",
            details={"task_id": task_id},
        )


class InvalidTransitionError(ConflictError):
    """Недопустимый переход состояния задачи."""

    def __init__(self, task_id: str, current: str, requested: str) -> None:
        """Инициализация исключения.

        Args:
            task_id: Идентификатор задачи.
            current: Текущее состояние.
            requested: Запрошенное состояние.

        """
        super().__init__(
            message=f"Переход {current} -> {requested} недопустим для задачи '{task_id}'",
            details={"task_id": task_id, "current": current, "requested": requested},
        )


class ServiceUnavailableError(AppException):
    """Сервис недоступен."""

    status_code = 503
    code = "SERVICE_UNAVAILABLE"


class PipelineError(ServiceUnavailableError):
    """Ошибка pipeline генерации."""

    status_code = 502


class MetadataGenerationError(PipelineError):
    """Не удалось сгенерировать метаданные песни."""


class SongGenerationError(PipelineError):
    """Ошибка генерации аудио."""
