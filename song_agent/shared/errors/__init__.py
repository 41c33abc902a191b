"""Shared errors module.

Система обработки ошибок приложения.
"""

from song_agent.shared.errors.base import RPC_INTERNAL_ERROR, AppException
from song_agent.shared.errors.context import bind_trace_id, get_trace_id, set_trace_id, trace_id_var
from song_agent.shared.errors.domain_errors import (
    RPC_INVALID_PARAMS,
    RPC_INVALID_REQUEST,
    RPC_TASK_NOT_FOUND,
    ConflictError,
    DuplicateTaskError,
    InvalidParamsError,
    InvalidRequestError,
    InvalidTransitionError,
    MetadataGenerationError,
    NotFoundError,
    PipelineError,
    ServiceUnavailableError,
    SongGenerationError,
    TaskNotFoundError,
    ValidationError,
)
from song_agent.shared.errors.handlers import setup_exception_handlers
from song_agent.shared.errors.schemas import ErrorResponse

__all__ = [
    # Base
    "AppException",
    # JSON-RPC codes
    "RPC_INTERNAL_ERROR",
    "RPC_INVALID_PARAMS",
    "RPC_INVALID_REQUEST",
    "RPC_TASK_NOT_FOUND",
    # Context
    "trace_id_var",
    "bind_trace_id",
    "get_trace_id",
    "set_trace_id",
    # Domain errors
    "InvalidRequestError",
    "InvalidParamsError",
    "NotFoundError",
    "TaskNotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateTaskError",
    "InvalidTransitionError",
    "ServiceUnavailableError",
    "PipelineError",
    "MetadataGenerationError",
    "SongGenerationError",
    # Handlers
    "setup_exception_handlers",
    # Schemas
    "ErrorResponse",
]
