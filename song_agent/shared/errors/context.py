"""trace_id текущего запроса.

Значение живёт в ContextVar: задаётся middleware на входе запроса и
читается логгером, обработчиками ошибок и JSON-RPC роутами.
"""

from contextvars import ContextVar
from uuid import uuid4

trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")


def bind_trace_id(incoming: str | None = None) -> str:
    """Привязать trace_id к текущему контексту.

    Args:
        incoming: Значение из заголовка запроса (пустое -> новый uuid4)

    Returns:
        Установленный trace_id

    """
    trace_id = incoming or str(uuid4())
    trace_id_var.set(trace_id)
    return trace_id


def get_trace_id() -> str:
    """trace_id текущего контекста (создаётся при первом обращении вне запроса)."""
    return trace_id_var.get() or bind_trace_id()


def set_trace_id(trace_id: str) -> None:
    trace_id_var.set(trace_id)
