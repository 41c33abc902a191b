"""Контракт pipeline генерации контента.

Pipeline получает TaskContext и отдаёт ленивую последовательность
TaskYieldUpdate, которая заканчивается финальным состоянием
(completed, failed, canceled или input-required).
"""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from song_agent.models.a2a import TaskContext, TaskYieldUpdate


@runtime_checkable
class ContentPipeline(Protocol):
    """Pipeline генерации: конечная, неперезапускаемая последовательность обновлений."""

    def handle_task(self, context: TaskContext) -> AsyncIterator[TaskYieldUpdate]:
        """Запустить обработку задачи.

        Args:
            context: Задача и флаг кооперативной отмены

        Returns:
            Async iterator обновлений статуса

        """
        ...
