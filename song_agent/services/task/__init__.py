"""Task Management Module - жизненный цикл задач.

- TaskStore: хранение задач и истории статусов
- TaskStateManager: переходы состояний (state machine + dedup)
- TaskQueue: ограниченный параллелизм, retry, отмена
- TaskOrchestrator: координация компонентов

Архитектура:
    ┌─────────────────────┐
    │  TaskOrchestrator   │  (координатор)
    └──────────┬──────────┘
               │
       ┌───────┼──────────┬──────────────┐
       │       │          │              │
       ▼       ▼          ▼              ▼
    Queue   State     TaskStore   Streaming / Push
            Manager      │          (listeners)
                         └──────────────▲

Example:
    >>> from song_agent.services.task import get_task_orchestrator
    >>> orchestrator = get_task_orchestrator()
    >>> task = orchestrator.create_task(params)

"""

from song_agent.services.task.task_orchestrator import (
    TaskOrchestrator,
    create_task_orchestrator,
    get_task_orchestrator,
    set_task_orchestrator,
)
from song_agent.services.task.task_queue import TaskQueue
from song_agent.services.task.task_state_manager import TaskStateManager
from song_agent.services.task.task_store import TaskStore

__all__ = [
    "TaskOrchestrator",
    "TaskQueue",
    "TaskStateManager",
    "TaskStore",
    "create_task_orchestrator",
    "get_task_orchestrator",
    "set_task_orchestrator",
]
