"""Dependency Injection для FastAPI."""

from typing import Annotated

from fastapi import Depends

from song_agent.services.task import TaskOrchestrator, get_task_orchestrator

OrchestratorDep = Annotated[TaskOrchestrator, Depends(get_task_orchestrator)]
