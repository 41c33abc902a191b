"""Song Agent - Health и служебные endpoints.

- /health: liveness
- /queue: счётчики очереди задач
- /.well-known/agent.json: A2A agent card
"""

from typing import Any

from fastapi import APIRouter, status

from song_agent import __version__
from song_agent.api.dependencies import OrchestratorDep
from song_agent.api.schemas import HealthResponse
from song_agent.config import settings
from song_agent.models.a2a import EventType
from song_agent.utils.logging import get_logger

logger = get_logger()

router = APIRouter(tags=["health"])


def build_agent_card() -> dict[str, Any]:
    """Описание агента: возможности, события уведомлений и навыки."""
    return {
        "name": settings.app_name,
        "description": (
            "AI agent that generates songs based on text prompts, using AI models to create lyrics "
            "and melodies. Supports real-time updates via SSE (streaming) and push notifications via webhook."
        ),
        "url": settings.agent_url,
        "version": __version__,
        "capabilities": {
            "streaming": True,
            "pushNotifications": True,
            "stateTransitionHistory": True,
        },
        "defaultInputModes": ["text/plain", "application/json"],
        "defaultOutputModes": ["application/json", "audio/mpeg", "text/plain"],
        "notificationEvents": [
            {
                "type": EventType.STATUS_UPDATE.value,
                "description": "Task status update. Data includes { status: TaskStatus, artifacts: TaskArtifact[] }",
            },
            {
                "type": EventType.COMPLETION.value,
                "description": (
                    "Task completed/cancelled/failed/input-required. "
                    "Data includes { finalStatus: TaskStatus, artifacts: TaskArtifact[] }"
                ),
            },
            {
                "type": EventType.ARTIFACT.value,
                "description": "Artifact streamed over SSE. Data includes { artifact: {parts, index, append, lastChunk} }",
            },
            {
                "type": EventType.ERROR.value,
                "description": "Error event. Data includes { code, message, data? }",
            },
        ],
        "artifactStructure": {
            "parts": [
                {
                    "type": "audio | data | text",
                    "text": "string (only for text parts)",
                    "audioUrl": "string (only for audio parts)",
                    "data": "object (only for data parts)",
                },
            ],
            "metadata": "object (optional, song metadata: title, tags, duration)",
            "index": "number (artifact order)",
            "append": "boolean (optional, if the artifact is incremental)",
        },
        "skills": [
            {
                "id": "generate-song",
                "name": "Generate Song",
                "description": "Generates a complete song with lyrics and melody based on provided parameters",
                "tags": ["music", "song", "generation", "creative", "ai"],
                "examples": [
                    "Create a happy pop song about summer adventures",
                    "Generate a romantic ballad about first love",
                ],
                "inputModes": ["application/json"],
                "outputModes": ["application/json", "audio/mpeg"],
                "parameters": [
                    {"name": "idea", "description": "Brief description or concept for the song", "required": True, "type": "string"},
                    {"name": "title", "description": "The title of the song", "required": False, "type": "string"},
                    {"name": "tags", "description": "List of genre tags or themes for the song", "required": False, "type": "array[string]"},
                    {"name": "lyrics", "description": "Specific lyrics or text to include in the song", "required": False, "type": "string"},
                    {"name": "duration", "description": "Approximate duration of the song in seconds", "required": False, "type": "integer"},
                ],
            },
        ],
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    status_code=status.HTTP_200_OK,
)
async def health_check() -> HealthResponse:
    """Liveness проверка."""
    logger.debug("Health check requested")
    return HealthResponse(
        service=settings.app_name,
        version=__version__,
        environment=settings.app_env,
        demo_mode=settings.demo_mode,
    )


@router.get("/queue", summary="Статус очереди задач")
async def queue_status(orchestrator: OrchestratorDep) -> dict[str, Any]:
    """Счётчики: queuedTasks, processingTasks, completedTasks, failedTasks, cancelledTasks."""
    return orchestrator.get_queue_status().to_wire()


@router.get("/.well-known/agent.json", summary="A2A agent card")
async def agent_card() -> dict[str, Any]:
    return build_agent_card()
