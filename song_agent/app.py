"""Song Generation Agent - FastAPI Application.

Главное приложение: сборка компонентов, middleware и роутеры.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from song_agent import __version__
from song_agent.api.middleware import TraceContextMiddleware
from song_agent.api.routes import a2a, health, tasks
from song_agent.clients import DemoSongClient, SongClient, SunoClient
from song_agent.config import settings
from song_agent.services.generation import ContentPipeline, SongGenerationPipeline, SongMetadataGenerator
from song_agent.services.notifications import PushNotificationService, StreamingService
from song_agent.services.task import (
    TaskOrchestrator,
    TaskQueue,
    TaskStateManager,
    TaskStore,
    create_task_orchestrator,
    set_task_orchestrator,
)
from song_agent.shared.errors import setup_exception_handlers
from song_agent.utils.logging import get_logger, setup_logging

# Setup logging
setup_logging()
logger = get_logger()


def build_song_client() -> SongClient:
    """Выбрать клиент генерации аудио: демо или реальный API."""
    if settings.demo_mode:
        return DemoSongClient()
    return SunoClient()


def build_task_orchestrator(pipeline: ContentPipeline) -> TaskOrchestrator:
    """Собрать store, state manager, очередь и сервисы уведомлений.

    Args:
        pipeline: Pipeline генерации контента

    Returns:
        Зарегистрированный singleton TaskOrchestrator

    """
    task_store = TaskStore()
    state_manager = TaskStateManager(task_store)
    queue = TaskQueue(pipeline, state_manager)

    return create_task_orchestrator(
        task_store=task_store,
        state_manager=state_manager,
        queue=queue,
        streaming_service=StreamingService(),
        push_service=PushNotificationService(),
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager для startup/shutdown.

    Args:
        _app: FastAPI application (не используется, но требуется сигнатурой)

    Yields:
        None

    """
    # =================================================================
    # Startup
    # =================================================================
    logger.info(
        "Song Agent запускается",
        env=settings.app_env,
        debug=settings.debug,
        demo_mode=settings.demo_mode,
    )

    song_client = build_song_client()
    pipeline = SongGenerationPipeline(SongMetadataGenerator(), song_client)
    orchestrator = build_task_orchestrator(pipeline)

    logger.info(
        "Song Agent готов",
        server_host=settings.server_host,
        server_port=settings.server_port,
        max_concurrent_tasks=settings.max_concurrent_tasks,
    )

    yield

    # =================================================================
    # Shutdown
    # =================================================================
    logger.info("Song Agent останавливается")

    await orchestrator.stop()
    await song_client.aclose()
    set_task_orchestrator(None)

    logger.info("Song Agent остановлен")


# =================================================================
# FastAPI Application
# =================================================================

app = FastAPI(
    title=settings.app_name,
    description="A2A агент генерации песен: JSON-RPC задачи, SSE поток и webhook уведомления",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
    docs_url="/docs" if settings.debug else None,  # Swagger UI только в debug
    redoc_url="/redoc" if settings.debug else None,
)

# =================================================================
# Middleware
# =================================================================

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# trace_id (добавлен последним, поэтому выполняется первым)
app.add_middleware(TraceContextMiddleware)

# Prometheus metrics
if settings.app_env != "development":
    Instrumentator().instrument(app).expose(app)
    logger.info("Prometheus metrics enabled на /metrics")

setup_exception_handlers(app)

# =================================================================
# Routes
# =================================================================

app.include_router(a2a.router)
app.include_router(tasks.router)
app.include_router(health.router)


# =================================================================
# Root Endpoint
# =================================================================

@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint.

    Returns:
        Информация о сервисе

    """
    return {
        "service": settings.app_name,
        "version": __version__,
        "status": "running",
        "docs": "/docs" if settings.debug else "disabled",
    }
