"""Song Generation Pipeline - генерация песни по текстовому описанию.

Шаги:
1. Проверка промпта (пустой или слишком короткий -> input-required)
2. Генерация метаданных (title, lyrics, tags) через SongMetadataGenerator
3. Генерация аудио через SongClient с отчётом о прогрессе
4. Финальный статус с артефактом (audio + data parts)

Между шагами проверяется флаг отмены из TaskContext.

Example:
    >>> pipeline = SongGenerationPipeline(metadata_generator, song_client)
    >>> async for update in pipeline.handle_task(context):
    ...     print(update.state, update.message)

"""

from collections.abc import AsyncIterator
from typing import Any

from song_agent.clients.base import SongClient
from song_agent.config import settings
from song_agent.models.a2a import (
    AudioPart,
    DataPart,
    Task,
    TaskArtifact,
    TaskContext,
    TaskState,
    TaskYieldUpdate,
    agent_message,
)
from song_agent.models.song import SongGenerationOptions, SongMetadata, SongMetadataInput, SongResponse
from song_agent.services.generation.metadata_generator import SongMetadataGenerator
from song_agent.shared.errors import SongGenerationError
from song_agent.utils.logging import get_logger

logger = get_logger()

MIN_PROMPT_LENGTH = 10

NO_PROMPT_MESSAGE = "Please provide a prompt for the song. No prompt was provided."
SHORT_PROMPT_MESSAGE = "Please provide a more detailed description of the song. The current prompt is too short."
CANCELLED_MESSAGE = "Task cancelled by user"


def _update(state: TaskState, text: str, artifacts: list[TaskArtifact] | None = None) -> TaskYieldUpdate:
    return TaskYieldUpdate(state=state, message=agent_message(text), artifacts=artifacts)


def _working(text: str) -> TaskYieldUpdate:
    return _update(TaskState.WORKING, text)


def validate_prompt(idea: str) -> TaskYieldUpdate | None:
    """Запросить уточнение, если промпт пустой или слишком короткий.

    Returns:
        INPUT_REQUIRED обновление или None если промпт подходит

    """
    if not idea.strip():
        return _update(TaskState.INPUT_REQUIRED, NO_PROMPT_MESSAGE)
    if len(idea.strip()) < MIN_PROMPT_LENGTH:
        return _update(TaskState.INPUT_REQUIRED, SHORT_PROMPT_MESSAGE)
    return None


def build_metadata_input(task: Task, idea: str) -> SongMetadataInput:
    """Собрать вход генератора метаданных из сообщения и metadata задачи."""
    meta: dict[str, Any] = task.metadata or {}
    tags = meta.get("tags")

    return SongMetadataInput(
        idea=idea,
        title=meta.get("title") or None,
        tags=[str(tag) for tag in tags] if isinstance(tags, list) and tags else None,
        lyrics=meta.get("lyrics") or None,
        duration=meta.get("duration") or None,
    )


def build_song_artifact(song: SongResponse, metadata: SongMetadata) -> TaskArtifact:
    """Артефакт песни: ссылка на аудио + данные трека.

    Raises:
        SongGenerationError: Если нет ссылки на аудио

    """
    if not song.music.audio_url:
        raise SongGenerationError("Invalid song data: missing audio URL")

    return TaskArtifact(
        parts=[
            AudioPart(audio_url=song.music.audio_url),
            DataPart(
                data={
                    "title": metadata.title,
                    "lyrics": metadata.lyrics,
                    "tags": metadata.tags,
                    "duration": song.music.duration,
                    "musicId": song.music.music_id,
                },
            ),
        ],
        metadata={
            "title": metadata.title,
            "tags": metadata.tags,
            "duration": song.music.duration,
        },
        index=0,
    )


class SongGenerationPipeline:
    """Pipeline генерации песни.

    Attributes:
        metadata_generator: Генератор метаданных (LLM)
        song_client: Клиент генерации аудио

    """

    def __init__(
        self,
        metadata_generator: SongMetadataGenerator,
        song_client: SongClient,
        generation_timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> None:
        """Инициализировать pipeline.

        Args:
            metadata_generator: SongMetadataGenerator instance
            song_client: Реализация SongClient
            generation_timeout: Лимит ожидания аудио (если None, используется из settings)
            poll_interval: Интервал опроса статуса (если None, используется из settings)

        """
        self.metadata_generator = metadata_generator
        self.song_client = song_client
        self.generation_timeout = generation_timeout or settings.song_generation_timeout_seconds
        self.poll_interval = poll_interval or settings.song_poll_interval_seconds

        logger.info("SongGenerationPipeline инициализирован", client=type(song_client).__name__)

    async def handle_task(self, context: TaskContext) -> AsyncIterator[TaskYieldUpdate]:
        """Сгенерировать песню, отдавая обновления статуса.

        Args:
            context: Задача и флаг отмены

        Yields:
            Обновления статуса, последнее - финальное

        """
        task = context.task
        cancelled = _update(TaskState.CANCELLED, CANCELLED_MESSAGE)

        try:
            idea = (task.message.first_text() if task.message else None) or ""

            prompt_update = validate_prompt(idea)
            if prompt_update is not None:
                logger.info("Промпт требует уточнения", task_id=task.id, idea_length=len(idea.strip()))
                yield prompt_update
                return

            yield _working("Starting song generation process...")
            yield _working("Generating song metadata...")

            try:
                metadata = await self.metadata_generator.generate(build_metadata_input(task, idea))
            except Exception as e:
                logger.error("Ошибка генерации метаданных", task_id=task.id, error=str(e))
                yield _update(TaskState.FAILED, f"Failed to generate song metadata: {e}")
                return

            if context.is_cancelled():
                yield cancelled
                return

            yield _working(f'Generating audio for "{metadata.title}"...')

            if context.is_cancelled():
                yield cancelled
                return

            await self.song_client.generate_song(
                task.id,
                SongGenerationOptions(
                    prompt=idea,
                    title=metadata.title,
                    lyrics=metadata.lyrics,
                    tags=metadata.tags,
                ),
            )

            last_progress = 0
            statuses = self.song_client.wait_for_completion(
                task.id,
                timeout=self.generation_timeout,
                interval=self.poll_interval,
            )
            try:
                async for status in statuses:
                    if context.is_cancelled():
                        yield cancelled
                        return

                    if status.progress > last_progress:
                        last_progress = status.progress
                        yield _working(f"Generating audio... {status.progress}%")
            finally:
                aclose = getattr(statuses, "aclose", None)
                if aclose is not None:
                    await aclose()

            song = await self.song_client.get_song(task.id)

            if context.is_cancelled():
                yield cancelled
                return

            artifact = build_song_artifact(song, metadata)

            logger.info("Песня сгенерирована", task_id=task.id, title=metadata.title, music_id=song.music.music_id)

            yield _update(
                TaskState.COMPLETED,
                f'Song "{metadata.title}" has been generated successfully!',
                artifacts=[artifact],
            )

        except Exception as e:
            logger.exception("Ошибка генерации песни", task_id=task.id, error=str(e))
            yield _update(TaskState.FAILED, f"Generation failed: {e}")
