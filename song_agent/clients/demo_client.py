"""Демо клиент генерации песен.

Не обращается к сети: отдаёт прогресс 50% -> 100% с паузой между
шагами и фиксированную демо-песню.
"""

import asyncio
from collections.abc import AsyncIterator

from song_agent.config import settings
from song_agent.models.song import (
    GenerateSongResponse,
    MusicInfo,
    SongGenerationOptions,
    SongResponse,
    StatusData,
    StatusResponse,
)
from song_agent.utils.logging import get_logger

logger = get_logger()

DEMO_JOB_ID = "demo-job-id"
DEMO_AUDIO_URL = "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-1.mp3"
DEMO_PROGRESS_STEPS = (50, 100)


class DemoSongClient:
    """Клиент для demo режима и тестов."""

    def __init__(self, step_delay: float | None = None) -> None:
        """Инициализировать DemoSongClient.

        Args:
            step_delay: Пауза между шагами прогресса (если None, используется из settings)

        """
        self.step_delay = step_delay if step_delay is not None else settings.demo_step_delay_seconds
        logger.info("DemoSongClient инициализирован", step_delay=self.step_delay)

    async def generate_song(self, task_id: str, options: SongGenerationOptions) -> GenerateSongResponse:
        logger.debug("Демо генерация песни", task_id=task_id, title=options.title)
        return GenerateSongResponse(id=task_id, status="working", estimated_time=3)

    async def check_status(self, task_id: str) -> StatusResponse:
        data = StatusData(status="working", progress=DEMO_PROGRESS_STEPS[0], job_id=DEMO_JOB_ID)
        return StatusResponse(status=data.status, progress=data.progress, data=data)

    async def wait_for_completion(
        self,
        task_id: str,
        timeout: float | None = None,
        interval: float | None = None,
    ) -> AsyncIterator[StatusData]:
        for i, progress in enumerate(DEMO_PROGRESS_STEPS):
            if i:
                await asyncio.sleep(self.step_delay)
            yield StatusData(status="working", progress=progress, job_id=DEMO_JOB_ID)

    async def get_song(self, task_id: str) -> SongResponse:
        return SongResponse(
            job_id=DEMO_JOB_ID,
            music=MusicInfo(
                music_id="demo-music-id",
                title="Demo Song Title",
                audio_url=DEMO_AUDIO_URL,
                duration=120,
            ),
            metadata={"title": "Demo Song Title", "tags": ["demo", "test"]},
        )

    async def aclose(self) -> None:
        return None
