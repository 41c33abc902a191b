"""HTTP клиент сервиса генерации песен (Suno-compatible API).

Endpoints (относительно base_url):
    POST /generate           - запуск генерации, ответ {id, status, estimatedTime}
    GET  /status/{job_id}    - прогресс {status, progress, data}
    GET  /song/{job_id}      - итог {jobId, music, metadata}

task_id агента сопоставляется с job_id сервиса после generate_song().
"""

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import httpx

from song_agent.config import settings
from song_agent.models.song import (
    GenerateSongResponse,
    SongGenerationOptions,
    SongResponse,
    StatusData,
    StatusResponse,
)
from song_agent.shared.errors import SongGenerationError
from song_agent.utils.logging import get_logger

logger = get_logger()

COMPLETED_STATUSES = frozenset({"completed", "complete", "success", "succeeded"})
FAILED_STATUSES = frozenset({"failed", "error"})


class SunoClient:
    """Клиент генерации песен поверх httpx.

    Attributes:
        base_url: Base URL API
        poll_interval: Интервал опроса статуса (секунды)
        generation_timeout: Максимальное время ожидания генерации (секунды)

    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        poll_interval: float | None = None,
        generation_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Инициализировать SunoClient.

        Args:
            api_key: API ключ (если None, используется из settings)
            base_url: Base URL API (если None, используется из settings)
            timeout: HTTP timeout (если None, используется из settings)
            poll_interval: Интервал опроса (если None, используется из settings)
            generation_timeout: Лимит ожидания (если None, используется из settings)
            transport: Custom httpx transport (для тестов)

        Raises:
            ValueError: Если API ключ не задан

        """
        api_key = api_key or settings.suno_api_key
        if not api_key:
            msg = "Suno API key is required"
            raise ValueError(msg)

        self.base_url = (base_url or settings.suno_base_url).rstrip("/")
        self.poll_interval = poll_interval or settings.song_poll_interval_seconds
        self.generation_timeout = generation_timeout or settings.song_generation_timeout_seconds

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.http_timeout_seconds,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

        self._jobs: dict[str, str] = {}

        logger.info("SunoClient инициализирован", base_url=self.base_url)

    async def generate_song(self, task_id: str, options: SongGenerationOptions) -> GenerateSongResponse:
        """Запустить генерацию песни.

        Args:
            task_id: ID задачи агента
            options: Промпт и метаданные песни

        Returns:
            Ответ сервиса с job id

        Raises:
            SongGenerationError: Ошибка API или ответ без job id

        """
        data = await self._request("POST", "/generate", json=options.to_wire())
        response = GenerateSongResponse.model_validate(data)

        if not response.id:
            raise SongGenerationError("Generation error: No valid job ID received")

        self._jobs[task_id] = response.id

        logger.info("Генерация песни запущена", task_id=task_id, job_id=response.id)

        return response

    async def check_status(self, task_id: str) -> StatusResponse:
        """Получить статус генерации.

        Raises:
            SongGenerationError: Если генерация не запускалась или API вернул ошибку

        """
        data = await self._request("GET", f"/status/{self._job_id(task_id)}")
        return StatusResponse.model_validate(data)

    async def wait_for_completion(
        self,
        task_id: str,
        timeout: float | None = None,
        interval: float | None = None,
    ) -> AsyncIterator[StatusData]:
        """Опрашивать статус до завершения.

        Args:
            task_id: ID задачи агента
            timeout: Лимит ожидания в секундах
            interval: Интервал опроса в секундах

        Yields:
            Прогресс генерации

        Raises:
            SongGenerationError: Генерация провалилась или превышен таймаут

        """
        timeout = timeout or self.generation_timeout
        interval = interval or self.poll_interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            status = await self.check_status(task_id)
            data = status.data or StatusData(status=status.status, progress=status.progress)
            state = data.status.lower()

            if state in FAILED_STATUSES:
                msg = data.error or "Song generation failed"
                raise SongGenerationError(msg)

            yield data

            if state in COMPLETED_STATUSES or data.progress >= 100:
                return

            if loop.time() + interval > deadline:
                msg = f"Song generation timed out after {timeout:.0f}s"
                raise SongGenerationError(msg)

            await asyncio.sleep(interval)

    async def get_song(self, task_id: str) -> SongResponse:
        """Получить итоговые данные песни.

        Raises:
            SongGenerationError: Ошибка API или нет ссылки на аудио

        """
        data = await self._request("GET", f"/song/{self._job_id(task_id)}")
        song = SongResponse.model_validate(data)

        if not song.music.audio_url:
            raise SongGenerationError("Invalid song data: missing audio URL")

        return song

    async def aclose(self) -> None:
        """Закрыть HTTP клиент."""
        await self.client.aclose()
        logger.info("SunoClient закрыт")

    def _job_id(self, task_id: str) -> str:
        job_id = self._jobs.get(task_id)
        if job_id is None:
            msg = f"No song generation started for task '{task_id}'"
            raise SongGenerationError(msg)
        return job_id

    async def _request(self, method: str, url: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self.client.request(method, url, json=json)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(
                "HTTP ошибка сервиса генерации песен",
                method=method,
                url=url,
                status_code=e.response.status_code,
            )
            msg = f"Song API HTTP error: {e.response.status_code}"
            raise SongGenerationError(msg) from e

        except httpx.HTTPError as e:
            logger.error("Сервис генерации песен недоступен", method=method, url=url, error=str(e))
            msg = f"Song API unavailable: {e}"
            raise SongGenerationError(msg) from e
