"""Контракт клиента генерации аудио.

Реализация выбирается при сборке приложения (реальный API или демо),
pipeline работает только с этим протоколом.
"""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from song_agent.models.song import (
    GenerateSongResponse,
    SongGenerationOptions,
    SongResponse,
    StatusData,
    StatusResponse,
)


@runtime_checkable
class SongClient(Protocol):
    """Клиент сервиса генерации песен."""

    async def generate_song(self, task_id: str, options: SongGenerationOptions) -> GenerateSongResponse:
        """Запустить генерацию песни для задачи."""
        ...

    async def check_status(self, task_id: str) -> StatusResponse:
        """Текущий статус генерации."""
        ...

    def wait_for_completion(
        self,
        task_id: str,
        timeout: float | None = None,
        interval: float | None = None,
    ) -> AsyncIterator[StatusData]:
        """Опрашивать статус до завершения, отдавая прогресс."""
        ...

    async def get_song(self, task_id: str) -> SongResponse:
        """Получить итоговые данные песни."""
        ...

    async def aclose(self) -> None:
        """Освободить ресурсы клиента."""
        ...
