"""Song модели.

Метаданные песни и ответы сервиса генерации аудио.
"""

from typing import Any

from pydantic import Field

from song_agent.models.a2a import A2AModel


class SongMetadata(A2AModel):
    """Метаданные песни (частично задаются клиентом, остальное дополняет LLM)."""

    title: str
    lyrics: str
    tags: list[str] = Field(default_factory=list)
    idea: str | None = None
    duration: float | None = None


class SongMetadataInput(A2AModel):
    """Вход генератора метаданных: идея + то, что клиент уже указал."""

    idea: str
    title: str | None = None
    tags: list[str] | None = None
    lyrics: str | None = None
    duration: float | None = None

    def provided_fields(self) -> dict[str, Any]:
        """Только заполненные поля (для промпта)."""
        fields: dict[str, Any] = {}
        if self.title:
            fields["title"] = self.title
        if self.lyrics:
            fields["lyrics"] = self.lyrics
        if self.tags:
            fields["tags"] = self.tags
        if self.idea:
            fields["idea"] = self.idea
        if self.duration:
            fields["duration"] = self.duration
        return fields


class SongGenerationOptions(A2AModel):
    """Параметры запроса генерации аудио."""

    prompt: str
    title: str | None = None
    lyrics: str | None = None
    tags: list[str] | None = None


class GenerateSongResponse(A2AModel):
    """Ответ на запуск генерации."""

    id: str
    status: str
    estimated_time: float | None = None


class StatusData(A2AModel):
    """Прогресс генерации аудио."""

    status: str
    progress: int = 0
    job_id: str | None = None
    error: str | None = None


class StatusResponse(A2AModel):
    """Ответ на проверку статуса."""

    status: str
    progress: int = 0
    data: StatusData | None = None


class MusicInfo(A2AModel):
    """Сгенерированный трек."""

    music_id: str
    title: str
    audio_url: str
    duration: float | None = None


class SongResponse(A2AModel):
    """Итоговые данные песни."""

    job_id: str
    music: MusicInfo
    metadata: dict[str, Any] = Field(default_factory=dict)
