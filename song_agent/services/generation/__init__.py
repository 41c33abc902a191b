"""Генерация контента: pipeline песни и генератор метаданных."""

from song_agent.services.generation.metadata_generator import SongMetadataGenerator
from song_agent.services.generation.pipeline import ContentPipeline
from song_agent.services.generation.song_pipeline import SongGenerationPipeline

__all__ = ["ContentPipeline", "SongGenerationPipeline", "SongMetadataGenerator"]
