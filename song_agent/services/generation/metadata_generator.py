"""Генератор метаданных песни через OpenAI Chat Completions.

Клиент передаёт часть полей (title, tags, lyrics, duration), модель
дополняет недостающие. Ответ модели разбирается как JSON с несколькими
стратегиями извлечения и проверяется на корректность структуры.
"""

import re
from typing import Any

import orjson
from openai import AsyncOpenAI

from song_agent.config import settings
from song_agent.models.song import SongMetadata, SongMetadataInput
from song_agent.shared.errors import MetadataGenerationError
from song_agent.utils.logging import get_logger

logger = get_logger()

MIN_TAGS = 3
MAX_TAGS = 8
MAX_TITLE_LENGTH = 60

PROMPT_TEMPLATE = """You are a professional songwriter and music metadata expert.
You will receive a partial song metadata object. Some fields may already be provided (title, tags, lyrics, idea, duration) and MUST be respected exactly as given.
For any missing fields, generate creative and appropriate values to complete the metadata.

Return a JSON object with this structure:
{{
  "title": "...",
  "lyrics": "...",
  "tags": [ ... ],
  "idea": "...",
  "duration": ...
}}

Rules:
- If a field is provided, use it exactly as given, EXCEPT for lyrics: if lyrics are present but seem incomplete for the song's duration or context, complete them naturally and coherently, keeping the original content.
- If a field is missing, generate it.
- If you generate lyrics, include section markers like [verse], [chorus], [solo], [intro], [instrumental] to give the song structure.
- Output ONLY the JSON, no explanations or additional text.
- The JSON must be properly formatted and escaped.

Partial metadata provided:
{partial_metadata}
"""

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def build_prompt(metadata_input: SongMetadataInput) -> str:
    """Собрать промпт: заданные клиентом поля + инструкции."""
    partial = orjson.dumps(metadata_input.provided_fields(), option=orjson.OPT_INDENT_2).decode("utf-8")
    return PROMPT_TEMPLATE.format(partial_metadata=partial)


def is_valid_structure(data: Any) -> bool:
    """Проверить структуру ответа: title, lyrics и 3-8 непустых тегов."""
    if not isinstance(data, dict):
        return False

    title = data.get("title")
    lyrics = data.get("lyrics")
    tags = data.get("tags")

    if not isinstance(title, str) or not title.strip():
        return False
    if not isinstance(lyrics, str) or not lyrics.strip():
        return False
    if not isinstance(tags, list) or not MIN_TAGS <= len(tags) <= MAX_TAGS:
        return False
    return all(isinstance(tag, str) and tag.strip() for tag in tags)


def extract_metadata_json(content: str) -> dict[str, Any]:
    """Извлечь JSON метаданных из ответа модели.

    Порядок попыток:
    1. Code block (```json ... ``` или ``` ... ```)
    2. Внешние фигурные скобки
    3. Те же скобки после чистки пробелов и висячих запятых

    Args:
        content: Текст ответа модели

    Returns:
        Распарсенный объект с корректной структурой

    Raises:
        MetadataGenerationError: Если ни одна стратегия не дала валидный JSON

    """
    candidates: list[str] = []

    block_match = _CODE_BLOCK_RE.search(content)
    if block_match:
        candidates.append(block_match.group(1).strip())

    object_match = _OBJECT_RE.search(content)
    if object_match:
        raw = object_match.group(0).strip()
        candidates.append(raw)
        candidates.append(_TRAILING_COMMA_RE.sub(r"\1", re.sub(r"\s+", " ", raw)))

    for candidate in candidates:
        try:
            parsed = orjson.loads(candidate)
        except orjson.JSONDecodeError as e:
            logger.debug("Невалидный JSON в ответе модели", error=str(e))
            continue

        if is_valid_structure(parsed):
            return parsed

        logger.debug("JSON не прошёл проверку структуры")

    raise MetadataGenerationError("Cannot generate song metadata from empty input")


class SongMetadataGenerator:
    """Генерация метаданных песни через AsyncOpenAI.

    Attributes:
        model: Название chat модели
        temperature: Температура генерации
        client: AsyncOpenAI client

    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """Инициализировать генератор.

        Args:
            api_key: API ключ OpenAI (если None, используется из settings)
            model: Модель (если None, используется из settings)
            temperature: Температура (если None, используется из settings)
            base_url: Base URL API (если None, используется из settings)
            client: Готовый AsyncOpenAI client (для тестов)

        Raises:
            ValueError: Если не задан ни client, ни API ключ

        """
        self.model = model or settings.openai_model
        self.temperature = temperature if temperature is not None else settings.openai_temperature

        if client is None:
            api_key = api_key or settings.openai_api_key
            if not api_key:
                msg = "OpenAI API key is required"
                raise ValueError(msg)

            client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url or settings.openai_base_url,
                timeout=settings.http_timeout_seconds,
                max_retries=settings.http_max_retries,
            )

        self.client = client

        logger.info("SongMetadataGenerator инициализирован", model=self.model, temperature=self.temperature)

    async def generate(self, metadata_input: SongMetadataInput) -> SongMetadata:
        """Сгенерировать полные метаданные песни.

        Args:
            metadata_input: Идея песни и заданные клиентом поля

        Returns:
            Метаданные с нормализованными тегами

        Raises:
            MetadataGenerationError: Пустая идея, ошибка модели или невалидный ответ

        """
        if not metadata_input.idea.strip():
            raise MetadataGenerationError("Cannot generate song metadata from empty input")

        logger.debug("Генерация метаданных песни", model=self.model, idea_length=len(metadata_input.idea))

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": build_prompt(metadata_input)}],
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error("Ошибка запроса к OpenAI", model=self.model, error=str(e))
            msg = f"Error generating metadata: {e}"
            raise MetadataGenerationError(msg) from e

        content = response.choices[0].message.content or ""
        data = extract_metadata_json(content)
        metadata = self._validate(data)

        logger.info(
            "Метаданные песни сгенерированы",
            title=metadata.title,
            tags=metadata.tags,
            lyrics_length=len(metadata.lyrics),
        )

        return metadata

    def _validate(self, data: dict[str, Any]) -> SongMetadata:
        title = data["title"].strip()
        if len(title) > MAX_TITLE_LENGTH:
            raise MetadataGenerationError("Title too long")

        duration = data.get("duration")

        return SongMetadata(
            title=title,
            lyrics=data["lyrics"],
            tags=[tag.strip().lower() for tag in data["tags"]],
            idea=data.get("idea") if isinstance(data.get("idea"), str) else None,
            duration=duration if isinstance(duration, (int, float)) and not isinstance(duration, bool) else None,
        )
