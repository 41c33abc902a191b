"""Настройки приложения Song Agent.

Конфигурация загружается из переменных окружения через pydantic-settings.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Основные настройки приложения."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =================================================================
    # Application
    # =================================================================
    app_name: str = Field(default="Song Generation Agent", description="Название приложения")
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Окружение",
    )
    debug: bool = Field(default=False, description="Режим отладки")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Уровень логирования",
    )

    # =================================================================
    # Server
    # =================================================================
    server_host: str = Field(default="0.0.0.0", description="Хост сервера")
    server_port: int = Field(default=8001, description="Порт сервера")
    agent_url: str = Field(
        default="http://localhost:8001",
        description="Публичный URL агента (для agent card)",
    )
    cors_allowed_origins: list[str] = Field(default=["*"], description="Разрешённые origins для CORS")

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Валидация порта."""
        if not 1 <= v <= 65535:
            msg = f"Порт должен быть в диапазоне 1-65535, получено: {v}"
            raise ValueError(msg)
        return v

    # =================================================================
    # Task queue
    # =================================================================
    max_concurrent_tasks: int = Field(default=1, ge=1, description="Максимум одновременно обрабатываемых задач")
    task_max_retries: int = Field(default=3, ge=0, description="Количество повторов при сбое pipeline")
    task_retry_delay_seconds: float = Field(default=1.0, ge=0.0, description="Задержка между повторами")

    # =================================================================
    # Webhooks
    # =================================================================
    webhook_timeout_seconds: float = Field(default=30.0, gt=0, description="Таймаут webhook запросов")
    webhook_max_retries: int = Field(
        default=0,
        ge=0,
        description="Количество повторов webhook (0 = best-effort, без повторов)",
    )

    # =================================================================
    # HTTP clients
    # =================================================================
    http_timeout_seconds: float = Field(default=60.0, gt=0, description="Таймаут HTTP запросов")
    http_max_retries: int = Field(default=2, ge=0, description="Количество повторов HTTP запросов")

    # =================================================================
    # OpenAI (генерация метаданных песни)
    # =================================================================
    openai_api_key: str | None = Field(default=None, description="API ключ OpenAI")
    openai_base_url: str | None = Field(default=None, description="Base URL для OpenAI API")
    openai_model: str = Field(default="gpt-4o-mini", description="Модель для генерации метаданных")
    openai_temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Температура генерации")

    # =================================================================
    # Song generation backend
    # =================================================================
    suno_api_key: str | None = Field(default=None, description="API ключ сервиса генерации песен")
    suno_base_url: str = Field(
        default="https://api.sunoapi.com/api/v1",
        description="Base URL сервиса генерации песен",
    )
    demo_mode: bool = Field(default=False, description="Использовать демо-клиент вместо реального API")
    demo_step_delay_seconds: float = Field(default=30.0, ge=0.0, description="Пауза между шагами демо-клиента")
    song_poll_interval_seconds: float = Field(default=3.0, gt=0, description="Интервал опроса статуса генерации")
    song_generation_timeout_seconds: float = Field(
        default=400.0,
        gt=0,
        description="Максимальное время ожидания генерации аудио",
    )


settings = Settings()
