"""Клиенты сервиса генерации песен."""

from song_agent.clients.base import SongClient
from song_agent.clients.demo_client import DemoSongClient
from song_agent.clients.suno_client import SunoClient

__all__ = ["DemoSongClient", "SongClient", "SunoClient"]
