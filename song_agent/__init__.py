"""Song Agent - A2A агент генерации песен.

Асинхронные задачи "промпт -> песня" с жизненным циклом A2A
и доставкой событий через SSE или webhook.
"""

__version__ = "1.0.0"
