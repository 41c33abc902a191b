"""Song Generation Agent - Entry Point.

Запускает FastAPI приложение через uvicorn.
"""

import uvicorn

from song_agent.config import settings


def main() -> None:
    """Запустить Song Agent."""
    uvicorn.run(
        "song_agent.app:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,  # Auto-reload только в debug
        log_level=settings.log_level.lower(),
        access_log=settings.debug,  # Access log только в debug
        workers=1,  # Store и очередь живут в памяти процесса
    )


if __name__ == "__main__":
    main()
