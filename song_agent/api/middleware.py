"""ASGI middleware Song Agent."""

from typing import Any

from song_agent.shared.errors import bind_trace_id


class TraceContextMiddleware:
    """Устанавливает trace_id запроса в контекст и в заголовок ответа.

    trace_id берётся из заголовка X-Trace-Id или генерируется.
    Чистый ASGI: не буферизует ответ, поэтому подходит для SSE.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        """Обработка запроса с установкой trace_id.

        Args:
            scope: ASGI scope.
            receive: ASGI receive callable.
            send: ASGI send callable.

        """
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        trace_id = bind_trace_id(headers.get(b"x-trace-id", b"").decode())

        async def send_with_trace(message: dict) -> None:
            if message["type"] == "http.response.start":
                response_headers = [
                    (name, value) for name, value in message.get("headers", []) if name.lower() != b"x-trace-id"
                ]
                response_headers.append((b"x-trace-id", trace_id.encode()))
                message["headers"] = response_headers
            await send(message)

        await self.app(scope, receive, send_with_trace)
