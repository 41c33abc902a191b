"""API schemas."""

from song_agent.api.schemas.requests import JsonRpcRequest, TaskIdParams, WebhookRegistrationRequest
from song_agent.api.schemas.responses import CancelTaskResponse, HealthResponse, JsonRpcResponse

__all__ = [
    "CancelTaskResponse",
    "HealthResponse",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "TaskIdParams",
    "WebhookRegistrationRequest",
]
