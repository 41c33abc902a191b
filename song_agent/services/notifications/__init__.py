"""Notification fan-out: SSE каналы и webhook уведомления."""

from song_agent.services.notifications.streaming_service import (
    ChannelClosedError,
    StreamChannel,
    StreamingService,
    encode_sse_event,
)
from song_agent.services.notifications.webhook_service import PushNotificationService

__all__ = [
    "ChannelClosedError",
    "PushNotificationService",
    "StreamChannel",
    "StreamingService",
    "encode_sse_event",
]
