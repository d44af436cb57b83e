"""Redis pub/sub publisher: one JSON message per event on NOTIFICATION_CHANNEL."""

from config.settings import settings
from src.pa_common.redis_client import get_redis
from src.pa_notify.domain.events import NotificationEvent


class RedisNotificationPublisher:
    def __init__(self, channel: str | None = None) -> None:
        self._channel = channel or settings.NOTIFICATION_CHANNEL

    async def publish(self, event: NotificationEvent) -> None:
        redis = await get_redis()
        await redis.publish(self._channel, event.to_json())
