"""Redis pub/sub event publisher."""

import logging
from typing import Optional

from redis import Redis

from events.publisher import EventPublisherPort
from events.schemas import DomainEvent

logger = logging.getLogger(__name__)


class RedisEventPublisher(EventPublisherPort):
    """Publish domain events as JSON on redis channels.

    Channel name is ``channel_prefix + topic``, e.g.
    ``findbearings.demand-matched``. Pub/sub gives at-most-once delivery:
    subscribers that are not connected miss the event.
    """

    def __init__(self, client: Redis, channel_prefix: str = "findbearings."):
        self.client = client
        self.channel_prefix = channel_prefix

    @classmethod
    def from_url(cls, redis_url: str, channel_prefix: str = "findbearings.") -> "RedisEventPublisher":
        return cls(Redis.from_url(redis_url, decode_responses=True), channel_prefix)

    def channel(self, topic: str) -> str:
        return f"{self.channel_prefix}{topic}"

    def publish(self, topic: str, event: DomainEvent) -> None:
        receivers: Optional[int] = self.client.publish(self.channel(topic), event.model_dump_json())
        if not receivers:
            logger.debug(f"No subscribers on {self.channel(topic)}", extra={"topic": topic})
