"""Topic handle and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

from pdum.cloud.types.resource import Resource

if TYPE_CHECKING:
    from pdum.cloud.pager import Pager

    from .client import PubSubClient
    from .message import OutgoingMessage
    from .subscription import Subscription, SubscriptionConfig


@dataclass
class TopicConfig:
    """Settings applied when creating a topic."""

    labels: dict[str, str] = field(default_factory=dict)

    def to_wire(self) -> dict:
        return {"labels": dict(self.labels)} if self.labels else {}


@dataclass
class Topic(Resource):
    """A Pub/Sub topic scoped to a client.

    Every method is equivalent to the client method of the same purpose
    called with ``id`` filled in.
    """

    id: str
    _client: "PubSubClient" = field(repr=False, compare=False)

    def full_resource_name(self) -> str:
        return self._client.topic_path(self.id)

    async def publish(
        self,
        data: bytes | str,
        attributes: Optional[dict[str, str]] = None,
        *,
        ordering_key: str = "",
    ) -> str:
        """Publish one message; returns its server-assigned id."""
        return await self._client.publish(self.id, data, attributes, ordering_key=ordering_key)

    async def publish_batch(self, messages: Iterable["OutgoingMessage"]) -> list[str]:
        return await self._client.publish_batch(self.id, messages)

    async def create_subscription(
        self, subscription_id: str, config: Optional["SubscriptionConfig"] = None
    ) -> "Subscription":
        """Create a subscription attached to this topic."""
        return await self._client.create_subscription(subscription_id, self.id, config)

    def subscriptions(self) -> "Pager[Subscription]":
        return self._client.topic_subscriptions(self.id)

    async def delete(self) -> None:
        await self._client.delete_topic(self.id)


__all__ = ["Topic", "TopicConfig"]
