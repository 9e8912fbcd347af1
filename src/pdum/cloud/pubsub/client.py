"""Pub/Sub client."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from pdum.cloud._clients import pubsub_channel
from pdum.cloud._helpers import quote_segment, require, short_name
from pdum.cloud.channel import Channel
from pdum.cloud.config import ClientConfig
from pdum.cloud.pager import Pager
from pdum.cloud.types.constants import DEFAULT_PAGE_SIZE
from pdum.cloud.types.exceptions import DecodeError

from .message import Message, OutgoingMessage
from .subscription import ReceiveOptions, Subscription, SubscriptionConfig
from .topic import Topic, TopicConfig

logger = logging.getLogger(__name__)


class PubSubClient:
    """The Pub/Sub client, tied to a specific project.

    Build one with :meth:`connect` and use it as an async context manager::

        async with await PubSubClient.connect("my-project") as client:
            topic = await client.create_topic("events")
            await topic.publish(b"hello")

    Topic and subscription arguments accept either short ids (``"events"``)
    or full resource names (``"projects/p/topics/events"``).
    """

    def __init__(self, project: str, channel: Channel) -> None:
        self.project = project
        self.channel = channel.retain()

    def __repr__(self) -> str:
        return f"PubSubClient(project={self.project!r}, endpoint={self.channel.base_url!r})"

    @classmethod
    async def connect(cls, project: Optional[str] = None, *, config: Optional[ClientConfig] = None) -> "PubSubClient":
        """Create an authenticated client.

        Raises
        ------
        AuthError
            If credentials or the project cannot be determined.
        CloudConnectionError
            If the endpoint is unreachable.
        """
        channel, project = await pubsub_channel(project, config)
        return cls(project, channel)

    async def close(self) -> None:
        await self.channel.release()

    async def __aenter__(self) -> "PubSubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # -- names ---------------------------------------------------------------

    def topic_path(self, topic_id: str) -> str:
        if topic_id.startswith("projects/"):
            return topic_id
        return f"projects/{self.project}/topics/{topic_id}"

    def subscription_path(self, subscription_id: str) -> str:
        if subscription_id.startswith("projects/"):
            return subscription_id
        return f"projects/{self.project}/subscriptions/{subscription_id}"

    @staticmethod
    def _url(path: str) -> str:
        return "/v1/" + "/".join(quote_segment(part) for part in path.split("/"))

    # -- topics --------------------------------------------------------------

    async def create_topic(self, topic_id: str, config: Optional[TopicConfig] = None) -> Topic:
        """Create a new topic."""
        config = config or TopicConfig()
        response = await self.channel.request("PUT", self._url(self.topic_path(topic_id)), json=config.to_wire())
        name = require(response, "name", what="topic")
        logger.info("Created topic %s", name)
        return Topic(id=short_name(name), _client=self)

    async def topic(self, topic_id: str) -> Topic:
        """Get a handle to an existing topic.

        Raises
        ------
        NotFound
            If the topic does not exist.
        """
        response = await self.channel.request("GET", self._url(self.topic_path(topic_id)))
        return Topic(id=short_name(require(response, "name", what="topic")), _client=self)

    def topics(self, *, page_size: int = DEFAULT_PAGE_SIZE) -> Pager[Topic]:
        """List all topics of the project."""
        url = self._url(f"projects/{self.project}") + "/topics"

        async def fetch(cursor: Optional[str]) -> tuple[list[Topic], Optional[str]]:
            response = await self.channel.request("GET", url, params={"pageSize": page_size, "pageToken": cursor})
            topics = [
                Topic(id=short_name(require(t, "name", what="topic")), _client=self)
                for t in response.get("topics", [])
            ]
            return topics, response.get("nextPageToken") or None

        return Pager(fetch)

    async def delete_topic(self, topic_id: str) -> None:
        await self.channel.request("DELETE", self._url(self.topic_path(topic_id)))
        logger.info("Deleted topic %s", self.topic_path(topic_id))

    async def publish(
        self,
        topic_id: str,
        data: bytes | str,
        attributes: Optional[dict[str, str]] = None,
        *,
        ordering_key: str = "",
    ) -> str:
        """Publish one message onto a topic and return its message id."""
        message = OutgoingMessage(data=data, attributes=dict(attributes or {}), ordering_key=ordering_key)
        (message_id,) = await self.publish_batch(topic_id, [message])
        return message_id

    async def publish_batch(self, topic_id: str, messages: Iterable[OutgoingMessage]) -> list[str]:
        """Publish several messages in one call; ids come back in input order."""
        wire = [m.to_wire() for m in messages]
        if not wire:
            return []
        response = await self.channel.request(
            "POST", self._url(self.topic_path(topic_id)) + ":publish", json={"messages": wire}
        )
        message_ids = list(require(response, "messageIds", what="publish response"))
        if len(message_ids) != len(wire):
            raise DecodeError(f"publish returned {len(message_ids)} ids for {len(wire)} messages")
        return message_ids

    # -- subscriptions -------------------------------------------------------

    async def create_subscription(
        self,
        subscription_id: str,
        topic_id: str,
        config: Optional[SubscriptionConfig] = None,
    ) -> Subscription:
        """Create a subscription to ``topic_id``."""
        config = config or SubscriptionConfig()
        response = await self.channel.request(
            "PUT",
            self._url(self.subscription_path(subscription_id)),
            json=config.to_wire(self.topic_path(topic_id)),
        )
        name = require(response, "name", what="subscription")
        logger.info("Created subscription %s", name)
        return Subscription(id=short_name(name), _client=self)

    async def subscription(self, subscription_id: str) -> Subscription:
        """Get a handle to an existing subscription.

        Raises
        ------
        NotFound
            If the subscription does not exist.
        """
        response = await self.channel.request("GET", self._url(self.subscription_path(subscription_id)))
        return Subscription(id=short_name(require(response, "name", what="subscription")), _client=self)

    def subscriptions(self, *, page_size: int = DEFAULT_PAGE_SIZE) -> Pager[Subscription]:
        """List all subscriptions of the project (to any topic)."""
        url = self._url(f"projects/{self.project}") + "/subscriptions"

        async def fetch(cursor: Optional[str]) -> tuple[list[Subscription], Optional[str]]:
            response = await self.channel.request("GET", url, params={"pageSize": page_size, "pageToken": cursor})
            subscriptions = [
                Subscription(id=short_name(require(s, "name", what="subscription")), _client=self)
                for s in response.get("subscriptions", [])
            ]
            return subscriptions, response.get("nextPageToken") or None

        return Pager(fetch)

    def topic_subscriptions(self, topic_id: str, *, page_size: int = DEFAULT_PAGE_SIZE) -> Pager[Subscription]:
        """List the subscriptions attached to one topic."""
        url = self._url(self.topic_path(topic_id)) + "/subscriptions"

        async def fetch(cursor: Optional[str]) -> tuple[list[Subscription], Optional[str]]:
            response = await self.channel.request("GET", url, params={"pageSize": page_size, "pageToken": cursor})
            # This endpoint returns bare names rather than subscription objects.
            subscriptions = [
                Subscription(id=short_name(name), _client=self) for name in response.get("subscriptions", [])
            ]
            return subscriptions, response.get("nextPageToken") or None

        return Pager(fetch)

    async def delete_subscription(self, subscription_id: str) -> None:
        await self.channel.request("DELETE", self._url(self.subscription_path(subscription_id)))
        logger.info("Deleted subscription %s", self.subscription_path(subscription_id))

    async def pull(self, subscription_id: str, options: Optional[ReceiveOptions] = None) -> list[Message]:
        """Pull one batch of messages from a subscription."""
        options = options or ReceiveOptions()
        name = self.subscription_path(subscription_id)
        response = await self.channel.request("POST", self._url(name) + ":pull", json=options.to_wire())
        return [
            Message.from_received(received, subscription=name, client=self)
            for received in response.get("receivedMessages", [])
        ]

    async def acknowledge(self, subscription_id: str, ack_ids: Iterable[str]) -> None:
        ack_ids = list(ack_ids)
        if not ack_ids:
            return
        await self.channel.request(
            "POST",
            self._url(self.subscription_path(subscription_id)) + ":acknowledge",
            json={"ackIds": ack_ids},
        )

    async def modify_ack_deadline(self, subscription_id: str, ack_ids: Iterable[str], seconds: int) -> None:
        """Change the ack deadline of messages; ``0`` makes them immediately redeliverable."""
        ack_ids = list(ack_ids)
        if not ack_ids:
            return
        await self.channel.request(
            "POST",
            self._url(self.subscription_path(subscription_id)) + ":modifyAckDeadline",
            json={"ackIds": ack_ids, "ackDeadlineSeconds": seconds},
        )


__all__ = ["PubSubClient"]
