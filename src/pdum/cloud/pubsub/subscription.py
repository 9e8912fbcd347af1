"""Subscription handle, configuration and receive options."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AsyncIterator, Optional

import backoff

from pdum.cloud._helpers import format_duration
from pdum.cloud.types.resource import Resource

if TYPE_CHECKING:
    from .client import PubSubClient
    from .message import Message


@dataclass
class SubscriptionConfig:
    """Settings applied when creating a subscription.

    Attributes
    ----------
    ack_deadline : timedelta, default 10s
        Time a subscriber has to acknowledge a message before redelivery.
    retain_messages : timedelta, optional
        Retain acknowledged messages for this long (enables seek/replay).
    labels : dict[str, str]
        Labels attached to the subscription.
    """

    ack_deadline: dt.timedelta = dt.timedelta(seconds=10)
    retain_messages: Optional[dt.timedelta] = None
    labels: dict[str, str] = field(default_factory=dict)

    def to_wire(self, topic: str) -> dict:
        wire: dict = {
            "topic": topic,
            "ackDeadlineSeconds": int(self.ack_deadline.total_seconds()),
            "retainAckedMessages": self.retain_messages is not None,
        }
        if self.retain_messages is not None:
            wire["messageRetentionDuration"] = format_duration(self.retain_messages)
        if self.labels:
            wire["labels"] = dict(self.labels)
        return wire


@dataclass
class ReceiveOptions:
    """Options for a single pull.

    Attributes
    ----------
    return_immediately : bool, default False
        Return an empty batch instead of waiting when no message is available.
    max_messages : int, default 1
        Upper bound on messages returned by one pull.
    """

    return_immediately: bool = False
    max_messages: int = 1

    def to_wire(self) -> dict:
        return {"returnImmediately": self.return_immediately, "maxMessages": self.max_messages}


@dataclass
class StreamingOptions:
    """Options for :meth:`Subscription.stream`.

    Attributes
    ----------
    max_messages : int, default 100
        Batch size of each underlying pull.
    auto_ack : bool, default True
        Acknowledge each pulled batch before yielding it.
    filter_redeliveries : bool, default False
        Drop messages whose delivery attempt is non-zero.
    """

    max_messages: int = 100
    auto_ack: bool = True
    filter_redeliveries: bool = False


@dataclass
class Subscription(Resource):
    """A Pub/Sub subscription scoped to a client."""

    id: str
    _client: "PubSubClient" = field(repr=False, compare=False)

    def full_resource_name(self) -> str:
        return self._client.subscription_path(self.id)

    async def pull(self, options: Optional[ReceiveOptions] = None) -> list["Message"]:
        """Pull one batch of messages (possibly empty)."""
        return await self._client.pull(self.id, options)

    async def receive(self, options: Optional[ReceiveOptions] = None) -> Optional["Message"]:
        """Receive the next message.

        With ``return_immediately`` set, returns ``None`` when nothing is
        available. Otherwise keeps pulling (with exponential backoff between
        empty pulls) until a message arrives; bound the wait with
        ``asyncio.wait_for`` if needed. Errors end the wait immediately.
        """
        options = options or ReceiveOptions()
        single = ReceiveOptions(return_immediately=options.return_immediately, max_messages=1)

        if options.return_immediately:
            messages = await self.pull(single)
            return messages[0] if messages else None

        messages = await self._poll(single)
        return messages[0]

    async def stream(self, options: Optional[StreamingOptions] = None) -> AsyncIterator["Message"]:
        """Yield messages from repeated pulls until the caller stops iterating.

        Empty pulls are retried with exponential backoff (capped at 8s).
        """
        options = options or StreamingOptions()
        batch = ReceiveOptions(max_messages=options.max_messages)

        while True:
            messages = await self._poll(batch)
            if options.auto_ack and messages:
                await self._client.acknowledge(self.id, [m.ack_id for m in messages])
            for message in messages:
                if options.filter_redeliveries and message.delivery_attempt > 0:
                    continue
                yield message

    async def _poll(self, options: ReceiveOptions) -> list["Message"]:
        """Pull until a non-empty batch arrives, backing off between empty pulls."""

        @backoff.on_predicate(backoff.expo, max_value=8)
        async def poll() -> list["Message"]:
            return await self.pull(options)

        return await poll()

    async def delete(self) -> None:
        await self._client.delete_subscription(self.id)


__all__ = ["ReceiveOptions", "StreamingOptions", "Subscription", "SubscriptionConfig"]
