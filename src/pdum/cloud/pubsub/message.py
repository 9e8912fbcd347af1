"""Pub/Sub message types."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from pdum.cloud._helpers import b64decode, b64encode, parse_timestamp, require, to_bytes

if TYPE_CHECKING:
    from .client import PubSubClient


@dataclass
class OutgoingMessage:
    """A message to publish.

    Attributes
    ----------
    data : bytes
        Payload; text is UTF-8 encoded.
    attributes : dict[str, str]
        Optional key/value attributes.
    ordering_key : str
        Ordering key; empty for unordered delivery.
    """

    data: bytes
    attributes: dict[str, str] = field(default_factory=dict)
    ordering_key: str = ""

    def __post_init__(self) -> None:
        self.data = to_bytes(self.data)

    def to_wire(self) -> dict:
        wire: dict = {"data": b64encode(self.data)}
        if self.attributes:
            wire["attributes"] = dict(self.attributes)
        if self.ordering_key:
            wire["orderingKey"] = self.ordering_key
        return wire


@dataclass
class Message:
    """A message received from a subscription.

    Attributes
    ----------
    id : str
        Server-assigned message id.
    data : bytes
        Payload.
    attributes : dict[str, str]
        Message attributes.
    publish_time : datetime
        When the server accepted the message (UTC).
    ack_id : str
        Acknowledgement handle, valid for the subscription it came from.
    subscription : str
        Full name of that subscription.
    delivery_attempt : int
        Delivery counter (0 when the subscription has no dead-letter policy).
    ordering_key : str
        Ordering key the message was published with.
    """

    id: str
    data: bytes
    attributes: dict[str, str]
    publish_time: Optional[dt.datetime]
    ack_id: str
    subscription: str
    delivery_attempt: int = 0
    ordering_key: str = ""
    _client: Optional["PubSubClient"] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_received(cls, received: dict, *, subscription: str, client: Optional["PubSubClient"] = None) -> "Message":
        """Build a Message from a ``ReceivedMessage`` JSON object."""
        ack_id = require(received, "ackId", what="received message")
        message = require(received, "message", what="received message")
        publish_time = message.get("publishTime")
        return cls(
            id=require(message, "messageId", what="message"),
            data=b64decode(message.get("data", "")),
            attributes=dict(message.get("attributes", {})),
            publish_time=parse_timestamp(publish_time) if publish_time else None,
            ack_id=ack_id,
            subscription=subscription,
            delivery_attempt=int(received.get("deliveryAttempt", 0)),
            ordering_key=message.get("orderingKey", ""),
            _client=client,
        )

    def text(self, encoding: str = "utf-8") -> str:
        """Decode the payload as text."""
        return self.data.decode(encoding)

    async def ack(self) -> None:
        """Acknowledge the message so it is not redelivered."""
        await self._bound_client().acknowledge(self.subscription, [self.ack_id])

    async def nack(self) -> None:
        """Release the message for immediate redelivery (ack deadline set to zero)."""
        await self._bound_client().modify_ack_deadline(self.subscription, [self.ack_id], 0)

    def _bound_client(self) -> "PubSubClient":
        if self._client is None:
            raise RuntimeError("Message is not bound to a client")
        return self._client


__all__ = ["Message", "OutgoingMessage"]
