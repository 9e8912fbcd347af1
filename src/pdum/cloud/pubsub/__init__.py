"""Google Cloud Pub/Sub bindings."""

from .client import PubSubClient
from .message import Message, OutgoingMessage
from .subscription import ReceiveOptions, StreamingOptions, Subscription, SubscriptionConfig
from .topic import Topic, TopicConfig

__all__ = [
    "Message",
    "OutgoingMessage",
    "PubSubClient",
    "ReceiveOptions",
    "StreamingOptions",
    "Subscription",
    "SubscriptionConfig",
    "Topic",
    "TopicConfig",
]
