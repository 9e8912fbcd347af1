"""Async clients for Google Cloud Pub/Sub, Datastore and Storage"""

from pdum.cloud.config import ClientConfig
from pdum.cloud.datastore import (
    DatastoreClient,
    Entity,
    Filter,
    GeoPoint,
    Key,
    Order,
    Query,
    Transaction,
    TransactionMode,
    model,
)
from pdum.cloud.pager import Pager
from pdum.cloud.pubsub import (
    Message,
    PubSubClient,
    ReceiveOptions,
    StreamingOptions,
    Subscription,
    SubscriptionConfig,
    Topic,
    TopicConfig,
)
from pdum.cloud.storage import Bucket, Object, StorageClient
from pdum.cloud.types import (
    AuthError,
    CloudConnectionError,
    CloudError,
    DecodeError,
    NotFound,
    ServiceError,
)

__version__ = "0.1.0-alpha"


__all__ = [
    "__version__",
    "ClientConfig",
    "Pager",
    "PubSubClient",
    "Topic",
    "TopicConfig",
    "Subscription",
    "SubscriptionConfig",
    "ReceiveOptions",
    "StreamingOptions",
    "Message",
    "DatastoreClient",
    "Entity",
    "Key",
    "Query",
    "Filter",
    "Order",
    "GeoPoint",
    "Transaction",
    "TransactionMode",
    "model",
    "StorageClient",
    "Bucket",
    "Object",
    "AuthError",
    "CloudConnectionError",
    "CloudError",
    "DecodeError",
    "NotFound",
    "ServiceError",
]
