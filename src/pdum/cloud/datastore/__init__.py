"""Google Cloud Datastore bindings."""

from .client import DatastoreClient, TransactionMode
from .entity import Entity
from .index_excluded import IndexExcluded
from .key import Key
from .mapping import from_value, model, rename, to_value
from .query import Filter, Order, Query
from .transaction import Transaction
from .value import GeoPoint

__all__ = [
    "DatastoreClient",
    "Entity",
    "Filter",
    "GeoPoint",
    "IndexExcluded",
    "Key",
    "Order",
    "Query",
    "Transaction",
    "TransactionMode",
    "from_value",
    "model",
    "rename",
    "to_value",
]
