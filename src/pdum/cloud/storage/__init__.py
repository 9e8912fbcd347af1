"""Google Cloud Storage bindings."""

from .bucket import Bucket, BucketInfo
from .client import StorageClient
from .object import Object, ObjectInfo

__all__ = ["Bucket", "BucketInfo", "Object", "ObjectInfo", "StorageClient"]
