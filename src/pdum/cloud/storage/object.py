"""Object handle and metadata."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from pdum.cloud._helpers import parse_timestamp, require
from pdum.cloud.types.resource import Resource

if TYPE_CHECKING:
    from .client import StorageClient


@dataclass
class ObjectInfo:
    """Metadata of a stored object.

    Attributes
    ----------
    name : str
        Object name within its bucket.
    bucket : str
        Name of the containing bucket.
    size : int
        Size of the object data in bytes.
    content_type : str, optional
        MIME type recorded at upload time.
    updated : datetime, optional
        Last modification time (UTC).
    generation : str, optional
        Object generation.
    md5_hash : str, optional
        Base64 MD5 of the data, when the provider computed one.
    """

    name: str
    bucket: str
    size: int = 0
    content_type: Optional[str] = None
    updated: Optional[dt.datetime] = None
    generation: Optional[str] = None
    md5_hash: Optional[str] = None

    @classmethod
    def from_resource(cls, data: dict) -> "ObjectInfo":
        """Build from an ``storage#object`` JSON resource."""
        updated = data.get("updated")
        return cls(
            name=require(data, "name", what="object"),
            bucket=require(data, "bucket", what="object"),
            size=int(data.get("size", 0)),
            content_type=data.get("contentType"),
            updated=parse_timestamp(updated) if updated else None,
            generation=data.get("generation"),
            md5_hash=data.get("md5Hash"),
        )


@dataclass
class Object(Resource):
    """An object stored in a bucket, scoped to a client."""

    bucket: str
    name: str
    info: Optional[ObjectInfo] = field(default=None, compare=False)
    _client: Optional["StorageClient"] = field(default=None, repr=False, compare=False)

    def full_resource_name(self) -> str:
        return f"{self.bucket}/{self.name}"

    @property
    def size(self) -> Optional[int]:
        return self.info.size if self.info else None

    async def get(self) -> bytes:
        """Download the object's data."""
        return await self._client.download(self.bucket, self.name)

    async def reload(self) -> "Object":
        """Fetch fresh metadata; returns a new handle."""
        return await self._client.object(self.bucket, self.name)

    async def delete(self) -> None:
        await self._client.delete_object(self.bucket, self.name)


__all__ = ["Object", "ObjectInfo"]
