"""Bucket handle and metadata."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from pdum.cloud._helpers import parse_timestamp, require
from pdum.cloud.types.resource import Resource

if TYPE_CHECKING:
    from pdum.cloud.pager import Pager

    from .client import StorageClient
    from .object import Object


@dataclass
class BucketInfo:
    """Metadata of a bucket."""

    name: str
    location: Optional[str] = None
    storage_class: Optional[str] = None
    created: Optional[dt.datetime] = None

    @classmethod
    def from_resource(cls, data: dict) -> "BucketInfo":
        created = data.get("timeCreated")
        return cls(
            name=require(data, "name", what="bucket"),
            location=data.get("location"),
            storage_class=data.get("storageClass"),
            created=parse_timestamp(created) if created else None,
        )


@dataclass
class Bucket(Resource):
    """A Cloud Storage bucket scoped to a client.

    Every method is equivalent to the client method of the same purpose
    called with ``name`` filled in.
    """

    name: str
    info: Optional[BucketInfo] = field(default=None, compare=False)
    _client: Optional["StorageClient"] = field(default=None, repr=False, compare=False)

    def full_resource_name(self) -> str:
        return self.name

    async def create_object(
        self, name: str, data: bytes | str, content_type: str = "application/octet-stream"
    ) -> "Object":
        """Upload ``data`` under ``name`` (replacing any existing object)."""
        return await self._client.upload(self.name, name, data, content_type=content_type)

    async def object(self, name: str) -> "Object":
        return await self._client.object(self.name, name)

    def objects(self, *, prefix: Optional[str] = None) -> "Pager[Object]":
        return self._client.objects(self.name, prefix=prefix)

    async def get(self, name: str) -> bytes:
        return await self._client.download(self.name, name)

    async def delete_object(self, name: str) -> None:
        await self._client.delete_object(self.name, name)

    async def delete(self) -> None:
        """Delete the bucket; it must be empty."""
        await self._client.delete_bucket(self.name)


__all__ = ["Bucket", "BucketInfo"]
