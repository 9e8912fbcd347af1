"""Cloud Storage client."""

from __future__ import annotations

import logging
from typing import Optional

from pdum.cloud._clients import storage_channel
from pdum.cloud._helpers import quote_segment, to_bytes
from pdum.cloud.channel import Channel
from pdum.cloud.config import ClientConfig
from pdum.cloud.pager import Pager
from pdum.cloud.types.constants import DEFAULT_PAGE_SIZE

from .bucket import Bucket, BucketInfo
from .object import Object, ObjectInfo

logger = logging.getLogger(__name__)


class StorageClient:
    """The Cloud Storage client, tied to a specific project.

    The project is used for listing and creating buckets; bucket and object
    operations only need the bucket name.

    Example
    -------
    >>> async with await StorageClient.connect("my-project") as client:
    ...     bucket = await client.bucket("my-bucket")
    ...     await bucket.create_object("hello.txt", "hi", "text/plain")
    """

    def __init__(self, project: str, channel: Channel) -> None:
        self.project = project
        self.channel = channel.retain()

    def __repr__(self) -> str:
        return f"StorageClient(project={self.project!r}, endpoint={self.channel.base_url!r})"

    @classmethod
    async def connect(cls, project: Optional[str] = None, *, config: Optional[ClientConfig] = None) -> "StorageClient":
        """Create an authenticated client.

        Raises
        ------
        AuthError
            If credentials or the project cannot be determined.
        CloudConnectionError
            If the endpoint is unreachable.
        """
        channel, project = await storage_channel(project, config)
        return cls(project, channel)

    async def close(self) -> None:
        await self.channel.release()

    async def __aenter__(self) -> "StorageClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @staticmethod
    def _bucket_url(bucket: str) -> str:
        return f"/storage/v1/b/{quote_segment(bucket)}"

    def _object_url(self, bucket: str, name: str) -> str:
        return f"{self._bucket_url(bucket)}/o/{quote_segment(name)}"

    def _bucket(self, data: dict) -> Bucket:
        info = BucketInfo.from_resource(data)
        return Bucket(name=info.name, info=info, _client=self)

    def _object(self, data: dict) -> Object:
        info = ObjectInfo.from_resource(data)
        return Object(bucket=info.bucket, name=info.name, info=info, _client=self)

    # -- buckets -------------------------------------------------------------

    async def bucket(self, name: str) -> Bucket:
        """Get a handle to an existing bucket.

        Raises
        ------
        NotFound
            If the bucket does not exist.
        """
        return self._bucket(await self.channel.request("GET", self._bucket_url(name)))

    def buckets(self, *, page_size: int = DEFAULT_PAGE_SIZE) -> Pager[Bucket]:
        """List the buckets of the project."""

        async def fetch(cursor: Optional[str]) -> tuple[list[Bucket], Optional[str]]:
            response = await self.channel.request(
                "GET",
                "/storage/v1/b",
                params={"project": self.project, "maxResults": page_size, "pageToken": cursor},
            )
            return [self._bucket(b) for b in response.get("items", [])], response.get("nextPageToken") or None

        return Pager(fetch)

    async def create_bucket(self, name: str, *, location: Optional[str] = None) -> Bucket:
        """Create a new bucket in the project."""
        body = {"name": name}
        if location:
            body["location"] = location
        response = await self.channel.request("POST", "/storage/v1/b", params={"project": self.project}, json=body)
        logger.info("Created bucket %s", name)
        return self._bucket(response)

    async def delete_bucket(self, name: str) -> None:
        await self.channel.request("DELETE", self._bucket_url(name))
        logger.info("Deleted bucket %s", name)

    # -- objects -------------------------------------------------------------

    async def upload(
        self,
        bucket: str,
        name: str,
        data: bytes | str,
        *,
        content_type: str = "application/octet-stream",
    ) -> Object:
        """Upload ``data`` as ``bucket/name`` in a single request."""
        response = await self.channel.request(
            "POST",
            f"/upload/storage/v1/b/{quote_segment(bucket)}/o",
            params={"uploadType": "media", "name": name},
            content=to_bytes(data),
            headers={"Content-Type": content_type},
        )
        logger.debug("Uploaded gs://%s/%s", bucket, name)
        return self._object(response)

    async def object(self, bucket: str, name: str) -> Object:
        """Get a handle (with metadata) to an existing object.

        Raises
        ------
        NotFound
            If the object does not exist.
        """
        return self._object(await self.channel.request("GET", self._object_url(bucket, name)))

    def objects(
        self, bucket: str, *, prefix: Optional[str] = None, page_size: int = DEFAULT_PAGE_SIZE
    ) -> Pager[Object]:
        """List objects in a bucket, optionally restricted to a name prefix.

        An empty bucket yields nothing.
        """
        url = self._bucket_url(bucket) + "/o"

        async def fetch(cursor: Optional[str]) -> tuple[list[Object], Optional[str]]:
            response = await self.channel.request(
                "GET", url, params={"prefix": prefix, "maxResults": page_size, "pageToken": cursor}
            )
            # The provider omits "items" entirely for empty results.
            objects = [self._object(o) for o in response.get("items", [])]
            return objects, response.get("nextPageToken") or None

        return Pager(fetch)

    async def download(self, bucket: str, name: str) -> bytes:
        """Download the data of ``bucket/name``."""
        return await self.channel.request_bytes("GET", self._object_url(bucket, name), params={"alt": "media"})

    async def delete_object(self, bucket: str, name: str) -> None:
        await self.channel.request("DELETE", self._object_url(bucket, name))
        logger.debug("Deleted gs://%s/%s", bucket, name)


__all__ = ["StorageClient"]
