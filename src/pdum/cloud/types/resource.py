"""Shared resource handle base class and service client protocol."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pdum.cloud.channel import Channel


@runtime_checkable
class ServiceClient(Protocol):
    """Capabilities every service client provides."""

    project: str
    channel: "Channel"

    async def close(self) -> None: ...


class Resource(ABC):
    """Abstract base for named resources scoped to a service client."""

    @abstractmethod
    def full_resource_name(self) -> str:
        """Return the fully qualified resource name (``projects/{p}/topics/{t}``, ``b/{bucket}``, ...)."""


__all__ = ["Resource", "ServiceClient"]
