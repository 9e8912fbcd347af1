"""Public exports for pdum.cloud types."""

from __future__ import annotations

from .exceptions import (
    AuthError,
    CloudConnectionError,
    CloudError,
    DecodeError,
    NotFound,
    ServiceError,
)
from .resource import Resource, ServiceClient

__all__ = [
    "AuthError",
    "CloudConnectionError",
    "CloudError",
    "DecodeError",
    "NotFound",
    "Resource",
    "ServiceClient",
    "ServiceError",
]
