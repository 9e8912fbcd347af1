"""Error taxonomy shared by all pdum.cloud clients."""

from __future__ import annotations

import builtins
from typing import Optional


class CloudError(Exception):
    """Base class for every error raised by pdum.cloud."""


class CloudConnectionError(CloudError, builtins.ConnectionError):
    """Raised when the transport is unreachable, misconfigured, or times out."""


class AuthError(CloudError):
    """Raised when credentials cannot be obtained or refreshed."""


class DecodeError(CloudError):
    """Raised when a response (or a stored value) cannot be decoded."""


class ServiceError(CloudError):
    """A failure status returned by the provider.

    Attributes
    ----------
    code : int
        HTTP status code of the response.
    status : str
        Canonical status string (``"NOT_FOUND"``, ``"PERMISSION_DENIED"``, ...),
        empty when the provider did not send one.
    message : str
        Provider message, surfaced verbatim.
    """

    def __init__(self, code: int, message: str, *, status: Optional[str] = None) -> None:
        super().__init__(f"{code} {status}: {message}" if status else f"{code}: {message}")
        self.code = code
        self.status = status or ""
        self.message = message


class NotFound(ServiceError):
    """A 404 response."""


__all__ = [
    "AuthError",
    "CloudConnectionError",
    "CloudError",
    "DecodeError",
    "NotFound",
    "ServiceError",
]
