"""Credential resolution and bearer-token management.

Credentials are discovered the same way everywhere in pdum.cloud:

1. an explicit ``google.auth`` credentials object,
2. a key file (``ClientConfig.credentials_file``),
3. anonymous credentials when talking to a local emulator,
4. Application Default Credentials (``GOOGLE_APPLICATION_CREDENTIALS``,
   gcloud user credentials, the metadata server, ...).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Sequence

import google.auth
import google.auth.exceptions
import google.auth.transport.requests
from google.auth.credentials import AnonymousCredentials, Credentials

from pdum.cloud.types.exceptions import AuthError

if TYPE_CHECKING:
    from pdum.cloud.config import ClientConfig

logger = logging.getLogger(__name__)


def resolve_credentials(
    config: "ClientConfig",
    scopes: Sequence[str],
    *,
    emulator: bool = False,
) -> tuple[Credentials, Optional[str]]:
    """Resolve credentials (explicit > key file > emulator > ADC).

    Returns
    -------
    tuple[Credentials, str | None]
        The credentials and the project id they report, if any.

    Raises
    ------
    AuthError
        If no credentials can be found or the key file is unusable.
    """
    scopes = list(config.scopes or scopes)

    if config.credentials is not None:
        return config.credentials, getattr(config.credentials, "project_id", None)

    if config.credentials_file:
        try:
            return google.auth.load_credentials_from_file(config.credentials_file, scopes=scopes)
        except google.auth.exceptions.DefaultCredentialsError as e:
            raise AuthError(f"Could not load credentials from {config.credentials_file}: {e}") from e

    if emulator:
        return AnonymousCredentials(), None

    try:
        return google.auth.default(scopes=scopes)
    except google.auth.exceptions.DefaultCredentialsError as e:
        raise AuthError(f"Could not find default credentials: {e}") from e


class TokenManager:
    """Hands out bearer tokens for one set of credentials.

    Tokens are cached by the credentials object itself and refreshed once they
    expire. Refreshes are serialized so concurrent calls share a single token
    request; the blocking ``google-auth`` refresh runs in a worker thread.
    """

    def __init__(self, credentials: Credentials) -> None:
        self._credentials = credentials
        self._lock = asyncio.Lock()
        self._request: Optional[google.auth.transport.requests.Request] = None

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    async def token(self) -> Optional[str]:
        """Return a valid access token, refreshing if needed.

        Anonymous credentials yield ``None`` (no ``Authorization`` header).
        """
        async with self._lock:
            if not self._credentials.valid:
                await self._refresh()
            return self._credentials.token

    async def refresh(self, *, stale: Optional[str] = None) -> None:
        """Force a refresh.

        When ``stale`` is given, the refresh is skipped if another caller has
        already replaced that token.
        """
        async with self._lock:
            if stale is not None and self._credentials.token != stale and self._credentials.valid:
                return
            await self._refresh()

    async def _refresh(self) -> None:
        if self._request is None:
            self._request = google.auth.transport.requests.Request()
        try:
            await asyncio.to_thread(self._credentials.refresh, self._request)
        except google.auth.exceptions.GoogleAuthError as e:
            raise AuthError(f"Could not refresh credentials: {e}") from e
        logger.debug("Refreshed token for %s", type(self._credentials).__name__)


__all__ = ["TokenManager", "resolve_credentials"]
