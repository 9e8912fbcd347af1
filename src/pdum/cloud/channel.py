"""Authenticated HTTP channel shared by service clients."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

import httpx

from pdum.cloud.auth import TokenManager
from pdum.cloud.types.exceptions import (
    AuthError,
    CloudConnectionError,
    DecodeError,
    NotFound,
    ServiceError,
)

logger = logging.getLogger(__name__)


class Channel:
    """One connection pool to a service endpoint plus the tokens to use on it.

    Channels are reference counted: every client holding one calls
    :meth:`retain` on construction and :meth:`release` on close, and the pool
    is shut down when the last holder releases it. ``httpx.AsyncClient`` is
    safe for concurrent in-flight requests, so several clients (and several
    tasks) may share a channel.
    """

    def __init__(
        self,
        base_url: str,
        tokens: TokenManager,
        *,
        timeout: float = 30.0,
        connect_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._tokens = tokens
        self._connect_timeout = connect_timeout
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            transport=transport,
        )
        self._refs = 0

    def __repr__(self) -> str:
        return f"Channel({self._base_url!r}, refs={self._refs})"

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def tokens(self) -> TokenManager:
        return self._tokens

    @property
    def closed(self) -> bool:
        return self._http.is_closed

    def retain(self) -> "Channel":
        self._refs += 1
        return self

    async def release(self) -> None:
        self._refs -= 1
        if self._refs <= 0:
            await self.aclose()

    async def aclose(self) -> None:
        if not self._http.is_closed:
            await self._http.aclose()
            logger.debug("Closed channel to %s", self._base_url)

    async def probe(self) -> None:
        """Check that the endpoint is reachable.

        Any HTTP response counts as reachable; only transport failures are
        errors. Bounded by the connect timeout.

        Raises
        ------
        CloudConnectionError
            If the endpoint cannot be reached in time.
        """
        try:
            await asyncio.wait_for(self._http.get("/"), timeout=self._connect_timeout)
        except asyncio.TimeoutError as e:
            raise CloudConnectionError(
                f"Timed out after {self._connect_timeout}s connecting to {self._base_url}"
            ) from e
        except httpx.TransportError as e:
            raise CloudConnectionError(f"Could not connect to {self._base_url}: {e}") from e

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        content: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> dict:
        """Send an authenticated request and decode its JSON body.

        An empty body decodes to ``{}``.

        Raises
        ------
        ServiceError
            If the provider returns a failure status.
        AuthError
            If credentials cannot be refreshed or are rejected twice.
        CloudConnectionError
            On transport failures (including timeouts).
        DecodeError
            If the body is not a JSON object.
        """
        response = await self._send(method, path, params=params, json=json, content=content, headers=headers)
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise DecodeError(f"{method} {path}: response is not valid JSON") from e
        if not isinstance(body, dict):
            raise DecodeError(f"{method} {path}: expected a JSON object, got {type(body).__name__}")
        return body

    async def request_bytes(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
    ) -> bytes:
        """Send an authenticated request and return the raw body."""
        response = await self._send(method, path, params=params)
        return response.content

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        content: Optional[bytes] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        token = await self._tokens.token()
        response = await self._attempt(method, path, token, params=params, json=json, content=content, headers=headers)

        if response.status_code == 401 and token is not None:
            logger.warning("%s %s: token rejected, refreshing and retrying once", method, path)
            await self._tokens.refresh(stale=token)
            token = await self._tokens.token()
            response = await self._attempt(
                method, path, token, params=params, json=json, content=content, headers=headers
            )
            if response.status_code == 401:
                raise AuthError(f"{method} {path}: credentials rejected: {_error_message(response)}")

        if response.is_error:
            raise service_error(response)
        return response

    async def _attempt(
        self,
        method: str,
        path: str,
        token: Optional[str],
        *,
        params: Optional[Mapping[str, Any]],
        json: Any,
        content: Optional[bytes],
        headers: Optional[Mapping[str, str]],
    ) -> httpx.Response:
        request_headers = dict(headers or {})
        if token is not None:
            request_headers["Authorization"] = f"Bearer {token}"
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        logger.debug("%s %s%s", method, self._base_url, path)
        try:
            return await self._http.request(
                method, path, params=params, json=json, content=content, headers=request_headers
            )
        except httpx.TransportError as e:
            raise CloudConnectionError(f"{method} {self._base_url}{path}: {e}") from e


def _error_payload(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return {}


def _error_message(response: httpx.Response) -> str:
    return _error_payload(response).get("message") or response.text or response.reason_phrase


def service_error(response: httpx.Response) -> ServiceError:
    """Build the ServiceError matching a failed response."""
    status = _error_payload(response).get("status")
    cls = NotFound if response.status_code == 404 else ServiceError
    return cls(response.status_code, _error_message(response), status=status)


__all__ = ["Channel", "service_error"]
