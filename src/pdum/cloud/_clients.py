"""Internal helpers to construct authenticated service channels.

These helpers centralize endpoint, scope and credential resolution so every
service client is built the same way. They are intentionally private; the
public API surface is the client classes.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from pdum.cloud.auth import TokenManager, resolve_credentials
from pdum.cloud.channel import Channel
from pdum.cloud.config import ClientConfig
from pdum.cloud.types.constants import (
    DATASTORE_EMULATOR_ENV,
    DATASTORE_ENDPOINT,
    DATASTORE_SCOPES,
    PUBSUB_EMULATOR_ENV,
    PUBSUB_ENDPOINT,
    PUBSUB_SCOPES,
    STORAGE_EMULATOR_ENV,
    STORAGE_ENDPOINT,
    STORAGE_SCOPES,
)
from pdum.cloud.types.exceptions import AuthError

logger = logging.getLogger(__name__)


async def open_channel(
    service: str,
    project: Optional[str],
    config: Optional[ClientConfig],
    *,
    default_endpoint: str,
    emulator_env: str,
    scopes: Sequence[str],
) -> tuple[Channel, str]:
    """Resolve credentials and project, open a channel and check it is usable.

    Returns
    -------
    tuple[Channel, str]
        An unretained channel and the resolved project id.

    Raises
    ------
    AuthError
        If no credentials or no project can be determined, or the first token
        cannot be obtained.
    CloudConnectionError
        If the endpoint is unreachable within ``config.connect_timeout``.
    """
    config = config or ClientConfig()
    base_url, emulator = config.endpoint_for(service, default=default_endpoint, emulator_env=emulator_env)
    credentials, credentials_project = resolve_credentials(config, scopes, emulator=emulator)

    project = project or config.project or credentials_project
    if not project:
        raise AuthError(f"No project given for {service} and none could be determined from the credentials")

    tokens = TokenManager(credentials)
    channel = Channel(
        base_url,
        tokens,
        timeout=config.timeout,
        connect_timeout=config.connect_timeout,
        transport=config.transport,
    )
    try:
        await channel.probe()
        await tokens.token()
    except BaseException:
        await channel.aclose()
        raise

    logger.info("Connected to %s at %s for project %s", service, base_url, project)
    return channel, project


async def pubsub_channel(project: Optional[str], config: Optional[ClientConfig]) -> tuple[Channel, str]:
    """Pub/Sub v1 channel."""
    return await open_channel(
        "pubsub",
        project,
        config,
        default_endpoint=PUBSUB_ENDPOINT,
        emulator_env=PUBSUB_EMULATOR_ENV,
        scopes=PUBSUB_SCOPES,
    )


async def datastore_channel(project: Optional[str], config: Optional[ClientConfig]) -> tuple[Channel, str]:
    """Datastore v1 channel."""
    return await open_channel(
        "datastore",
        project,
        config,
        default_endpoint=DATASTORE_ENDPOINT,
        emulator_env=DATASTORE_EMULATOR_ENV,
        scopes=DATASTORE_SCOPES,
    )


async def storage_channel(project: Optional[str], config: Optional[ClientConfig]) -> tuple[Channel, str]:
    """Cloud Storage JSON v1 channel."""
    return await open_channel(
        "storage",
        project,
        config,
        default_endpoint=STORAGE_ENDPOINT,
        emulator_env=STORAGE_EMULATOR_ENV,
        scopes=STORAGE_SCOPES,
    )
