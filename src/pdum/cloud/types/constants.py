"""Endpoints, scopes and environment variable names for each service."""

from __future__ import annotations

_CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

PUBSUB_ENDPOINT = "https://pubsub.googleapis.com"
PUBSUB_SCOPES: tuple[str, ...] = (
    _CLOUD_PLATFORM_SCOPE,
    "https://www.googleapis.com/auth/pubsub",
)
PUBSUB_EMULATOR_ENV = "PUBSUB_EMULATOR_HOST"

DATASTORE_ENDPOINT = "https://datastore.googleapis.com"
DATASTORE_SCOPES: tuple[str, ...] = (
    _CLOUD_PLATFORM_SCOPE,
    "https://www.googleapis.com/auth/datastore",
)
DATASTORE_EMULATOR_ENV = "DATASTORE_EMULATOR_HOST"

STORAGE_ENDPOINT = "https://storage.googleapis.com"
STORAGE_SCOPES: tuple[str, ...] = (
    _CLOUD_PLATFORM_SCOPE,
    "https://www.googleapis.com/auth/devstorage.full_control",
)
STORAGE_EMULATOR_ENV = "STORAGE_EMULATOR_HOST"

INDEX_EXCLUDED_ENV = "INDEX_EXCLUDED"

DEFAULT_PAGE_SIZE = 25

__all__ = [
    "DATASTORE_EMULATOR_ENV",
    "DATASTORE_ENDPOINT",
    "DATASTORE_SCOPES",
    "DEFAULT_PAGE_SIZE",
    "INDEX_EXCLUDED_ENV",
    "PUBSUB_EMULATOR_ENV",
    "PUBSUB_ENDPOINT",
    "PUBSUB_SCOPES",
    "STORAGE_EMULATOR_ENV",
    "STORAGE_ENDPOINT",
    "STORAGE_SCOPES",
]
