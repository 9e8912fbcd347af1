"""Client configuration.

A :class:`ClientConfig` carries everything a service client needs besides the
project: endpoint override, credential source and timeouts. It can be built in
code or loaded from a YAML file::

    project: my-project
    credentials_file: ~/.config/pdum_cloud/work/admin.json
    timeout: 20
    endpoints:
      pubsub: http://localhost:8085
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import yaml

if TYPE_CHECKING:
    import httpx
    from google.auth.credentials import Credentials

_FILE_KEYS = {
    "project",
    "endpoint",
    "endpoints",
    "credentials_file",
    "scopes",
    "timeout",
    "connect_timeout",
    "index_excluded",
}


@dataclass
class ClientConfig:
    """Connection settings shared by the Pub/Sub, Datastore and Storage clients.

    Attributes
    ----------
    project : str, optional
        Project id. When omitted, the project reported by the credentials is used.
    endpoint : str, optional
        Base URL overriding the service default (and any emulator variable).
    endpoints : dict[str, str]
        Per-service overrides keyed by ``"pubsub"``, ``"datastore"`` or ``"storage"``.
        Take precedence over ``endpoint``.
    credentials : Credentials, optional
        Explicit ``google.auth`` credentials.
    credentials_file : str, optional
        Path to a service account (or authorized user) JSON key.
    scopes : tuple[str, ...], optional
        OAuth scopes replacing the service defaults.
    timeout : float, default 30.0
        Per-call deadline in seconds.
    connect_timeout : float, default 10.0
        Bound on establishing the transport at client construction.
    index_excluded : str, optional
        Path of the Datastore index-exclusion YAML file.
    transport : httpx.AsyncBaseTransport, optional
        Custom HTTP transport (used to run against in-process fakes).
    """

    project: Optional[str] = None
    endpoint: Optional[str] = None
    endpoints: dict[str, str] = field(default_factory=dict)
    credentials: Optional["Credentials"] = field(default=None, repr=False, compare=False)
    credentials_file: Optional[str] = None
    scopes: Optional[tuple[str, ...]] = None
    timeout: float = 30.0
    connect_timeout: float = 10.0
    index_excluded: Optional[str] = None
    transport: Optional["httpx.AsyncBaseTransport"] = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")

    @classmethod
    def from_file(cls, path: str | Path) -> "ClientConfig":
        """Load a configuration from a YAML file.

        Raises
        ------
        FileNotFoundError
            If ``path`` does not exist.
        ValueError
            If the file is not a mapping or contains unknown keys.
        """
        path = Path(path).expanduser()
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        unknown = set(data) - _FILE_KEYS
        if unknown:
            raise ValueError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")

        if data.get("credentials_file"):
            data["credentials_file"] = str(Path(data["credentials_file"]).expanduser())
        if data.get("scopes") is not None:
            data["scopes"] = tuple(data["scopes"])
        return cls(**data)

    def replace(self, **changes) -> "ClientConfig":
        """Return a copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    def endpoint_for(self, service: str, *, default: str, emulator_env: str) -> tuple[str, bool]:
        """Resolve the base URL for ``service``.

        Returns
        -------
        tuple[str, bool]
            The base URL and whether it points at a local emulator.
        """
        if service in self.endpoints:
            return self.endpoints[service].rstrip("/"), False
        if self.endpoint:
            return self.endpoint.rstrip("/"), False
        emulator = os.getenv(emulator_env)
        if emulator:
            if "://" not in emulator:
                emulator = f"http://{emulator}"
            return emulator.rstrip("/"), True
        return default, False


def get_config_dir(config_name: str) -> Path:
    """Get the directory holding the named configuration (``~/.config/pdum_cloud/<name>``)."""
    return Path.home() / ".config" / "pdum_cloud" / config_name


def load_named_config(config_name: str) -> ClientConfig:
    """Load ``config.yaml`` from the named configuration directory."""
    return ClientConfig.from_file(get_config_dir(config_name) / "config.yaml")


__all__ = ["ClientConfig", "get_config_dir", "load_named_config"]
