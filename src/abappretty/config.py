"""Connection configuration loading and credential lookup."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import keyring

from abappretty.constants import (
    CONNECTIONS_ENV,
    DEFAULT_CONNECTIONS_PATH,
    KEYRING_SERVICE,
    PASSWORD_ENV,
)
from abappretty.exceptions import UsageError


@dataclass
class ConnectionConfig:
    """One named SAP system connection.

    Attributes:
        name: Connection name used on the command line.
        url: Base URL of the ABAP server, e.g. ``https://host:44300``.
        user: Logon user.
        client: SAP client (``sap-client`` query parameter).
        language: Logon language (``sap-language`` query parameter).
        verify_ssl: Verify the server certificate.
        timeout: Per request timeout in seconds.
    """

    name: str
    url: str
    user: str
    client: str = ""
    language: str = ""
    verify_ssl: bool = True
    timeout: float = 60.0

    def __post_init__(self) -> None:
        self.url = self.url.rstrip("/")


def connections_path(env: Mapping[str, str] | None = None) -> Path:
    """Return the connections file location, honouring the env override."""
    env = os.environ if env is None else env
    return Path(env.get(CONNECTIONS_ENV) or DEFAULT_CONNECTIONS_PATH).expanduser()


def load_connections(config_path: Path) -> dict[str, ConnectionConfig]:
    """Load all connections from a JSON file.

    The file maps connection names to objects with at least ``url`` and
    ``user``::

        {"MYCONN": {"url": "https://dev.example.com:44300", "user": "DEVELOPER",
                    "client": "001", "language": "EN"}}

    Args:
        config_path: Path to connections.json

    Returns:
        Connection configs keyed by name.

    Raises:
        UsageError: If the file is missing, unreadable or lacks a required field.
    """
    if not config_path.exists():
        raise UsageError(f"Connections file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise UsageError(f"Invalid JSON in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise UsageError(f"{config_path} must contain an object of connections")

    field_names = {f for f in ConnectionConfig.__dataclass_fields__} - {"name"}
    connections: dict[str, ConnectionConfig] = {}
    for name, raw in data.items():
        if not isinstance(raw, dict):
            raise UsageError(f"Connection {name} in {config_path} must be an object")
        missing = [key for key in ("url", "user") if not raw.get(key)]
        if missing:
            raise UsageError(
                f"Connection {name} in {config_path} is missing {', '.join(missing)}"
            )
        kwargs = {k: v for k, v in raw.items() if k in field_names}
        connections[name] = ConnectionConfig(name=name, **kwargs)
    return connections


def get_connection(name: str, config_path: Path | None = None) -> ConnectionConfig:
    """Look up a single connection by name."""
    path = config_path or connections_path()
    connections = load_connections(path)
    try:
        return connections[name]
    except KeyError:
        known = ", ".join(sorted(connections)) or "none"
        raise UsageError(
            f"Unknown connection {name} (configured in {path}: {known})"
        ) from None


def get_password(connection: str, env: Mapping[str, str] | None = None) -> str:
    """Get the logon password: system keyring first, then env var fallback.

    Raises:
        UsageError: If no password is found anywhere.
    """
    password = keyring.get_password(KEYRING_SERVICE, connection)
    if password:
        return password

    env = os.environ if env is None else env
    password = env.get(PASSWORD_ENV)
    if password:
        return password

    raise UsageError(
        f"Password for connection {connection} not found.\n"
        f"Set it with: abappretty config set-password {connection}\n"
        f"Or: export {PASSWORD_ENV}=..."
    )
