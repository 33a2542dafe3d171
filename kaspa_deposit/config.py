"""Shared configuration loader for the deposit sender."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path.home() / ".kaspa-deposit.yaml"
DEFAULT_STORAGE_FOLDER = Path.home() / ".kaspa"
DEFAULT_WALLET_FILENAME = "kaspa.wallet"
DEFAULT_SERVICE_URL = "http://127.0.0.1:8082"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class WalletServiceConfig:
    """Connection details for the wallet service JSON-RPC endpoint."""

    url: str = DEFAULT_SERVICE_URL
    user: str | None = None
    password: str | None = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    wallet_dir: str | None = None

    @property
    def auth(self) -> tuple[str, str] | None:
        if self.user and self.password:
            return (self.user, self.password)
        return None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}", operation="load config")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(
            f"Invalid YAML in config file {path}: {exc}", operation="load config"
        ) from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"Expected {path} to contain a YAML object with a 'wallet_service' section",
            operation="load config",
        )
    return loaded


def _section(file_config: dict[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = file_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}", operation="load config")
    return section


def _coerce_timeout(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        timeout = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid timeout in {source}: {raw}", operation="load config") from exc
    if timeout <= 0:
        raise ConfigurationError(f"Timeout in {source} must be positive: {raw}", operation="load config")
    return timeout


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_service_url(raw: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid wallet service URL: {raw}", operation="load config")
    return raw.rstrip("/")


def load_service_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> WalletServiceConfig:
    """Load wallet service settings from overrides, environment and YAML."""

    env_map = os.environ if env is None else env
    path = Path(config_path).expanduser() if config_path is not None else DEFAULT_CONFIG_PATH
    file_config = _load_config_file(path, required=config_path is not None)
    service_section = _section(file_config, "wallet_service", path)
    wallet_section = _section(file_config, "wallet", path)
    override_map = {key: value for key, value in (overrides or {}).items() if value is not None}

    url = _first_value(
        override_map.get("url"),
        env_map.get("KASPA_WALLET_SERVICE_URL"),
        service_section.get("url"),
        DEFAULT_SERVICE_URL,
    )
    timeout = _first_value(
        _coerce_timeout(override_map.get("timeout"), source="overrides"),
        _coerce_timeout(env_map.get("KASPA_WALLET_SERVICE_TIMEOUT"), source="environment"),
        _coerce_timeout(service_section.get("timeout"), source=f"{path} wallet_service.timeout"),
        DEFAULT_TIMEOUT_SECONDS,
    )

    return WalletServiceConfig(
        url=_validate_service_url(str(url)),
        user=_first_value(
            override_map.get("user"),
            env_map.get("KASPA_WALLET_SERVICE_USER"),
            service_section.get("user"),
        ),
        password=_first_value(
            override_map.get("password"),
            env_map.get("KASPA_WALLET_SERVICE_PASSWORD"),
            service_section.get("password"),
        ),
        timeout=timeout,
        wallet_dir=_first_value(
            override_map.get("wallet_dir"),
            env_map.get("KASPA_WALLET_DIR"),
            wallet_section.get("dir"),
        ),
    )


def resolve_storage_folder(folder: str | Path | None) -> Path:
    """Return the wallet storage folder, defaulting to ``~/.kaspa``.

    The location is always passed explicitly to the store; nothing here
    mutates process-wide state.
    """

    if folder is None or str(folder) == "":
        return DEFAULT_STORAGE_FOLDER
    try:
        resolved = Path(folder).expanduser()
    except RuntimeError as exc:
        # expanduser raises when the home directory cannot be determined
        raise ConfigurationError(
            f"failed to set storage folder: {exc}", operation="set storage folder"
        ) from exc
    if resolved.exists() and not resolved.is_dir():
        raise ConfigurationError(
            f"failed to set storage folder: {resolved} is not a directory",
            operation="set storage folder",
        )
    return resolved
