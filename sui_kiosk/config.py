"""Shared configuration loader for the kiosk CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""

    exit_code = 2


DEFAULT_CONFIG_PATH = Path.home() / ".sui-kiosk.yaml"
_CONFIG_PATH_OVERRIDE: Path | None = None

DEFAULT_NETWORK = "testnet"
DEFAULT_GAS_BUDGET = 100_000_000
DEFAULT_TIMEOUT = 30.0

NETWORK_ENDPOINTS = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
    "localnet": "http://127.0.0.1:9000",
}

# Packages publishing the standard royalty and kiosk-lock rules.
NETWORK_RULE_PACKAGES = {
    "mainnet": ("0x434b5bd8f6a7b05fede0ff46c6e511d71ea326ed38056e3bcd681d2d7c2a7879",),
    "testnet": ("0xbd8fc1947cf119350184107a3087e2dc27efefa0dd82e25a1f699069fe81a585",),
    "devnet": (),
    "localnet": (),
}

_SUIFREN_PACKAGE = "0x80d7de9c4a56194087e0ba0bf59492aa8e6a5ee881606226930827085ddf2332"

NETWORK_KNOWN_TYPES = {
    "testnet": {
        "suifren": f"{_SUIFREN_PACKAGE}::suifrens::SuiFren<{_SUIFREN_PACKAGE}::capy::Capy>",
    },
}


@dataclass
class KioskConfig:
    """Connection and deployment settings for a single CLI invocation."""

    network: str = DEFAULT_NETWORK
    rpc_url: str = NETWORK_ENDPOINTS[DEFAULT_NETWORK]
    timeout: float = DEFAULT_TIMEOUT
    gas_budget: int = DEFAULT_GAS_BUDGET
    sui_binary: str = "sui"
    rule_packages: tuple[str, ...] = NETWORK_RULE_PACKAGES[DEFAULT_NETWORK]
    known_types: dict[str, str] = field(
        default_factory=lambda: dict(NETWORK_KNOWN_TYPES[DEFAULT_NETWORK])
    )

    def resolve_type(self, type_or_alias: str) -> str:
        """Expand a ``known_types`` alias, returning other values unchanged."""

        return self.known_types.get(type_or_alias, type_or_alias)

    def alias_for(self, full_type: str) -> str | None:
        for alias, value in self.known_types.items():
            if value == full_type:
                return alias
        return None


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _coerce_int(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer in {source}: {raw}") from exc


def _coerce_float(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid number in {source}: {raw}") from exc


def _coerce_packages(raw: Any, *, source: str) -> tuple[str, ...] | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        return tuple(piece.strip() for piece in raw.split(",") if piece.strip())
    if isinstance(raw, (list, tuple)):
        return tuple(str(piece) for piece in raw)
    raise ConfigurationError(f"Expected a list of package ids in {source}")


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _validate_url(raw: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    return raw


def load_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> KioskConfig:
    """Load CLI configuration from overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    file_config = _load_config_file(path, required=explicit_path)
    rpc_section = file_config.get("rpc", {}) or {}
    if not isinstance(rpc_section, dict):
        raise ConfigurationError(f"Expected 'rpc' to be a mapping in {path}")
    known_section = file_config.get("known_types", {}) or {}
    if not isinstance(known_section, dict):
        raise ConfigurationError(f"Expected 'known_types' to be a mapping in {path}")

    override_map = {k: v for k, v in dict(overrides or {}).items() if v is not None}

    network = str(
        _first_value(
            override_map.get("network"),
            env_map.get("SUI_KIOSK_NETWORK"),
            file_config.get("network"),
            DEFAULT_NETWORK,
        )
    ).lower()
    if network not in NETWORK_ENDPOINTS:
        raise ConfigurationError(
            f"Unknown network {network!r}; expected one of {', '.join(sorted(NETWORK_ENDPOINTS))}"
        )

    rpc_url = _validate_url(
        _first_value(
            override_map.get("rpc_url"),
            env_map.get("SUI_KIOSK_RPC_URL"),
            rpc_section.get("url"),
            NETWORK_ENDPOINTS[network],
        )
    )
    timeout = _first_value(
        _coerce_float(override_map.get("timeout"), source="overrides"),
        _coerce_float(env_map.get("SUI_KIOSK_RPC_TIMEOUT"), source="environment"),
        _coerce_float(rpc_section.get("timeout"), source=f"{path} rpc.timeout"),
        DEFAULT_TIMEOUT,
    )
    gas_budget = _first_value(
        _coerce_int(override_map.get("gas_budget"), source="overrides"),
        _coerce_int(env_map.get("SUI_KIOSK_GAS_BUDGET"), source="environment"),
        _coerce_int(file_config.get("gas_budget"), source=f"{path} gas_budget"),
        DEFAULT_GAS_BUDGET,
    )
    if gas_budget <= 0:
        raise ConfigurationError(f"Gas budget must be positive, got {gas_budget}")
    sui_binary = _first_value(
        override_map.get("sui_binary"),
        env_map.get("SUI_KIOSK_SUI_BINARY"),
        file_config.get("sui_binary"),
        "sui",
    )
    rule_packages = _first_value(
        _coerce_packages(override_map.get("rule_packages"), source="overrides"),
        _coerce_packages(env_map.get("SUI_KIOSK_RULE_PACKAGES"), source="environment"),
        _coerce_packages(file_config.get("rule_packages"), source=f"{path} rule_packages"),
        NETWORK_RULE_PACKAGES[network],
    )

    known_types = dict(NETWORK_KNOWN_TYPES.get(network, {}))
    known_types.update({str(k): str(v) for k, v in known_section.items()})

    return KioskConfig(
        network=network,
        rpc_url=rpc_url,
        timeout=timeout,
        gas_budget=gas_budget,
        sui_binary=str(sui_binary),
        rule_packages=tuple(rule_packages),
        known_types=known_types,
    )
