"""YAML configuration loader for the gitops agent."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_FULL_RECONCILIATION_INTERVAL = 3600.0
DEFAULT_SUBSCRIPTIONS_NAMESPACE = "hoh-subscriptions"
SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")

# Environment variables understood by the deployment manifests, mapped to (section, key).
ENV_OVERRIDES = {
    "SUBSCRIPTION_GIT_STORAGE_DIR_PATH": ("storage", "root_path"),
    "SYNC_INTERVAL": ("storage", "sync_interval"),
    "DATABASE_URL": ("database", "url"),
    "AUTHORIZATION_URL": ("authorization", "url"),
    "AUTHORIZATION_CA_BUNDLE_PATH": ("authorization", "ca_bundle_path"),
    "CERTIFICATE_PATH": ("authorization", "certificate_path"),
    "KEY_PATH": ("authorization", "key_path"),
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """Parse seconds (number) or a Go-style duration such as ``1m30s``."""

    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            position = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != position:
                    break
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                position = match.end()
            if position == 0 or position != len(text):
                raise ValueError(f"invalid duration {value!r}") from None

    if seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds


@dataclass
class StorageConfig:
    root_path: Path
    sync_interval: float
    max_interval: Optional[float] = None
    full_reconciliation_interval: float = DEFAULT_FULL_RECONCILIATION_INTERVAL


@dataclass
class DatabaseConfig:
    url: str
    min_connections: int = 1
    max_connections: int = 10


@dataclass
class AuthorizationConfig:
    url: str
    ca_bundle_path: Optional[str] = None
    certificate_path: Optional[str] = None
    key_path: Optional[str] = None
    insecure_skip_verify: bool = False
    timeout: float = 10.0


@dataclass
class KubernetesConfig:
    api_url: str = "https://kubernetes.default.svc"
    token_path: Optional[Path] = SERVICE_ACCOUNT_DIR / "token"
    ca_bundle_path: Optional[str] = str(SERVICE_ACCOUNT_DIR / "ca.crt")
    subscriptions_namespace: str = DEFAULT_SUBSCRIPTIONS_NAMESPACE
    timeout: float = 10.0


@dataclass
class AgentConfig:
    storage: StorageConfig
    database: DatabaseConfig
    authorization: AuthorizationConfig
    kubernetes: KubernetesConfig


def _section(data: Mapping[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return dict(section)


def _required(section: Mapping[str, Any], name: str, key: str) -> Any:
    value = section.get(key)
    if value in (None, ""):
        raise ValueError(f"Configuration missing '{name}.{key}'")
    return value


def _optional_str(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)


def _flag(section: Mapping[str, Any], name: str, key: str) -> bool:
    value = section.get(key, False)
    if not isinstance(value, bool):
        raise ValueError(f"'{name}.{key}' must be true or false, got {value!r}")
    return value


def _parse_storage(section: Dict[str, Any]) -> StorageConfig:
    sync_interval = parse_duration(_required(section, "storage", "sync_interval"))
    max_interval = section.get("max_interval")
    storage = StorageConfig(
        root_path=Path(_required(section, "storage", "root_path")),
        sync_interval=sync_interval,
        max_interval=parse_duration(max_interval) if max_interval is not None else None,
        full_reconciliation_interval=parse_duration(
            section.get("full_reconciliation_interval", DEFAULT_FULL_RECONCILIATION_INTERVAL)
        ),
    )
    if storage.max_interval is not None and storage.max_interval < sync_interval:
        raise ValueError("'storage.max_interval' must not be smaller than 'sync_interval'")
    return storage


def _parse_database(section: Dict[str, Any]) -> DatabaseConfig:
    database = DatabaseConfig(
        url=str(_required(section, "database", "url")),
        min_connections=int(section.get("min_connections", 1)),
        max_connections=int(section.get("max_connections", 10)),
    )
    if not 0 < database.min_connections <= database.max_connections:
        raise ValueError("database connection limits must satisfy 0 < min <= max")
    return database


def _parse_authorization(section: Dict[str, Any]) -> AuthorizationConfig:
    authorization = AuthorizationConfig(
        url=str(_required(section, "authorization", "url")),
        ca_bundle_path=_optional_str(section.get("ca_bundle_path")),
        certificate_path=_optional_str(section.get("certificate_path")),
        key_path=_optional_str(section.get("key_path")),
        insecure_skip_verify=_flag(section, "authorization", "insecure_skip_verify"),
        timeout=parse_duration(section.get("timeout", 10.0)),
    )
    if bool(authorization.certificate_path) != bool(authorization.key_path):
        raise ValueError(
            "'authorization.certificate_path' and 'authorization.key_path' go together"
        )
    return authorization


def _parse_kubernetes(section: Dict[str, Any]) -> KubernetesConfig:
    defaults = KubernetesConfig()
    token_path = section.get("token_path", defaults.token_path)
    return KubernetesConfig(
        api_url=str(section.get("api_url", defaults.api_url)),
        token_path=Path(token_path) if token_path else None,
        ca_bundle_path=_optional_str(section.get("ca_bundle_path", defaults.ca_bundle_path)),
        subscriptions_namespace=str(
            section.get("subscriptions_namespace", defaults.subscriptions_namespace)
        ),
        timeout=parse_duration(section.get("timeout", defaults.timeout)),
    )


def _apply_env_overrides(
    data: Dict[str, Any], environ: Mapping[str, str]
) -> Dict[str, Any]:
    sections = {
        name: _section(data, name)
        for name in ("storage", "database", "authorization", "kubernetes")
    }
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value:
            sections[section][key] = value
    return sections


def load_config(
    path: Optional[Path], environ: Optional[Mapping[str, str]] = None
) -> AgentConfig:
    """Load the agent configuration.

    ``path`` may be None (or point at a missing file when environment
    variables carry the whole configuration); values from ``environ``
    override the file.
    """

    if environ is None:
        environ = os.environ

    data: Any = {}
    if path is not None and path.exists():
        data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    sections = _apply_env_overrides(data, environ)

    return AgentConfig(
        storage=_parse_storage(sections["storage"]),
        database=_parse_database(sections["database"]),
        authorization=_parse_authorization(sections["authorization"]),
        kubernetes=_parse_kubernetes(sections["kubernetes"]),
    )
