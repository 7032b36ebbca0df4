"""Frozen dataclasses for configuration and YAML loader with env-var interpolation."""

from __future__ import annotations

import os
import re
import types
import typing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _interpolate_env(value: str) -> str:
    """Replace ${ENV_VAR} placeholders with environment variable values."""

    def _replace(match: re.Match) -> str:
        env_key = match.group(1)
        env_val = os.environ.get(env_key)
        if env_val is None:
            raise ConfigError(f"Environment variable '{env_key}' is not set")
        return env_val

    return _ENV_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: Any) -> Any:
    """Recursively interpolate env vars in strings throughout a nested structure."""
    if isinstance(obj, str):
        return _interpolate_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(v) for v in obj]
    return obj


def as_list(value: Any) -> list[str]:
    """Normalize a scalar, comma-separated string or list setting into a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [str(value)]


@dataclass(frozen=True)
class EcsClientConfig:
    region: str = ""
    access_key: str = field(default="", repr=False)  # empty key + secret = default credential chain
    secret_key: str = field(default="", repr=False)
    session_token: str = field(default="", repr=False)
    endpoint: str = ""  # empty = SDK default endpoint for the region
    connect_timeout: float = 2.0
    read_timeout: float = 5.0


@dataclass(frozen=True)
class DiscoveryConfig:
    host_type: str = "private_ip"  # "private_ip", "public_ip" or "tag:<name>"
    any_group: bool = True
    groups: list[str] = field(default_factory=list)
    zone_ids: list[str] = field(default_factory=list)
    node_cache_time: float = 10.0  # seconds
    tags: dict[str, list[str]] = field(default_factory=dict)
    transport_port: int = 9300


@dataclass(frozen=True)
class NodeConfig:
    auto_attributes: bool = False


@dataclass(frozen=True)
class MetadataConfig:
    base_url: str = "http://100.100.100.200"
    retries: int = 3
    connect_timeout: float = 2.0
    read_timeout: float = 5.0


@dataclass(frozen=True)
class PollingConfig:
    interval_seconds: int = 30
    jitter_seconds: int = 5
    max_backoff_seconds: int = 300
    backoff_base_seconds: int = 5


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "json"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    ecs: EcsClientConfig = field(default_factory=EcsClientConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    node: NodeConfig = field(default_factory=NodeConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _get_dataclass_type(ft: Any) -> type | None:
    """Return the underlying dataclass type from a type annotation (handles Optional/X|None)."""
    if isinstance(ft, type) and hasattr(ft, "__dataclass_fields__"):
        return ft
    if isinstance(ft, types.UnionType):
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    origin = getattr(ft, "__origin__", None)
    if origin is typing.Union:
        args = [a for a in ft.__args__ if a is not type(None)]
        if len(args) == 1 and isinstance(args[0], type) and hasattr(args[0], "__dataclass_fields__"):
            return args[0]
    return None


def _build_nested(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields."""
    if not isinstance(data, dict):
        return data
    field_types = {f.name: f.type for f in cls.__dataclass_fields__.values()}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in field_types:
            continue
        ft = field_types[key]
        # Resolve string annotations to actual types in the module scope
        if isinstance(ft, str):
            ft = eval(ft, globals(), {cls.__name__: cls})  # noqa: S307
        dc_type = _get_dataclass_type(ft)
        if dc_type is not None and isinstance(value, dict):
            kwargs[key] = _build_nested(dc_type, value)
        else:
            kwargs[key] = value
    return cls(**kwargs)


def _normalize(raw: dict[str, Any]) -> dict[str, Any]:
    """Coerce list-like discovery settings; YAML allows scalars and comma lists for them."""
    discovery = raw.get("discovery")
    if not isinstance(discovery, dict):
        return raw

    discovery = dict(discovery)
    for key in ("groups", "zone_ids"):
        if key in discovery:
            discovery[key] = as_list(discovery[key])

    tags = discovery.get("tags")
    if tags is not None:
        if not isinstance(tags, dict):
            raise ConfigError("discovery.tags must be a mapping of tag key to value(s)")
        discovery["tags"] = {str(k): as_list(v) for k, v in tags.items()}

    return {**raw, "discovery": discovery}


def load_config(path: str | Path) -> AppConfig:
    """Load and validate configuration from a YAML file."""
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must be a YAML mapping")

    raw = _normalize(_walk_and_interpolate(raw))
    config = _build_nested(AppConfig, raw)
    validate(config)
    return config


def validate(config: AppConfig) -> None:
    """Validate configuration values."""
    # Deferred: both modules import from this one
    from .discovery.credentials import resolve_credentials
    from .discovery.filters import HostType

    if not config.ecs.region:
        raise ConfigError("ecs.region is required, e.g. 'cn-hangzhou'")

    if config.ecs.connect_timeout <= 0 or config.ecs.read_timeout <= 0:
        raise ConfigError("ecs.connect_timeout and ecs.read_timeout must be > 0")

    resolve_credentials(config.ecs.access_key, config.ecs.secret_key, config.ecs.session_token)

    HostType.parse(config.discovery.host_type)

    if config.discovery.node_cache_time < 0:
        raise ConfigError("discovery.node_cache_time must be >= 0")

    if not 0 < config.discovery.transport_port < 65536:
        raise ConfigError("discovery.transport_port must be between 1 and 65535")

    for key, values in config.discovery.tags.items():
        if not values:
            raise ConfigError(f"discovery.tags.{key} must have at least one value")

    if config.metadata.retries < 0:
        raise ConfigError("metadata.retries must be >= 0")

    if config.polling.interval_seconds < 1:
        raise ConfigError("polling.interval_seconds must be >= 1")

    if config.logging.format not in ("json", "text"):
        raise ConfigError("logging.format must be 'json' or 'text'")
