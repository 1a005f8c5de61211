"""
Check Relay Configuration

Defaults live on the dataclasses below. Values are layered in this order,
later sources winning:

1. dataclass defaults
2. CHECKRELAY_* environment variables
3. YAML config file (.checkrelay.yaml in the working directory, or --config)
4. command-line flags
"""

import os
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .checks import get_severity_scale

ENV_PREFIX = "CHECKRELAY_"
DEFAULT_CONFIG_FILE = ".checkrelay.yaml"

# Registry agent endpoint listing every local check
REGISTRY_CHECKS_PATH = "/v1/agent/checks"


def _env(name: str, default: Any) -> Any:
    """Read CHECKRELAY_<NAME>, coerced to the type of the default."""
    raw = os.getenv(ENV_PREFIX + name.upper())
    if raw is None:
        return default
    return _coerce(raw, default)


def _apply_env(target: Any, suffix: str = "") -> None:
    """
    Replace fields still holding their declared default with CHECKRELAY_*
    values. Values passed to the constructor are left alone.
    """
    for f in fields(target):
        if f.default is MISSING:
            continue
        if getattr(target, f.name) != f.default:
            continue
        setattr(target, f.name, _env(f.name + suffix, f.default))


def _coerce(value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return str(value)


@dataclass
class ClientConfig:
    """Registry HTTP client settings. Durations are in seconds."""

    # Maximum time for a single registry query
    query_timeout: float = 5.0

    # Maximum number of idle keep-alive connections
    query_max_idle_connection_count: int = 100

    # How long an idle keep-alive connection stays open
    query_idle_connection_timeout: float = 90.0

    def __post_init__(self):
        _apply_env(self)


@dataclass
class CacheConfig:
    """Check set cache settings. A duration <= 0 disables caching."""

    registry_cache_duration: float = 1.0

    def __post_init__(self):
        _apply_env(self)


@dataclass
class StatusCodes:
    """
    HTTP status code returned for each outcome.

    Codes left at their default can be overridden with
    CHECKRELAY_<OUTCOME>_STATUS_CODE; codes passed explicitly are kept.
    """

    success: int = 200
    partial_success: int = 200
    warning: int = 429
    error: int = 500
    bad_request: int = 400
    no_checks: int = 404
    unprocessable: int = 422
    registry_unavailable: int = 503

    def __post_init__(self):
        _apply_env(self, suffix="_status_code")


@dataclass
class ServerConfig:
    """Top-level configuration for the relay."""

    listen_address: str = ":8080"
    registry_address: str = "localhost:8500"
    shutdown_timeout: float = 15.0
    default_threshold: str = "passing"
    severity_scale: str = "four-level"
    log_level: str = "INFO"
    log_json: bool = True

    client: ClientConfig = field(default_factory=ClientConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    status_codes: StatusCodes = field(default_factory=StatusCodes)

    def __post_init__(self):
        _apply_env(self)

    @property
    def registry_checks_url(self) -> str:
        """URL of the registry check listing; also the cache key."""
        address = self.registry_address.rstrip("/")
        if "://" not in address:
            address = f"http://{address}"
        return f"{address}{REGISTRY_CHECKS_PATH}"

    def listen_host_port(self) -> Tuple[str, int]:
        """Split listen_address ("host:port" or ":port") for uvicorn."""
        host, _, port = self.listen_address.rpartition(":")
        if not port:
            raise ValueError(f"Invalid listen address: {self.listen_address}")
        return host or "0.0.0.0", int(port)

    def validate(self) -> "ServerConfig":
        """
        Check the values that are only looked up at request time.

        Raises:
            ValueError: unknown severity scale, or a default threshold the
                scale does not contain
        """
        scale = get_severity_scale(self.severity_scale)
        if scale.parse(self.default_threshold) is None:
            raise ValueError(
                f"Unsupported default threshold: {self.default_threshold} "
                f"(expected one of {', '.join(str(s) for s in scale.severities)})"
            )
        return self

    def apply(self, values: Dict[str, Any]) -> "ServerConfig":
        """Overlay a nested mapping (as read from YAML) onto this config."""
        sections = {"client": self.client, "cache": self.cache, "status_codes": self.status_codes}
        for key, value in values.items():
            key = key.replace("-", "_")
            if key in sections:
                if not isinstance(value, dict):
                    raise ValueError(f"Config section '{key}' must be a mapping")
                _apply_flat(sections[key], value)
            else:
                _apply_flat(self, {key: value})
        return self


def _apply_flat(target: Any, values: Dict[str, Any]) -> None:
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        key = key.replace("-", "_")
        if key not in known:
            raise ValueError(f"Unknown config key: {key}")
        if value is None:
            continue
        setattr(target, key, _coerce(value, getattr(target, key)))


def load_config(path: Optional[str] = None) -> ServerConfig:
    """
    Build the relay configuration.

    Args:
        path: Explicit YAML file. When omitted, .checkrelay.yaml in the
            working directory is used if present.

    Returns:
        ServerConfig with defaults, environment and file values applied
    """
    config = ServerConfig()

    if path is not None:
        config_path = Path(path)
        if not config_path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
    else:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE
        if not config_path.is_file():
            return config

    data = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    return config.apply(data)
