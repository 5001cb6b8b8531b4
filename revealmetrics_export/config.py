"""Configuration helpers for revealmetrics-export.

Settings can come from:
1. Constructor kwargs or ``from_dict`` (explicit)
2. Environment variables (deployment; override YAML when allowed)
3. YAML file (file-based)
4. Built-in defaults (lowest priority)
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import httpx
import yaml

from .exceptions import ConfigurationError
from .expression import resolve_expression

logger = logging.getLogger(__name__)

EXPORTER_YAML_PATH = Path(__file__).parent / "exporter.yaml"
PROVISIONING_JSON_PATH = Path(__file__).parent / "provisioning.json"

REVEALMETRICS_ENABLED_ENV = "REVEALMETRICS_ENABLED"
REVEALMETRICS_URL_ENV = "REVEALMETRICS_URL"
REVEALMETRICS_API_KEY_ENV = "REVEALMETRICS_API_KEY"
REVEALMETRICS_TIMEOUT_MS_ENV = "REVEALMETRICS_TIMEOUT_MS"
REVEALMETRICS_PROXY_HOST_ENV = "REVEALMETRICS_PROXY_HOST"
REVEALMETRICS_PROXY_PORT_ENV = "REVEALMETRICS_PROXY_PORT"
REVEALMETRICS_SOURCE_ENV = "REVEALMETRICS_SOURCE"
REVEALMETRICS_PROVISIONING_PATH_ENV = "REVEALMETRICS_PROVISIONING_PATH"
REVEALMETRICS_APP_PREFIXES_ENV = "REVEALMETRICS_APP_PREFIXES"

_ENV_KEYS = (
    ("enabled", REVEALMETRICS_ENABLED_ENV),
    ("url", REVEALMETRICS_URL_ENV),
    ("api_key", REVEALMETRICS_API_KEY_ENV),
    ("timeout_ms", REVEALMETRICS_TIMEOUT_MS_ENV),
    ("proxy_host", REVEALMETRICS_PROXY_HOST_ENV),
    ("proxy_port", REVEALMETRICS_PROXY_PORT_ENV),
    ("source", REVEALMETRICS_SOURCE_ENV),
    ("provisioning_path", REVEALMETRICS_PROVISIONING_PATH_ENV),
    ("application_prefixes", REVEALMETRICS_APP_PREFIXES_ENV),
)

DEFAULT_URL = "https://api.copperegg.com/v2/revealmetrics"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_SOURCE = "#hostname#"
DEFAULT_APPLICATION_PREFIXES = ("sales", "cocktail")

# The ingestion API authenticates with the API key as user and a fixed password.
BASIC_AUTH_PASSWORD = "U"


@dataclass(frozen=True, slots=True)
class ExporterConfig:
    """Settings consumed by the exporter."""

    enabled: bool = True
    url: str = DEFAULT_URL
    api_key: Optional[str] = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    proxy_host: Optional[str] = None
    proxy_port: Optional[int] = None
    source: str = DEFAULT_SOURCE
    provisioning_path: Path = PROVISIONING_JSON_PATH
    application_prefixes: tuple[str, ...] = DEFAULT_APPLICATION_PREFIXES

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExporterConfig":
        """Build an ExporterConfig from a plain dictionary.

        Unknown keys are ignored. Values that cannot be coerced are logged
        and replaced by their defaults.
        """

        kwargs: dict[str, Any] = {}

        if "enabled" in data:
            kwargs["enabled"] = _to_bool(data["enabled"])

        for key in ("url", "api_key", "proxy_host", "source"):
            if key in data and data[key] is not None:
                text = str(data[key]).strip()
                if text:
                    kwargs[key] = text

        if "timeout_ms" in data:
            timeout = _to_positive_int(data["timeout_ms"])
            if timeout is None:
                logger.warning("Invalid timeout_ms=%r; using default=%s", data["timeout_ms"], DEFAULT_TIMEOUT_MS)
            else:
                kwargs["timeout_ms"] = timeout

        if data.get("proxy_port") not in (None, ""):
            port = _to_positive_int(data["proxy_port"])
            if port is None or port > 65535:
                logger.warning("Invalid proxy_port=%r; ignoring", data["proxy_port"])
            else:
                kwargs["proxy_port"] = port

        if data.get("provisioning_path"):
            kwargs["provisioning_path"] = Path(str(data["provisioning_path"]))

        if "application_prefixes" in data:
            prefixes = _to_prefixes(data["application_prefixes"])
            if prefixes:
                kwargs["application_prefixes"] = prefixes

        return cls(**kwargs)

    @classmethod
    def from_env(cls) -> "ExporterConfig":
        """Build an ExporterConfig from environment variables."""

        return cls.from_dict(_env_values())

    @classmethod
    def from_yaml(
        cls,
        yaml_path: Optional[Path] = None,
        *,
        allow_env_override: bool = True,
    ) -> "ExporterConfig":
        """Build an ExporterConfig from a YAML settings file.

        Args:
            yaml_path: Path to the settings YAML. Defaults to the bundled
                ``exporter.yaml`` next to this module.
            allow_env_override: When True, environment variables take
                precedence over YAML values.
        """

        path = yaml_path or EXPORTER_YAML_PATH
        data: dict[str, Any] = {}
        if path.exists():
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
            if isinstance(raw, Mapping):
                data.update(raw)
            elif raw is not None:
                logger.warning("Exporter YAML at %s is not a mapping; using defaults", path)
        else:
            logger.warning("Exporter YAML not found at %s; using defaults", path)

        if allow_env_override:
            data.update(_env_values())

        return cls.from_dict(data)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def proxy_url(self) -> Optional[str]:
        """Return the forward proxy URL, or None when no proxy is set."""
        if not self.proxy_host:
            return None
        return f"http://{self.proxy_host}:{self.proxy_port}"

    @property
    def basic_auth(self) -> tuple[str, str]:
        return (self.api_key or "", BASIC_AUTH_PASSWORD)

    def resolved_source(self) -> str:
        """Expand host tokens in ``source`` (``#hostname#`` by default)."""
        return resolve_expression(self.source)

    def validate(self) -> None:
        """Check settings required to talk to the remote API.

        Raises:
            ConfigurationError: on a missing API key, an unusable URL or a
                proxy host without a port.
        """

        if not self.api_key:
            raise ConfigurationError(
                f"api_key is mandatory (set {REVEALMETRICS_API_KEY_ENV} or 'api_key')"
            )
        try:
            parsed = httpx.URL(self.url)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(f"Invalid url {self.url!r}: {exc}") from exc
        if parsed.scheme not in {"http", "https"} or not parsed.host:
            raise ConfigurationError(f"Invalid url {self.url!r}: expected http(s)://host/...")
        if self.proxy_host and self.proxy_port is None:
            raise ConfigurationError("proxy_port is mandatory when proxy_host is set")


def get_exporter_config() -> ExporterConfig:
    """Return an ExporterConfig built from the bundled YAML and environment."""

    return ExporterConfig.from_yaml()


def _normalize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _env_values() -> dict[str, str]:
    values: dict[str, str] = {}
    for key, env_name in _ENV_KEYS:
        raw = _normalize(os.getenv(env_name))
        if raw is not None:
            values[key] = raw
    return values


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    return text in {"1", "true", "yes", "on"}


def _to_positive_int(value: Any) -> Optional[int]:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(parsed) or parsed <= 0 or parsed != int(parsed):
        return None
    return int(parsed)


def _to_prefixes(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        logger.warning("Invalid application_prefixes=%r; using defaults", value)
        return ()
    return tuple(item.strip() for item in items if item.strip())


__all__ = [
    "DEFAULT_APPLICATION_PREFIXES",
    "DEFAULT_SOURCE",
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_URL",
    "EXPORTER_YAML_PATH",
    "ExporterConfig",
    "PROVISIONING_JSON_PATH",
    "get_exporter_config",
]
