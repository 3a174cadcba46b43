"""Configuration management for the proxy (config.yml) and per-app edgehost.yml files"""

import copy
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .subprocess_timeouts import PROBE_TIMEOUT
from .validation import validate_port

logger = logging.getLogger("edgehost.config")

# Built-in proxy defaults; user config and environment are merged over these
DEFAULT_PROXY_CONFIG: dict[str, Any] = {
    "proxy": {
        "enabled": True,
        "domain": "lndo.site",
        "dashboard_port": 58086,
        "http_port": 80,
        "https_port": 443,
        "http_fallbacks": [8000, 8080, 8888, 8008],
        "https_fallbacks": [444, 4433, 4444, 4443],
        "engine_host": "127.0.0.1",
        "image": "traefik:1.7",
        "probe_timeout": PROBE_TIMEOUT,
        "launch_attempts": 3,
    },
}

APP_CONFIG_FILES = ("edgehost.yml", "edgehost.yaml", ".edgehost.yml")


def get_edgehost_dir() -> Path:
    """Get the ~/.edgehost directory path (EDGEHOST_HOME overrides)"""
    env_path = os.environ.get("EDGEHOST_HOME", "").strip()
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path.home() / ".edgehost"


def get_config_file() -> Path:
    """Get the user config.yml path (EDGEHOST_CONFIG overrides)"""
    env_path = os.environ.get("EDGEHOST_CONFIG", "").strip()
    if env_path:
        return Path(env_path).expanduser().resolve()
    return get_edgehost_dir() / "config.yml"


def deep_merge(base: dict, overlay: Mapping) -> dict:
    """Deep merge overlay into a copy of base; lists and scalars are replaced"""
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _parse_switch(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


def _parse_port_list(value) -> list[int]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [part for part in value.replace(" ", "").split(",") if part]
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"Fallback ports must be a list (got {value!r})")
    return [validate_port(port) for port in value]


def _env_overrides(env: Mapping[str, str]) -> dict:
    """Collect EDGEHOST_* environment overrides"""
    mapping = {
        "EDGEHOST_PROXY": "enabled",
        "EDGEHOST_DOMAIN": "domain",
        "EDGEHOST_DASHBOARD_PORT": "dashboard_port",
        "EDGEHOST_HTTP_PORT": "http_port",
        "EDGEHOST_HTTPS_PORT": "https_port",
        "EDGEHOST_HTTP_FALLBACKS": "http_fallbacks",
        "EDGEHOST_HTTPS_FALLBACKS": "https_fallbacks",
        "EDGEHOST_ENGINE_HOST": "engine_host",
    }
    overrides = {}
    for name, key in mapping.items():
        value = env.get(name, "").strip()
        if value:
            overrides[key] = value
    return {"proxy": overrides} if overrides else {}


@dataclass(frozen=True)
class ProxyConfig:
    """Immutable proxy settings for a single reconciliation pass."""

    domain: str = "lndo.site"
    dashboard_port: int = 58086
    http_port: int = 80
    https_port: int = 443
    http_fallbacks: tuple[int, ...] = (8000, 8080, 8888, 8008)
    https_fallbacks: tuple[int, ...] = (444, 4433, 4444, 4443)
    enabled: bool = True
    engine_host: str = "127.0.0.1"
    image: str = "traefik:1.7"
    probe_timeout: float = PROBE_TIMEOUT
    launch_attempts: int = 3
    config_dir: Path = field(default_factory=get_edgehost_dir)

    @property
    def http_ports(self) -> list[int]:
        """Primary HTTP port followed by the fallbacks, in order"""
        return [self.http_port, *self.http_fallbacks]

    @property
    def https_ports(self) -> list[int]:
        """Primary HTTPS port followed by the fallbacks, in order"""
        return [self.https_port, *self.https_fallbacks]

    @property
    def proxy_dir(self) -> Path:
        return self.config_dir / "proxy"

    @property
    def definition_path(self) -> Path:
        return self.proxy_dir / "proxy.yml"

    @classmethod
    def from_mapping(cls, data: Mapping, config_dir: Path | None = None) -> "ProxyConfig":
        """Build a validated ProxyConfig from the merged "proxy" mapping"""
        domain = str(data.get("domain") or "").strip().lower()
        if not domain or "/" in domain or domain.startswith("http"):
            raise ConfigError(f"Domain must be a hostname only (got {data.get('domain')!r})")

        try:
            probe_timeout = float(data.get("probe_timeout", PROBE_TIMEOUT))
            launch_attempts = int(data.get("launch_attempts", 3))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid proxy setting: {e}") from e
        if probe_timeout <= 0:
            raise ConfigError("probe_timeout must be positive")
        if launch_attempts < 1:
            raise ConfigError("launch_attempts must be at least 1")

        return cls(
            domain=domain,
            dashboard_port=validate_port(data.get("dashboard_port")),
            http_port=validate_port(data.get("http_port")),
            https_port=validate_port(data.get("https_port")),
            http_fallbacks=tuple(_parse_port_list(data.get("http_fallbacks"))),
            https_fallbacks=tuple(_parse_port_list(data.get("https_fallbacks"))),
            enabled=_parse_switch(data.get("enabled", True)),
            engine_host=str(data.get("engine_host") or "127.0.0.1"),
            image=str(data.get("image") or "traefik:1.7"),
            probe_timeout=probe_timeout,
            launch_attempts=launch_attempts,
            config_dir=config_dir or get_edgehost_dir(),
        )

    def as_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "domain": self.domain,
            "dashboard_port": self.dashboard_port,
            "http_ports": self.http_ports,
            "https_ports": self.https_ports,
            "engine_host": self.engine_host,
            "image": self.image,
            "config_dir": str(self.config_dir),
        }


def read_config_file(path: Path) -> dict:
    """Load a YAML config file; a missing file is an empty config"""
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return data


def load_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> ProxyConfig:
    """
    Build the proxy config: built-in defaults, then the user config file,
    then EDGEHOST_* environment overrides.
    """
    env = os.environ if env is None else env
    config_file = path or get_config_file()

    file_config = read_config_file(config_file)
    section = file_config.get("proxy")
    if section is None:
        # An empty "proxy:" section overrides nothing
        file_config.pop("proxy", None)
    elif not isinstance(section, Mapping):
        raise ConfigError(f"{config_file}: 'proxy' must be a mapping of settings")

    merged = deep_merge(DEFAULT_PROXY_CONFIG, file_config)
    merged = deep_merge(merged, _env_overrides(env))

    config = ProxyConfig.from_mapping(merged.get("proxy", {}), config_dir=get_edgehost_dir())
    logger.debug("Proxy configured with %s", config.as_dict())
    return config


@dataclass
class AppSpec:
    """
    An app as seen by the proxy pipeline.

    Schema of edgehost.yml:
        name: str                      # App name (becomes the default subdomain)
        project: str                   # Compose project name (default: name)
        proxy:                         # service -> route declarations
          web:
            - myapp.lndo.site
            - api.myapp.lndo.site:8080
    """

    name: str
    proxy: dict[str, list] = field(default_factory=dict)
    project: str | None = None
    root: Path | None = None
    compose_files: list[Path] = field(default_factory=list)
    running: bool = False
    info: dict[str, dict] = field(default_factory=dict)

    @property
    def project_name(self) -> str:
        return self.project or self.name

    @classmethod
    def from_mapping(cls, data: Mapping, root: Path | None = None) -> "AppSpec":
        name = str(data.get("name") or (root.name if root else "")).strip().lower().replace(" ", "-")
        if not name:
            raise ConfigError("App name cannot be empty")
        proxy = data.get("proxy") or {}
        if not isinstance(proxy, Mapping):
            raise ConfigError(f"App {name}: 'proxy' must map service names to route lists")
        return cls(
            name=name,
            proxy={str(service): list(routes or []) for service, routes in proxy.items()},
            project=data.get("project"),
            root=root,
        )

    @classmethod
    def from_file(cls, path: Path) -> "AppSpec":
        path = Path(path).resolve()
        return cls.from_mapping(read_config_file(path), root=path.parent)


def find_app_file(start_path: Path | None = None) -> Path | None:
    """Search for edgehost.yml in the current and parent directories"""
    current = Path(start_path or os.getcwd()).resolve()

    # Search up to 10 levels (prevent infinite loop)
    for _ in range(10):
        for filename in APP_CONFIG_FILES:
            candidate = current / filename
            if candidate.exists():
                return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None
