"""
Proxy definition for the shared edge proxy.

The definition is the compose document the container engine runs the
proxy from. It is a pure function of the proxy config and the host ports
the proxy binds, so two definitions can be compared to detect drift.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import ProxyConfig

# Fixed compose project for the one shared proxy instance
PROXY_PROJECT = "edgehostproxy"

# Container-side ports of the proxy
CONTAINER_HTTP = 80
CONTAINER_HTTPS = 443
CONTAINER_DASHBOARD = 8080


def proxy_container_name(project: str) -> str:
    """Name of the proxy container; pinned in the definition so compose uses it verbatim"""
    return f"{project}_proxy_1"


@dataclass(frozen=True)
class PortBinding:
    """Host ports the proxy is (or will be) bound to."""

    http: int
    https: int


@dataclass(frozen=True)
class ProxyRef:
    """Identity of the proxy: its compose project and definition file."""

    project: str
    compose_file: Path

    @property
    def container_id(self) -> str:
        return proxy_container_name(self.project)

    @property
    def network(self) -> str:
        return f"{self.project}_edge"

    @classmethod
    def for_config(cls, config: ProxyConfig, project: str = PROXY_PROJECT) -> "ProxyRef":
        return cls(project=project, compose_file=config.definition_path)


def build_definition(config: ProxyConfig, binding: PortBinding, project: str = PROXY_PROJECT) -> dict[str, Any]:
    """Build the proxy compose document for the given port binding."""
    command = " ".join(
        [
            "--web",
            "--docker",
            f"--docker.domain={config.domain}",
            "--docker.endpoint=unix:///var/run/docker.sock",
            f"--entryPoints='Name:http Address::{CONTAINER_HTTP}'",
            f"--entryPoints='Name:https Address::{CONTAINER_HTTPS} TLS'",
            "--defaultEntryPoints=http,https",
            "--logLevel=INFO",
        ]
    )
    return {
        "version": "3.6",
        "services": {
            "proxy": {
                "image": config.image,
                "container_name": proxy_container_name(project),
                "entrypoint": "/traefik",
                "command": command,
                "labels": {
                    "io.edgehost.container": "TRUE",
                    "io.edgehost.proxy": "TRUE",
                },
                "networks": ["edge"],
                "ports": [
                    f"{binding.http}:{CONTAINER_HTTP}",
                    f"{binding.https}:{CONTAINER_HTTPS}",
                    f"{config.dashboard_port}:{CONTAINER_DASHBOARD}",
                ],
                "volumes": [
                    "/var/run/docker.sock:/var/run/docker.sock",
                    "/dev/null:/traefik.toml",
                ],
            }
        },
        "networks": {"edge": {"driver": "bridge"}},
    }


def _host_port(ports: dict, container_port: int) -> int | None:
    bindings = ports.get(f"{container_port}/tcp") or []
    for binding in bindings:
        host_port = str(binding.get("HostPort", "")).strip()
        if host_port.isdigit():
            return int(host_port)
    return None


def bound_ports(ports: dict, config: ProxyConfig) -> PortBinding:
    """
    Read the live port binding from an engine scan's port map
    (docker inspect NetworkSettings.Ports). Missing entries fall back to
    the configured primary ports.
    """
    http = _host_port(ports or {}, CONTAINER_HTTP)
    https = _host_port(ports or {}, CONTAINER_HTTPS)
    return PortBinding(
        http=http if http is not None else config.http_port,
        https=https if https is not None else config.https_port,
    )
