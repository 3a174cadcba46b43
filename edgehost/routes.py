"""
Route compilation for the edge proxy.

Services declare their proxy routes in one of two shapes:

    # legacy mapping form
    web:
      - port: 80/tcp
        default: true
        hostnames: [myapp.lndo.site]
        ssl: true

    # URL list form
    web:
      - myapp.lndo.site
      - api.myapp.lndo.site:8080

URL lists are translated to the mapping form first, then every entry is
normalized into Routes. Hosts are checked for duplicates across the whole
app and each service compiles into a single Traefik rule.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .definition import PortBinding
from .errors import ConfigError
from .validation import parse_port, parse_route_url, split_host_port

logger = logging.getLogger("edgehost.routes")

DEFAULT_PORT = 80

# Traefik capture used in place of a "*" label
WILDCARD_CAPTURE = "{wildcard:[a-z0-9-]+}"


@dataclass(frozen=True)
class Route:
    service_name: str
    host: str
    port: int
    app_name: str
    secure: bool = False

    @property
    def host_key(self) -> str:
        return strip_port(self.host).lower()


@dataclass(frozen=True)
class ServiceRouteSet:
    app_name: str
    service_name: str
    routes: tuple[Route, ...] = ()


@dataclass(frozen=True)
class CompiledRule:
    service_name: str
    network: str
    host_match: str
    target_port: int

    def labels(self) -> dict[str, str]:
        """Traefik labels carrying this rule"""
        return {
            "traefik.docker.network": self.network,
            "traefik.frontend.rule": self.host_match,
            "traefik.port": str(self.target_port),
        }


@dataclass
class ConflictReport:
    """Occurrences of every lower-cased host across one pass."""

    counts: dict[str, int] = field(default_factory=dict)
    services: dict[str, list[str]] = field(default_factory=dict)

    @property
    def conflicts(self) -> dict[str, int]:
        return {host: count for host, count in self.counts.items() if count > 1}

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


def strip_port(host: str) -> str:
    return split_host_port(host)[0]


def is_url_list(declarations) -> bool:
    return isinstance(declarations, list) and bool(declarations) and isinstance(declarations[0], str)


def url_to_legacy(urls: Iterable[str]) -> list[dict]:
    """Translate URL-list declarations into legacy mapping entries"""
    entries = []
    for url in urls:
        scheme, host, port = parse_route_url(url)
        entries.append(
            {
                "hostnames": [host],
                "port": port or DEFAULT_PORT,
                # Routes are served on both entrypoints unless pinned to http://
                "ssl": scheme != "http",
            }
        )
    return entries


def _entry_hostnames(entry: Mapping) -> list[str]:
    hostnames = entry.get("hostnames", entry.get("hostname", []))
    if isinstance(hostnames, str):
        hostnames = [hostnames]
    if not isinstance(hostnames, list):
        raise ConfigError(f"hostnames must be a list (got {hostnames!r})")
    return [str(host).strip() for host in hostnames if str(host).strip()]


def normalize(service_name: str, declarations, app_name: str, domain: str) -> ServiceRouteSet:
    """Normalize one service's declarations into an ordered route set."""
    if declarations is None:
        declarations = []
    if not isinstance(declarations, list):
        raise ConfigError(f"Proxy routes for service {service_name} must be a list")
    if is_url_list(declarations):
        declarations = url_to_legacy(declarations)

    routes: list[Route] = []
    for entry in declarations:
        if not isinstance(entry, Mapping):
            raise ConfigError(f"Invalid proxy entry for service {service_name}: {entry!r}")

        port = parse_port(entry.get("port"), DEFAULT_PORT)
        secure = bool(entry.get("ssl", entry.get("secure", False)))
        hosts = []
        if entry.get("default"):
            hosts.append(f"{app_name}.{domain}")
        hosts.extend(_entry_hostnames(entry))

        for host in hosts:
            route = Route(service_name=service_name, host=host, port=port, app_name=app_name, secure=secure)
            if route not in routes:
                routes.append(route)

    return ServiceRouteSet(app_name=app_name, service_name=service_name, routes=tuple(routes))


def count_hosts(route_sets: Iterable[ServiceRouteSet]) -> ConflictReport:
    """Count every lower-cased host across all services of the pass."""
    report = ConflictReport()
    for route_set in route_sets:
        for route in route_set.routes:
            key = route.host_key
            report.counts[key] = report.counts.get(key, 0) + 1
            report.services.setdefault(key, []).append(route_set.service_name)
    return report


def host_match(hosts: Iterable[str]) -> str:
    """Combine hosts (ports stripped) into one Traefik HostRegexp alternation"""
    parsed = []
    for host in hosts:
        pattern = strip_port(host).replace("*", WILDCARD_CAPTURE)
        if pattern not in parsed:
            parsed.append(pattern)
    return "HostRegexp:" + ",".join(parsed)


def representative_port(route_set: ServiceRouteSet) -> int:
    """Port of the first route; the proxy always talks plain HTTP internally"""
    port = route_set.routes[0].port if route_set.routes else DEFAULT_PORT
    return DEFAULT_PORT if port == 443 else port


def compile_rule(route_set: ServiceRouteSet, network: str) -> CompiledRule | None:
    if not route_set.routes:
        return None
    return CompiledRule(
        service_name=route_set.service_name,
        network=network,
        host_match=host_match(route.host for route in route_set.routes),
        target_port=representative_port(route_set),
    )


def compile_routes(
    app_name: str,
    proxy: Mapping[str, list],
    domain: str,
    network: str,
) -> tuple[list[ServiceRouteSet], list[CompiledRule], ConflictReport]:
    """
    Compile an app's proxy declarations.

    Duplicate hosts are logged as an error but do not stop compilation;
    every service still gets its rule and the last one loaded wins.
    """
    route_sets = [normalize(service, routes, app_name, domain) for service, routes in proxy.items()]

    report = count_hosts(route_sets)
    if report.has_conflicts:
        for host, count in report.conflicts.items():
            logger.error(
                "Duplicate URL detected: %s is declared %d times by %s",
                host,
                count,
                ", ".join(report.services[host]),
                extra={"app": app_name, "host": host, "count": count, "services": report.services[host]},
            )

    rules = [rule for rule in (compile_rule(rs, network) for rs in route_sets) if rule]
    return route_sets, rules, report


def _url(scheme: str, host: str, port: int, default_port: int) -> str:
    if port == default_port:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def route_urls(route_sets: Iterable[ServiceRouteSet], binding: PortBinding) -> dict[str, list[str]]:
    """Externally visible URLs per service for the given proxy binding."""
    urls: dict[str, list[str]] = {}
    for route_set in route_sets:
        service_urls = urls.setdefault(route_set.service_name, [])
        for route in route_set.routes:
            host = strip_port(route.host)
            candidates = [_url("http", host, binding.http, 80)]
            if route.secure:
                candidates.append(_url("https", host, binding.https, 443))
            for url in candidates:
                if url not in service_urls:
                    service_urls.append(url)
    return urls
