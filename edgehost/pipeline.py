"""
Lifecycle stages of the shared proxy.

The host calls these stages at the matching points of its own lifecycle:

- configure():      once, after bootstrap
- start_app(app):   before an app starts; full reconciliation pass
- app_info(app):    when app info is requested; read-only URL lookup
- poweroff():       on power-off; stops the proxy when it is defined

A start pass runs strictly in order: port discovery, definition
compare/write, supervised launch, live rescan, route compilation and
publication. Nothing is fired and forgotten.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .config import AppSpec, ProxyConfig, load_config
from .definition import PortBinding, ProxyRef, bound_ports
from .engine import ContainerEngine, DockerEngine
from .errors import LaunchError
from .launcher import SupervisedLauncher
from .prober import probe_bindings
from .publisher import RouteTablePublisher
from .reconciler import BindingProber, ProxyReconciler, ProxyState
from .routes import CompiledRule, ConflictReport, ServiceRouteSet, compile_routes, normalize, route_urls
from .state import DefinitionStore
from .structured_logging import PassLogger

logger = logging.getLogger("edgehost.pipeline")


@dataclass
class PassResult:
    binding: PortBinding
    state: ProxyState
    changed: bool
    route_sets: list[ServiceRouteSet] = field(default_factory=list)
    rules: list[CompiledRule] = field(default_factory=list)
    conflicts: ConflictReport = field(default_factory=ConflictReport)
    artifact: Path | None = None


class ProxyPipeline:
    """Explicit lifecycle stages around one shared proxy instance."""

    def __init__(
        self,
        config: ProxyConfig | None = None,
        *,
        ref: ProxyRef | None = None,
        engine: ContainerEngine | None = None,
        store: DefinitionStore | None = None,
        prober: BindingProber = probe_bindings,
    ):
        self._config = config
        self._ref = ref
        self.engine = engine or DockerEngine()
        self._store = store
        self.prober = prober
        self._reconciler: ProxyReconciler | None = None

    def configure(self) -> ProxyConfig:
        """Load config (once) and wire the collaborators for this proxy."""
        if self._config is None:
            self._config = load_config()
        if self._ref is None:
            self._ref = ProxyRef.for_config(self._config)
        if self._store is None:
            self._store = DefinitionStore(self._ref.compose_file)
        if self._reconciler is None:
            self._reconciler = ProxyReconciler(self._ref, self._store, self.engine, self.prober)
        logger.info("Proxy configured for *.%s", self._config.domain, extra={"proxy": self._config.as_dict()})
        return self._config

    def _ensure_configured(self) -> None:
        if self._reconciler is None:
            self.configure()

    @property
    def config(self) -> ProxyConfig:
        self._ensure_configured()
        return self._config

    @property
    def ref(self) -> ProxyRef:
        self._ensure_configured()
        return self._ref

    @property
    def store(self) -> DefinitionStore:
        self._ensure_configured()
        return self._store

    @property
    def reconciler(self) -> ProxyReconciler:
        self._ensure_configured()
        return self._reconciler

    def applies_to(self, app: AppSpec) -> bool:
        return self.config.enabled and bool(app.proxy)

    async def bound_ports(self) -> PortBinding:
        """Ports the live proxy is bound to, read from the engine."""
        scan = await self.engine.scan(self.ref)
        return bound_ports(scan.ports, self.config)

    async def start_app(self, app: AppSpec) -> PassResult | None:
        """
        Run a full reconciliation pass for an app that is about to start.

        Raises:
            ProbeError: no usable port for a protocol
            PersistenceError: the proxy definition could not be read or written
            LaunchError: the proxy did not start within the attempt ceiling
        """
        if not self.applies_to(app):
            return None

        config = self.config
        log = PassLogger(logger, app.name)

        async with self.reconciler.lock:
            reconciliation = await self.reconciler.reconcile(config)
            log.info("Proxy is %s (changed: %s)", reconciliation.state.value, reconciliation.changed)

            launcher = SupervisedLauncher(self.engine, config.launch_attempts)
            launch = await launcher.ensure_running(self.ref)
            if not launch.ok:
                log.error("Proxy could not be started; routes for %s are unavailable", app.name)
                raise LaunchError(launch.attempts, launch.error)

        # The proxy is up, so the scan reports its actual ports
        binding = await self.bound_ports()

        route_sets, rules, conflicts = compile_routes(app.name, app.proxy, config.domain, self.ref.network)
        publisher = RouteTablePublisher(self.ref, config.proxy_dir)
        artifact = publisher.publish(app, rules)

        return PassResult(
            binding=binding,
            state=reconciliation.state,
            changed=reconciliation.changed,
            route_sets=route_sets,
            rules=rules,
            conflicts=conflicts,
            artifact=artifact,
        )

    async def refresh_running(self, app: AppSpec) -> bool:
        """Set app.running from the engine's view of the app's compose project."""
        app.running = await self.engine.project_running(app.project_name)
        return app.running

    async def app_info(self, app: AppSpec) -> dict[str, list[str]]:
        """Proxy URLs per service of a running app; never changes proxy state."""
        if not self.applies_to(app) or not app.running:
            return {}

        binding = await self.bound_ports()
        route_sets = [
            normalize(service, routes, app.name, self.config.domain) for service, routes in app.proxy.items()
        ]
        urls = route_urls(route_sets, binding)
        for service, service_urls in urls.items():
            app.info.setdefault(service, {})["urls"] = service_urls
        return urls

    async def poweroff(self) -> bool:
        """Stop the proxy if it is enabled and defined."""
        if not self.config.enabled or not self.store.exists():
            return False
        await self.engine.stop(self.ref)
        logger.info("Proxy %s stopped", self.ref.project)
        return True
