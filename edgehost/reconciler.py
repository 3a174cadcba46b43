"""
Proxy state reconciliation.

Decides on every pass whether the persisted proxy definition is created,
reused or rebuilt:

- ABSENT: no definition on disk; ports are probed and a definition written
- RUNNING_MATCHED: a definition exists and the proxy container runs; the
  ports it is bound to are reused as observed, never re-probed, otherwise
  a fresh scan would flag the running proxy as changed
- RUNNING_UNKNOWN: a definition exists but the proxy is not running;
  ports are probed again
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .config import ProxyConfig
from .definition import PortBinding, ProxyRef, bound_ports, build_definition
from .engine import ContainerEngine
from .prober import probe_bindings
from .state import DefinitionStore

logger = logging.getLogger("edgehost.reconciler")

BindingProber = Callable[[ProxyConfig], Awaitable[PortBinding]]


class ProxyState(str, Enum):
    ABSENT = "absent"
    RUNNING_MATCHED = "running-matched"
    RUNNING_UNKNOWN = "running-unknown"


@dataclass(frozen=True)
class Reconciliation:
    state: ProxyState
    binding: PortBinding
    definition: dict[str, Any]
    changed: bool


class ProxyReconciler:
    """Keeps the persisted proxy definition in line with config and live ports."""

    def __init__(
        self,
        ref: ProxyRef,
        store: DefinitionStore,
        engine: ContainerEngine,
        prober: BindingProber = probe_bindings,
    ):
        self.ref = ref
        self.store = store
        self.engine = engine
        self.prober = prober
        # Single-flight guard for create-and-launch within this process
        self.lock = asyncio.Lock()

    async def discover(self, config: ProxyConfig) -> tuple[ProxyState, PortBinding]:
        """Find the port binding to build the definition from."""
        if not self.store.exists():
            logger.debug("No proxy definition at %s, scanning ports", self.store.path)
            return ProxyState.ABSENT, await self.prober(config)

        scan = await self.engine.scan(self.ref)
        if scan.running:
            binding = bound_ports(scan.ports, config)
            logger.debug("Proxy is running on http=%d https=%d", binding.http, binding.https)
            return ProxyState.RUNNING_MATCHED, binding

        logger.debug("Proxy %s is defined but not running, scanning ports", self.ref.container_id)
        return ProxyState.RUNNING_UNKNOWN, await self.prober(config)

    async def reconcile(self, config: ProxyConfig) -> Reconciliation:
        state, binding = await self.discover(config)
        definition = build_definition(config, binding, self.ref.project)

        current = self.store.load()
        if current is None:
            logger.info("Defining proxy for the first time")
            self.store.dump(definition)
            changed = True
        elif current != definition:
            logger.info("Proxy has changed, rebuilding")
            self.store.dump(definition)
            changed = True
        else:
            changed = False

        return Reconciliation(state=state, binding=binding, definition=definition, changed=changed)
