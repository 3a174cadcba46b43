"""
Edgehost - shared edge proxy for local development apps
Keeps one Traefik proxy running for every app and routes their hosts to it
"""

__version__ = "1.0.0"

from .config import AppSpec, ProxyConfig, load_config
from .definition import PortBinding, ProxyRef, build_definition
from .errors import ConfigError, EdgehostError, EngineError, LaunchError, PersistenceError, ProbeError
from .launcher import LaunchResult, SupervisedLauncher
from .pipeline import PassResult, ProxyPipeline
from .prober import probe, probe_bindings
from .reconciler import ProxyReconciler, ProxyState
from .routes import CompiledRule, Route, ServiceRouteSet, compile_routes

__all__ = [
    "AppSpec",
    "ProxyConfig",
    "load_config",
    "PortBinding",
    "ProxyRef",
    "build_definition",
    "EdgehostError",
    "ConfigError",
    "EngineError",
    "LaunchError",
    "PersistenceError",
    "ProbeError",
    "LaunchResult",
    "SupervisedLauncher",
    "PassResult",
    "ProxyPipeline",
    "probe",
    "probe_bindings",
    "ProxyReconciler",
    "ProxyState",
    "CompiledRule",
    "Route",
    "ServiceRouteSet",
    "compile_routes",
    "__version__",
]
