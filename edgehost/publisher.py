"""Publishing of compiled routes as compose override files."""

import logging
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .config import AppSpec
from .definition import ProxyRef
from .routes import CompiledRule
from .state import dump_yaml

logger = logging.getLogger("edgehost.publisher")

# Network alias app services use to join the proxy's edge network
EDGE_ALIAS = "edgehost_proxyedge"


class RouteTablePublisher:
    """
    Writes one routing file per app start.

    Files are never rewritten in place: each publish gets a fresh unique
    name, so concurrent app starts never read or write the same file.
    """

    def __init__(self, ref: ProxyRef, directory: Path):
        self.ref = ref
        self.directory = Path(directory)

    def build(self, rules: Iterable[CompiledRule]) -> dict[str, Any]:
        document: dict[str, Any] = {
            "version": "3.6",
            "networks": {EDGE_ALIAS: {"external": True, "name": self.ref.network}},
            "services": {},
        }
        for rule in rules:
            document["services"][rule.service_name] = {
                "networks": {EDGE_ALIAS: {}},
                "labels": rule.labels(),
            }
        return document

    def artifact_path(self, project: str) -> Path:
        return self.directory / f"{project}-proxy-{uuid.uuid4().hex[:12]}.yml"

    def publish(self, app: AppSpec, rules: list[CompiledRule]) -> Path:
        """Write the app's routing file and add it to the app's compose files"""
        path = dump_yaml(self.artifact_path(app.project_name), self.build(rules))
        app.compose_files.append(path)
        logger.info("App %s has proxy compose file %s", app.project_name, path, extra={"app": app.name})
        return path
