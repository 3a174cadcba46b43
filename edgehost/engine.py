"""
Container engine adapter.

The proxy project is started and stopped with `docker compose`, driven
through subprocess. Live state comes from the Docker SDK: containers are
looked up by name for inspection and forced removal. Blocking calls run
in a worker thread so the reconciliation pipeline can await them.
"""

import asyncio
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Protocol

import docker
from docker.errors import DockerException, NotFound

from .definition import ProxyRef
from .errors import EngineError
from .subprocess_timeouts import get_timeout

logger = logging.getLogger("edgehost.engine")

# Label compose puts on every container of a project
COMPOSE_PROJECT_LABEL = "com.docker.compose.project"


@dataclass(frozen=True)
class ScanResult:
    """Live state of a container as reported by the engine."""

    exists: bool
    running: bool = False
    ports: dict = field(default_factory=dict)


class ContainerEngine(Protocol):
    async def start(self, ref: ProxyRef) -> None: ...

    async def stop(self, ref: ProxyRef) -> None: ...

    async def scan(self, ref: ProxyRef) -> ScanResult: ...

    async def destroy(self, container_id: str, force: bool = True) -> bool: ...

    async def project_running(self, project: str) -> bool: ...


def find_docker_executable() -> str | None:
    """Find the docker CLI on the system."""
    return shutil.which("docker")


class DockerEngine:
    """Container engine backed by docker compose and the Docker SDK."""

    def __init__(self, docker_bin: str | None = None, client: docker.DockerClient | None = None):
        self.docker_bin = docker_bin or find_docker_executable() or "docker"
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env(timeout=get_timeout("docker_api"))
            except DockerException as e:
                raise EngineError("Docker is not available", payload=str(e)) from e
        return self._client

    def _run(self, args: list[str], operation: str) -> subprocess.CompletedProcess:
        cmd = [self.docker_bin, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=get_timeout(operation),
            )
        except subprocess.TimeoutExpired as e:
            raise EngineError(f"{operation} timed out after {e.timeout}s") from e
        except OSError as e:
            raise EngineError(f"{operation} failed: {e}") from e
        return result

    def _compose(self, ref: ProxyRef, *args: str) -> list[str]:
        return ["compose", "--project-name", ref.project, "--file", str(ref.compose_file), *args]

    def _start(self, ref: ProxyRef) -> None:
        result = self._run(self._compose(ref, "up", "-d", "--remove-orphans"), "compose_up")
        if result.returncode != 0:
            payload = result.stderr.strip() if result.stderr else "Unknown error"
            raise EngineError(f"Failed to start {ref.project}", payload=payload)

    def _stop(self, ref: ProxyRef) -> None:
        result = self._run(self._compose(ref, "stop"), "compose_stop")
        if result.returncode != 0:
            payload = result.stderr.strip() if result.stderr else "Unknown error"
            raise EngineError(f"Failed to stop {ref.project}", payload=payload)

    def _scan(self, ref: ProxyRef) -> ScanResult:
        try:
            container = self.client.containers.get(ref.container_id)
        except NotFound:
            return ScanResult(exists=False)
        except DockerException as e:
            raise EngineError(f"Failed to inspect {ref.container_id}", payload=str(e)) from e

        attrs = container.attrs or {}
        running = bool(attrs.get("State", {}).get("Running", False))
        ports = attrs.get("NetworkSettings", {}).get("Ports") or {}
        return ScanResult(exists=True, running=running, ports=ports)

    def _destroy(self, container_id: str, force: bool) -> bool:
        try:
            container = self.client.containers.get(container_id)
            container.remove(force=force)
        except NotFound:
            logger.debug("Container %s already gone", container_id)
            return False
        except DockerException as e:
            raise EngineError(f"Failed to remove {container_id}", payload=str(e)) from e
        return True

    def _project_running(self, project: str) -> bool:
        try:
            containers = self.client.containers.list(
                filters={"label": f"{COMPOSE_PROJECT_LABEL}={project}", "status": "running"}
            )
        except DockerException as e:
            raise EngineError(f"Failed to list containers of {project}", payload=str(e)) from e
        return bool(containers)

    async def start(self, ref: ProxyRef) -> None:
        await asyncio.to_thread(self._start, ref)

    async def stop(self, ref: ProxyRef) -> None:
        await asyncio.to_thread(self._stop, ref)

    async def scan(self, ref: ProxyRef) -> ScanResult:
        return await asyncio.to_thread(self._scan, ref)

    async def destroy(self, container_id: str, force: bool = True) -> bool:
        """Remove a container; an already-absent container is not an error"""
        return await asyncio.to_thread(self._destroy, container_id, force)

    async def project_running(self, project: str) -> bool:
        """True when any container of the compose project is running"""
        return await asyncio.to_thread(self._project_running, project)
