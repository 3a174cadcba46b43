"""In-memory stand-ins for the container engine and port prober."""

from edgehost.definition import PortBinding
from edgehost.engine import ScanResult
from edgehost.errors import EngineError


def docker_ports(http: int, https: int, dashboard: int = 58086) -> dict:
    """Port map shaped like docker inspect NetworkSettings.Ports"""
    return {
        "80/tcp": [{"HostIp": "0.0.0.0", "HostPort": str(http)}],
        "443/tcp": [{"HostIp": "0.0.0.0", "HostPort": str(https)}],
        "8080/tcp": [{"HostIp": "0.0.0.0", "HostPort": str(dashboard)}],
    }


class FakeEngine:
    def __init__(
        self,
        running: bool = False,
        ports: dict | None = None,
        start_failures: int = 0,
        running_projects: tuple = (),
    ):
        self.running = running
        self.running_projects = set(running_projects)
        self.ports = ports or {}
        self.start_failures = start_failures
        self.calls: list[tuple] = []

    async def start(self, ref):
        self.calls.append(("start", ref.project))
        if self.start_failures > 0:
            self.start_failures -= 1
            raise EngineError(f"Failed to start {ref.project}", payload="port is already allocated")
        self.running = True

    async def stop(self, ref):
        self.calls.append(("stop", ref.project))
        self.running = False

    async def scan(self, ref):
        self.calls.append(("scan", ref.container_id))
        return ScanResult(exists=bool(self.ports) or self.running, running=self.running, ports=self.ports)

    async def destroy(self, container_id, force=True):
        self.calls.append(("destroy", container_id, force))
        return True

    async def project_running(self, project):
        self.calls.append(("project_running", project))
        return project in self.running_projects

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class FakeProber:
    def __init__(self, binding: PortBinding):
        self.binding = binding
        self.calls = 0

    async def __call__(self, config):
        self.calls += 1
        return self.binding
