"""Supervised startup of the shared proxy."""

import logging
from dataclasses import dataclass

from .definition import ProxyRef
from .engine import ContainerEngine
from .errors import EngineError

logger = logging.getLogger("edgehost.launcher")

DEFAULT_ATTEMPTS = 3


@dataclass(frozen=True)
class LaunchResult:
    ok: bool
    attempts: int
    error: str | None = None


class SupervisedLauncher:
    """
    Starts the proxy, retrying a bounded number of times.

    Every failed start is followed by a forced removal of the proxy
    container, so a half-created or stale container can block neither the
    next attempt nor the next pass.
    """

    def __init__(self, engine: ContainerEngine, max_attempts: int = DEFAULT_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.engine = engine
        self.max_attempts = max_attempts

    async def _force_remove(self, ref: ProxyRef) -> None:
        try:
            await self.engine.destroy(ref.container_id, force=True)
        except EngineError as e:
            logger.warning("Could not remove %s: %s", ref.container_id, e, extra={"payload": e.payload})

    async def ensure_running(self, ref: ProxyRef) -> LaunchResult:
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.engine.start(ref)
            except EngineError as e:
                last_error = f"{e}: {e.payload}" if e.payload else str(e)
                logger.warning(
                    "Something is wrong with the proxy (attempt %d/%d): %s",
                    attempt,
                    self.max_attempts,
                    last_error,
                    extra={"payload": e.payload, "container": ref.container_id},
                )
                logger.warning("Trying to take corrective action...")
                await self._force_remove(ref)
                continue

            logger.info("Proxy %s is running", ref.project)
            return LaunchResult(ok=True, attempts=attempt)

        logger.error("Proxy failed to start after %d attempts", self.max_attempts)
        return LaunchResult(ok=False, attempts=self.max_attempts, error=last_error)
