"""
Port probing for the proxy's host ports.

Each candidate is probed in order with a lightweight HTTP(S) request:
- any response (whatever the status) means something already serves the
  port, so it is taken
- a refused connection, or no answer within the timeout, means the port
  is free for the proxy to bind
- a failed TLS handshake means a peer accepted the connection, so the
  port is taken
- any other transport failure (DNS, unreachable host) cannot be decided
  and aborts the probe
The first free candidate wins.
"""

import asyncio
import logging
import ssl
from collections.abc import Callable

import httpx

from .config import ProxyConfig
from .definition import PortBinding
from .errors import ProbeError

logger = logging.getLogger("edgehost.prober")

# Retries per candidate when a probe times out
PROBE_RETRIES = 1

ClientFactory = Callable[[float], httpx.AsyncClient]


def create_probe_client(timeout: float) -> httpx.AsyncClient:
    """Client for availability probes: no redirects, no certificate checks."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        verify=False,
        follow_redirects=False,
    )


def probe_url(host: str, port: int, secure: bool) -> str:
    scheme = "https" if secure else "http"
    return f"{scheme}://{host}:{port}/"


def _causes(exc: BaseException):
    seen = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _is_refused(exc: BaseException) -> bool:
    for cause in _causes(exc):
        if isinstance(cause, ConnectionRefusedError):
            return True
        if "refused" in str(cause).lower():
            return True
    return False


def _is_tls_failure(exc: BaseException) -> bool:
    # A TLS handshake failure means a listener accepted the connection
    for cause in _causes(exc):
        if isinstance(cause, ssl.SSLError):
            return True
        text = str(cause).lower()
        if "ssl" in text or "tls" in text:
            return True
    return False


async def is_port_free(client: httpx.AsyncClient, url: str, port: int, retries: int = PROBE_RETRIES) -> bool:
    """
    Decide whether the port behind url is free for binding.

    Raises:
        ProbeError: when the probe fails for a reason other than a refused
            connection or a timeout
    """
    for attempt in range(retries + 1):
        try:
            response = await client.get(url)
        except httpx.TimeoutException:
            logger.debug("Probe of %s timed out (attempt %d/%d)", url, attempt + 1, retries + 1)
            continue
        except httpx.ConnectError as e:
            if _is_refused(e):
                return True
            if _is_tls_failure(e):
                return False
            raise ProbeError(port, str(e) or type(e).__name__) from e
        except httpx.TransportError:
            # Connection accepted but the peer does not speak HTTP(S)
            return False

        logger.debug("Port %d answered with %d", port, response.status_code)
        return False

    # No answer at all
    return True


async def probe(
    candidates: list[int],
    secure: bool,
    host: str = "127.0.0.1",
    *,
    timeout: float = 1.0,
    client_factory: ClientFactory = create_probe_client,
) -> int:
    """
    Return the first free port among candidates, preserving their order.

    Raises:
        ProbeError: naming the failing candidate, or the last candidate
            when every port is taken
    """
    if not candidates:
        raise ValueError("No candidate ports to probe")

    protocol = "https" if secure else "http"
    async with client_factory(timeout) as client:
        for port in candidates:
            url = probe_url(host, port, secure)
            if await is_port_free(client, url, port):
                logger.debug("Selected %s port %d", protocol, port)
                return port
            logger.info("Port %d is in use, trying the next %s candidate", port, protocol)

    raise ProbeError(candidates[-1], f"all {protocol} candidates {candidates} are in use")


async def probe_bindings(
    config: ProxyConfig,
    client_factory: ClientFactory = create_probe_client,
) -> PortBinding:
    """Probe HTTP and HTTPS candidates concurrently; a failure cancels the other probe."""
    tasks = [
        asyncio.create_task(
            probe(ports, secure, config.engine_host, timeout=config.probe_timeout, client_factory=client_factory)
        )
        for ports, secure in ((config.http_ports, False), (config.https_ports, True))
    ]
    try:
        http, https = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    binding = PortBinding(http=http, https=https)
    logger.info("Discovered proxy ports http=%d https=%d", binding.http, binding.https)
    return binding
