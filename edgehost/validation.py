"""Port and host validation/parsing utilities"""

import logging
from urllib.parse import urlparse

from .errors import ConfigError

logger = logging.getLogger("edgehost.validation")

# Only http/https route URLs make sense for the edge proxy
ALLOWED_SCHEMES = {"http", "https"}


def validate_port(port) -> int:
    """Validate a port number and return it as an int"""
    try:
        value = int(port)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port: {port!r}") from None

    if isinstance(port, bool) or value < 1 or value > 65535:
        raise ConfigError(f"Port must be between 1 and 65535 (got {port!r})")

    return value


def parse_port(value, default: int = 80) -> int:
    """
    Parse a declared service port.
    Accepts: 8080, "8080", "8080/tcp". Empty values fall back to default.
    """
    if value is None or value == "":
        return default
    if isinstance(value, str):
        text = value.strip()
        if "/" in text:
            text, _, proto = text.partition("/")
            if proto.lower() not in ("tcp", "http"):
                raise ConfigError(f"Unsupported port protocol: {value!r}")
        return validate_port(text)
    return validate_port(value)


def split_host_port(value: str) -> tuple[str, int | None]:
    """Split "host[:port]" into (host, port)"""
    text = value.strip()
    if ":" in text:
        host, port_str = text.rsplit(":", 1)
        if port_str.isdigit():
            return (host, validate_port(port_str))
    return (text, None)


def parse_route_url(value: str) -> tuple[str | None, str, int | None]:
    """
    Parse a route URL into (scheme, host, port).
    Accepts: myapp.lndo.site, myapp.lndo.site:8080, https://myapp.lndo.site:8080
    Paths are ignored; the proxy routes on hosts only.
    """
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Invalid route URL: {value!r}")

    text = value.strip()
    if "://" not in text:
        host, port = split_host_port(text.split("/", 1)[0])
        if not host:
            raise ConfigError(f"Invalid route URL: {value!r}")
        return (None, host, port)

    parsed = urlparse(text)
    if parsed.scheme not in ALLOWED_SCHEMES:
        logger.warning("Rejected disallowed scheme: %s", parsed.scheme)
        raise ConfigError(f"Invalid scheme '{parsed.scheme}': only http/https allowed")
    host, port = split_host_port(parsed.netloc)
    if not host:
        raise ConfigError(f"Invalid route URL: {value!r}")
    return (parsed.scheme, host, port)
