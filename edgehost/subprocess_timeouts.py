"""
Timeouts for container engine calls and port probes.

Every subprocess call made against the container engine uses one of
these constants instead of a hard-coded value or no timeout at all.
"""

# Timeout constants (in seconds)

# Short operations (< 5 seconds)
TIMEOUT_QUICK = 5
"""Quick operations: version checks, inspect, remove."""

# Standard operations (< 30 seconds)
TIMEOUT_STANDARD = 30
"""Standard operations: stopping containers, most commands."""

# Long operations (< 60 seconds)
TIMEOUT_LONG = 60
"""Long operations: network creation, recreating containers."""

# Extended operations (< 120 seconds)
TIMEOUT_EXTENDED = 120
"""Extended operations: compose up that may need to pull the proxy image."""

# Per-attempt port probe timeout (seconds, float)
PROBE_TIMEOUT = 1.0
"""A probe that gets no answer within this window treats the port as free."""


# Operation-specific timeouts for engine operations
TIMEOUTS = {
    "docker_api": TIMEOUT_STANDARD,  # Docker SDK client: inspect, remove, list
    "compose_up": TIMEOUT_EXTENDED,  # First start pulls the image
    "compose_stop": TIMEOUT_STANDARD,
    "compose_down": TIMEOUT_LONG,
}


def get_timeout(operation: str, default: int = TIMEOUT_STANDARD) -> int | None:
    """
    Get the recommended timeout for a specific engine operation.

    Args:
        operation: Operation name (e.g., "compose_up", "docker_api")
        default: Default timeout if operation not found

    Returns:
        Timeout in seconds

    Examples:
        >>> get_timeout("docker_api")
        30
        >>> get_timeout("compose_up")
        120
        >>> get_timeout("unknown_operation")
        30
    """
    return TIMEOUTS.get(operation, default)
