"""Exception hierarchy for edgehost."""


class EdgehostError(Exception):
    """Base class for all edgehost errors."""


class ConfigError(EdgehostError):
    """Invalid proxy or app configuration."""


class ProbeError(EdgehostError):
    """No usable port could be determined for a protocol."""

    def __init__(self, port: int, reason: str) -> None:
        super().__init__(f"Port probe failed on {port}: {reason}")
        self.port = port
        self.reason = reason


class EngineError(EdgehostError):
    """A container engine call failed."""

    def __init__(self, message: str, payload: str | None = None) -> None:
        super().__init__(message)
        self.payload = payload


class LaunchError(EdgehostError):
    """The proxy could not be started within the attempt ceiling."""

    def __init__(self, attempts: int, last_error: str | None) -> None:
        super().__init__(f"Proxy failed to start after {attempts} attempt(s): {last_error or 'unknown error'}")
        self.attempts = attempts
        self.last_error = last_error


class PersistenceError(EdgehostError):
    """The persisted proxy definition could not be read or written."""

    def __init__(self, path, reason: str) -> None:
        super().__init__(f"Proxy definition at {path}: {reason}")
        self.path = path
        self.reason = reason
