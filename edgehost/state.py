"""
Persistence of the proxy definition.

Manages ~/.edgehost/proxy/proxy.yml. The presence of the file is the
signal that the proxy has been defined; its content is compared against
freshly computed definitions to decide whether the proxy must be rebuilt.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from .errors import PersistenceError

logger = logging.getLogger("edgehost.state")


def dump_yaml(path: Path, data: dict[str, Any]) -> Path:
    """Write YAML atomically with owner-only permissions"""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

        # Set restrictive permissions before replacing (Unix only)
        if sys.platform != "win32":
            tmp.chmod(0o600)

        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return path


class DefinitionStore:
    """Load/dump the persisted proxy definition."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> dict[str, Any] | None:
        """Load the definition, or None when the proxy was never defined"""
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(self.path, f"failed to load: {e}") from e
        if not isinstance(loaded, dict):
            raise PersistenceError(self.path, "content is not a mapping")
        return loaded

    def dump(self, definition: dict[str, Any]) -> None:
        try:
            dump_yaml(self.path, definition)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(self.path, f"failed to save: {e}") from e
        logger.debug("Wrote proxy definition to %s", self.path)

    def remove(self) -> bool:
        """Remove the definition; returns False when there was nothing to remove"""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(self.path, f"failed to remove: {e}") from e
        return True
