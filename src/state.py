"""
Declarative State - Last-known configuration of every managed resource.

State is a JSON document keyed by resource address (``type.name``). Each
entry holds the remote ID and the attributes projected back by the
resource's read operation.
"""

import copy
import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional

from errors import SentinelError
from timeouts import ResourceTimeouts

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


class ResourceData:
    """
    The state of one resource as seen by its reconciler.

    Reconcilers read desired values with get(), project remote values with
    set(), and record the remote ID with set_id(). An empty ID means the
    resource no longer exists and must be dropped from state.
    """

    def __init__(
        self,
        attributes: Optional[Dict[str, Any]] = None,
        id: str = "",
        is_new: bool = False,
        timeouts: Optional[ResourceTimeouts] = None,
    ):
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self.id = id
        self.timeouts = timeouts or ResourceTimeouts()
        self._is_new = is_new

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def set_id(self, value: str) -> None:
        self.id = value

    def is_new_resource(self) -> bool:
        return self._is_new

    def timeout(self, operation: str) -> float:
        return self.timeouts.for_operation(operation)

    def exists(self) -> bool:
        return bool(self.id)

    def __repr__(self) -> str:
        return f"ResourceData(id={self.id!r}, attributes={self.attributes!r})"


class StateStore:
    """JSON file backed store of resource state."""

    def __init__(self, path: str):
        self.path = path
        self.serial = 0
        self._resources: Dict[str, Dict[str, Any]] = {}

    def load(self) -> "StateStore":
        """Load state from disk; a missing file is an empty state."""
        if not os.path.exists(self.path):
            logger.debug(f"No state file at {self.path}, starting empty")
            return self

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SentinelError(f"Failed to read state file {self.path}: {e}") from e

        version = data.get("version")
        if version != STATE_FORMAT_VERSION:
            raise SentinelError(
                f"Unsupported state format version {version!r} in {self.path}"
            )

        self.serial = data.get("serial", 0)
        self._resources = data.get("resources", {})
        logger.debug(
            f"Loaded {len(self._resources)} resources from {self.path} "
            f"(serial {self.serial})"
        )
        return self

    def save(self) -> None:
        """Write state atomically, bumping the serial."""
        self.serial += 1
        data = {
            "version": STATE_FORMAT_VERSION,
            "serial": self.serial,
            "resources": self._resources,
        }

        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.write("\n")
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def addresses(self) -> List[str]:
        return sorted(self._resources)

    def get(self, address: str) -> Optional[Dict[str, Any]]:
        entry = self._resources.get(address)
        return copy.deepcopy(entry) if entry is not None else None

    def get_data(
        self, address: str, timeouts: Optional[ResourceTimeouts] = None
    ) -> Optional[ResourceData]:
        """Get a resource's state as ResourceData, or None if not managed."""
        entry = self._resources.get(address)
        if entry is None:
            return None
        return ResourceData(
            attributes=entry["attributes"], id=entry["id"], timeouts=timeouts
        )

    def put(self, address: str, type_name: str, name: str, data: ResourceData) -> None:
        """Record a resource; data without an ID removes it instead."""
        if not data.exists():
            self.remove(address)
            return
        self._resources[address] = {
            "type": type_name,
            "name": name,
            "id": data.id,
            "attributes": dict(data.attributes),
        }

    def remove(self, address: str) -> bool:
        return self._resources.pop(address, None) is not None
