"""
Core plugin types and dataclasses.

This module contains shared types used across the plugin system.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

# (value, attribute name) -> list of error messages
ValidateFunc = Callable[[Any, str], List[str]]


class AttributeType(Enum):
    """JSON types a schema attribute can hold."""

    STRING = "string"
    BOOLEAN = "boolean"
    INTEGER = "integer"


@dataclass
class Attribute:
    """Definition of one attribute of a resource schema."""

    type: AttributeType
    required: bool = False
    optional: bool = False
    force_new: bool = False
    default: Any = None
    validate_func: Optional[ValidateFunc] = None
    description: str = ""


class ChangeAction(Enum):
    """What a plan decided to do with a resource."""

    NOOP = "no-op"
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    READ = "read"
    IMPORT = "import"


@dataclass
class ResourceSpec:
    """A resource as declared in a configuration file."""

    name: str
    type: str
    spec: Dict[str, Any]
    timeouts: Optional[Dict[str, str]] = None

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"


@dataclass
class ReconcileResult:
    """Result of reconciling one resource."""

    address: str
    action: ChangeAction
    success: bool = False
    message: str = ""
    resource_id: Optional[str] = None
    changed_attributes: List[str] = field(default_factory=list)
