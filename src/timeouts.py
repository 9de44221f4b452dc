"""
Operation timeouts for resource reconcilers.

Every remote operation runs inside a deadline scope; the scope cancels the
operation when the deadline passes and is always released on exit.
"""

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import AsyncIterator, Dict, Optional

from errors import OperationTimeoutError, SentinelError

logger = logging.getLogger(__name__)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(h|m|s)")
_UNIT_SECONDS = {"h": 3600, "m": 60, "s": 1}

OPERATIONS = ("create", "read", "update", "delete")


def parse_duration(value: str) -> float:
    """
    Parse a duration such as "30m", "1h30m" or "90s" into seconds.

    Raises:
        SentinelError: If the string is not a valid duration.
    """
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise SentinelError(f"Invalid duration: {value!r}")

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            raise SentinelError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise SentinelError(f"Invalid duration: {value!r}")
    return total


@dataclass(frozen=True)
class ResourceTimeouts:
    """Per-operation deadlines in seconds."""

    create: float = 30 * 60
    read: float = 5 * 60
    update: float = 30 * 60
    delete: float = 30 * 60

    def with_overrides(self, overrides: Optional[Dict[str, str]]) -> "ResourceTimeouts":
        """Return a copy with durations from a declarative `timeouts` block."""
        if not overrides:
            return self
        unknown = set(overrides) - set(OPERATIONS)
        if unknown:
            raise SentinelError(
                f"Unknown timeout operation(s): {', '.join(sorted(unknown))}"
            )
        return replace(
            self, **{op: parse_duration(value) for op, value in overrides.items()}
        )

    def for_operation(self, operation: str) -> float:
        return getattr(self, operation)


@asynccontextmanager
async def deadline(seconds: float, operation: str) -> AsyncIterator[None]:
    """
    Bound everything awaited inside the block by `seconds`.

    Raises:
        OperationTimeoutError: If the deadline expires before the block exits.
            A TimeoutError raised inside the block before then propagates.
    """
    scope = asyncio.timeout(seconds)
    try:
        async with scope:
            yield
    except TimeoutError:
        if not scope.expired():
            raise
        logger.error(f"{operation} exceeded its deadline of {seconds:g}s")
        raise OperationTimeoutError(operation, seconds) from None
