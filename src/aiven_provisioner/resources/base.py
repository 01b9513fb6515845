"""Resource protocol: create/read/update/delete against the Aiven API."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


class ResourceError(Exception):
    """Raised when a lifecycle operation fails; wraps the underlying cause."""


@runtime_checkable
class Resource(Protocol):
    """Lifecycle operations every managed resource kind provides."""

    def create(self, spec: Any) -> tuple[str, Any]:
        """Create the resource and return ``(resource_id, current_state)``."""
        ...

    def read(self, resource_id: str) -> Any:
        """Fetch the current state for *resource_id*."""
        ...

    def update(self, spec: Any) -> Any:
        """Apply mutable fields of *spec* to the existing resource."""
        ...

    def delete(self, resource_id: str) -> None:
        """Remove the resource."""
        ...
