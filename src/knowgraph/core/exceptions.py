"""knowgraph custom exception hierarchy."""

from pathlib import Path
from typing import Any


class KnowGraphError(Exception):
    """Base exception for all knowgraph errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class ConfigurationError(KnowGraphError):
    """Raised when a configuration file is unreadable or invalid."""

    pass


class InvalidArgumentError(KnowGraphError):
    """Raised when a caller passes malformed input to a store operation."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.field = field


class InvalidNodeError(InvalidArgumentError):
    """Raised when a node is missing required fields or is malformed."""

    pass


class InvalidEdgeError(InvalidArgumentError):
    """Raised when an edge is missing required fields or is malformed."""

    pass


class DuplicateIdError(KnowGraphError):
    """Raised when adding a node whose id already exists."""

    def __init__(
        self,
        message: str,
        node_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if node_id is not None:
            details["node_id"] = node_id
        super().__init__(message, details)
        self.node_id = node_id


class ReferentialIntegrityError(KnowGraphError):
    """Raised when an operation would reference a node that does not exist."""

    pass


class NodeNotFoundError(ReferentialIntegrityError):
    """Raised when an edge endpoint is not present in the store."""

    def __init__(
        self,
        message: str,
        node_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if node_id is not None:
            details["node_id"] = node_id
        super().__init__(message, details)
        self.node_id = node_id


class SnapshotError(KnowGraphError):
    """Raised when a graph snapshot is malformed or cannot be read/written."""

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if path:
            details["path"] = str(path)
        super().__init__(message, details)
        self.path = path
