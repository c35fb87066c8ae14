"""🚨 Lineage errors.

Only TransportError and ComputationError terminate a query. The rest are
raised from strict merges or handed to the notifier as information.
"""

from __future__ import annotations


class LineageError(Exception):
    """Base exception for lineage operations."""

    pass


class TransportError(LineageError):
    """Network or HTTP failure talking to the lineage backend."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ComputationError(LineageError):
    """The backend reported errors while computing a lineage."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors) or "Lineage computation failed")
        self.errors = list(errors)


class EmptyResultError(LineageError):
    """The lineage finished without any nodes."""

    pass


class DuplicateIdError(LineageError):
    """A node or link with this id is already in the graph."""

    pass


class DanglingReferenceError(LineageError):
    """A link references a node that is not in the graph."""

    pass
