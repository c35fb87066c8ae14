"""🔄 Long-running lineage queries."""

from .backoff import BackoffPolicy
from .lifecycle import (
    TERMINAL_STATES,
    LineageQuery,
    LineageQueryManager,
    ProgressCallback,
    QueryState,
)

__all__ = [
    "BackoffPolicy",
    "LineageQuery",
    "LineageQueryManager",
    "ProgressCallback",
    "QueryState",
    "TERMINAL_STATES",
]
