"""🌳 Flowlineage - Explore the provenance lineage of a flowfile.

Quick Start:
    from flowlineage import LineageSession, ProvenanceClient

    async with ProvenanceClient.from_settings() as client:
        session = LineageSession(client)
        await session.show_lineage("a1b2c3")     # full lineage of a flowfile
        await session.expand_children("57")      # what event 57 spawned
        await session.collapse("57")             # hide it again

        for node_id, position in session.layout.positions.items():
            print(node_id, position.x, position.y)
"""

from .client import LineageRequest, ProvenanceClient
from .config import LineageConfig, get_settings, load_config
from .graph import LineageGraph, Link, Node
from .layout import LineageLayout, compute_layout
from .logging_config import configure_logging
from .query import LineageQueryManager, QueryState
from .session import LineageAction, LineageSession

__version__ = "0.1.0"

__all__ = [
    "ProvenanceClient",
    "LineageRequest",
    "LineageConfig",
    "get_settings",
    "load_config",
    "LineageGraph",
    "Node",
    "Link",
    "compute_layout",
    "LineageLayout",
    "LineageQueryManager",
    "QueryState",
    "LineageSession",
    "LineageAction",
    "configure_logging",
    "__version__",
]
