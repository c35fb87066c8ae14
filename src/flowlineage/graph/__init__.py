"""🔗 Lineage Graph - Nodes, links, the mutable store and collapsing.

Example:
    graph = LineageGraph()
    graph.merge_results(results)
    collapse(graph, event_id="42", event=event_details)
"""

from .collapse import (
    CollapsePlan,
    CollapseResult,
    apply_collapse,
    collapse,
    is_fan_in,
    plan_collapse,
)
from .models import EXPANDABLE_EVENT_TYPES, EventType, Link, Node, NodeType
from .store import LineageGraph

__all__ = [
    # Models
    "Node",
    "Link",
    "NodeType",
    "EventType",
    "EXPANDABLE_EVENT_TYPES",
    # Store
    "LineageGraph",
    # Collapse
    "CollapsePlan",
    "CollapseResult",
    "plan_collapse",
    "apply_collapse",
    "collapse",
    "is_fan_in",
]
