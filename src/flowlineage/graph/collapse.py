"""🪗 Collapse - Hide the lineage an event fanned out to (or in from).

Collapsing walks the graph along flowfile identities:
1. Start from the identities the collapsed event declared as children
2. Remove nodes and links carrying one of those identities
3. Every removed node/link pulls the identities it leads to into the set
4. Repeat until no new identity shows up

The collapsed event, its own flowfile chain and any ``keep`` node always
stay visible.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..client.models import ProvenanceEventDTO
from .models import Link, Node
from .store import LineageGraph

logger = logging.getLogger(__name__)


@dataclass
class CollapsePlan:
    """What a collapse will remove."""

    event_id: str
    origin_uuid: str
    fan_in: bool
    node_ids: list[str] = field(default_factory=list)
    link_ids: list[str] = field(default_factory=list)
    uuids: set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.node_ids and not self.link_ids


@dataclass
class CollapseResult:
    """What a collapse actually removed."""

    plan: CollapsePlan
    removed_nodes: list[Node] = field(default_factory=list)
    removed_links: list[Link] = field(default_factory=list)


def is_fan_in(event: ProvenanceEventDTO) -> bool:
    """An event is a merge point when its own flowfile is among its children."""
    return event.flow_file_uuid in event.child_uuids


def _allow_node_removal(
    node: Node, event_id: str, origin_uuid: str, fan_in: bool
) -> bool:
    if fan_in:
        return node.id != event_id
    return node.flow_file_uuid != origin_uuid and origin_uuid not in node.parent_uuids


def _allow_link_removal(link: Link, origin_uuid: str, fan_in: bool) -> bool:
    if fan_in:
        return True
    return link.flow_file_uuid != origin_uuid


def plan_collapse(
    graph: LineageGraph,
    event_id: str,
    event: ProvenanceEventDTO,
    keep: Iterable[str] = (),
) -> CollapsePlan:
    """Work out which nodes and links collapsing an event removes.

    Args:
        graph: The current lineage graph (not modified)
        event_id: Id of the event being collapsed
        event: Details of that event
        keep: Node ids that must stay visible (e.g. the selected event)

    Returns:
        CollapsePlan with the node and link ids to remove
    """
    kept = set(keep)
    origin_uuid = event.flow_file_uuid
    fan_in = is_fan_in(event)
    uuids = set(event.child_uuids)

    nodes = sorted(graph.nodes(), key=lambda n: n.id)
    links = sorted(graph.links(), key=lambda link: link.id)
    removed_nodes: dict[str, None] = {}
    removed_links: dict[str, None] = {}

    changed = True
    while changed:
        changed = False

        for node in nodes:
            if node.id in removed_nodes or node.id in kept:
                continue
            if node.flow_file_uuid not in uuids:
                continue
            if not _allow_node_removal(node, event_id, origin_uuid, fan_in):
                continue

            removed_nodes[node.id] = None
            for outgoing in graph.outgoing(node.id):
                if outgoing.flow_file_uuid not in uuids:
                    uuids.add(outgoing.flow_file_uuid)
                    changed = True

        for link in links:
            if link.id in removed_links or link.flow_file_uuid not in uuids:
                continue
            if not _allow_link_removal(link, origin_uuid, fan_in):
                continue

            removed_links[link.id] = None
            target = graph.node(link.target_id)
            if target is not None and target.flow_file_uuid not in uuids:
                uuids.add(target.flow_file_uuid)
                changed = True

    return CollapsePlan(
        event_id=event_id,
        origin_uuid=origin_uuid,
        fan_in=fan_in,
        node_ids=list(removed_nodes),
        link_ids=list(removed_links),
        uuids=uuids,
    )


def apply_collapse(graph: LineageGraph, plan: CollapsePlan) -> CollapseResult:
    """Remove the planned nodes and links in one batch.

    Links attached to a removed node are dropped with it, so the result
    can list more links than the plan.
    """
    links_before = {link.id: link for link in graph.links()}

    with graph.batch():
        graph.remove_links(plan.link_ids)
        removed_nodes = graph.remove_nodes(plan.node_ids)

    remaining = {link.id for link in graph.links()}
    removed_links = [
        link for link_id, link in links_before.items() if link_id not in remaining
    ]

    logger.info(
        "Collapsed event %s (%s): %d nodes, %d links removed",
        plan.event_id,
        "fan-in" if plan.fan_in else "fan-out",
        len(removed_nodes),
        len(removed_links),
    )
    return CollapseResult(
        plan=plan,
        removed_nodes=removed_nodes,
        removed_links=removed_links,
    )


def collapse(
    graph: LineageGraph,
    event_id: str,
    event: ProvenanceEventDTO,
    keep: Iterable[str] = (),
) -> CollapseResult:
    """Plan and apply a collapse."""
    return apply_collapse(graph, plan_collapse(graph, event_id, event, keep))
