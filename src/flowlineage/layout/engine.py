"""📐 Level Layout - Position lineage nodes into horizontal levels.

Walks the graph top-down from the roots, one level at a time:
1. Defer any frontier node that is also a descendant of another frontier
   node, so long edges skip levels instead of crowding the top
2. Widen the gap above a level when it merges many edges
3. Order the level (children first for fan-out, parents first for fan-in)
4. Place nodes around their parents, keeping straight chains vertical
5. Push apart anything closer than the minimum node spacing
6. Record each node's index for ordering the next level

The layout is a pure function of the graph: the same nodes and links
always produce the same positions, whatever order they were merged in.

Example:
    layout = compute_layout(graph)
    for node_id, position in layout.positions.items():
        print(node_id, position.x, position.y)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import cmp_to_key
from statistics import mean
from typing import Callable

from ..config import LayoutConfig
from ..graph.models import Node
from ..graph.store import LineageGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodePosition:
    """Where a node ends up."""

    x: float
    y: float
    index: int  # position within its level, left to right
    level: int


@dataclass
class LineageLayout:
    """Positions for every node of a graph."""

    positions: dict[str, NodePosition] = field(default_factory=dict)
    levels: list[list[str]] = field(default_factory=list)

    def __getitem__(self, node_id: str) -> NodePosition:
        return self.positions[node_id]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.positions

    def __len__(self) -> int:
        return len(self.positions)

    def get(self, node_id: str) -> NodePosition | None:
        return self.positions.get(node_id)

    def level_y(self, level: int) -> float:
        """Vertical position of a level."""
        return self.positions[self.levels[level][0]].y

    def bounds(self) -> tuple[float, float, float, float] | None:
        """(min_x, min_y, max_x, max_y) of all positions."""
        if not self.positions:
            return None
        xs = [p.x for p in self.positions.values()]
        ys = [p.y for p in self.positions.values()]
        return min(xs), min(ys), max(xs), max(ys)


def compute_layout(
    graph: LineageGraph, config: LayoutConfig | None = None
) -> LineageLayout:
    """Compute positions for every node in the graph.

    Args:
        graph: Lineage graph to lay out (not modified)
        config: Spacing and heuristic settings

    Returns:
        LineageLayout with one NodePosition per reachable node
    """
    config = config or LayoutConfig()
    layout = LineageLayout()

    frontier = graph.roots()
    parents: list[str] = []
    top = config.origin_y
    gap = config.initial_level_spacing

    # A DAG never needs more levels than it has nodes
    while frontier and len(layout.levels) < len(graph):
        children = _descendants(graph, frontier, depth=1)
        descendants = _descendants(graph, frontier)

        # Deferred nodes come back as children of a deeper level
        level = [node_id for node_id in frontier if node_id not in descendants]
        ordered_children = sorted(children, reverse=True)

        gap = _level_gap(
            [len(graph.incoming(node_id)) for node_id in level], gap, config
        )
        level = _order_level(graph, level, ordered_children, parents, layout)

        y = top + gap
        xs = _place_level(graph, level, parents, y, layout, config)
        ordered = _spread_level(level, xs, config.node_spacing)

        depth = len(layout.levels)
        for index, node_id in enumerate(ordered):
            layout.positions[node_id] = NodePosition(
                x=xs[node_id], y=y, index=index, level=depth
            )
        layout.levels.append(ordered)

        if not ordered_children:
            break

        gap = _level_gap(
            [len(graph.outgoing(node_id)) for node_id in ordered],
            config.narrow_level_spacing,
            config,
        )
        parents = ordered
        frontier = ordered_children
        top = y

    logger.debug(
        "Laid out %d nodes on %d levels", len(layout.positions), len(layout.levels)
    )
    return layout


def _descendants(
    graph: LineageGraph, node_ids: list[str], depth: int | None = None
) -> set[str]:
    """Nodes reachable from ``node_ids`` within ``depth`` hops (None = any)."""
    found: set[str] = set()
    current = list(node_ids)
    hops = 0

    while current and (depth is None or hops < depth):
        following = []
        for node_id in current:
            for link in graph.outgoing(node_id):
                if link.target_id not in found:
                    found.add(link.target_id)
                    following.append(link.target_id)
        current = following
        hops += 1

    return found


def _level_gap(edge_counts: list[int], gap: float, config: LayoutConfig) -> float:
    """Widen the gap when the level fans in or out heavily."""
    multi_edge_nodes = 0
    for count in edge_counts:
        if count >= config.wide_fan_threshold:
            return config.level_spacing
        if count >= config.multi_edge_min:
            multi_edge_nodes += 1

    if multi_edge_nodes > config.multi_edge_node_limit:
        return config.level_spacing
    return gap


def _order_level(
    graph: LineageGraph,
    level: list[str],
    children: list[str],
    parents: list[str],
    layout: LineageLayout,
) -> list[str]:
    """Sort a level so chains line up with their parents and children.

    Fan-in levels (several parents) align under their sources first;
    everything else aligns above its destinations first.
    """
    child_index = {node_id: i for i, node_id in enumerate(children)}

    def by_children(one: Node, two: Node) -> int:
        one_out = graph.outgoing(one.id)
        two_out = graph.outgoing(two.id)
        if one_out and two_out:
            return child_index.get(one_out[0].target_id, -1) - child_index.get(
                two_out[0].target_id, -1
            )
        return 0

    def by_parents(one: Node, two: Node) -> int:
        one_in = graph.incoming(one.id)
        two_in = graph.incoming(two.id)
        if one_in and two_in:
            return _index_of(layout, one_in[0].source_id) - _index_of(
                layout, two_in[0].source_id
            )
        return 0

    keys: list[Callable[[Node, Node], int]]
    if len(parents) > 1:
        keys = [by_parents, by_children]
    else:
        keys = [by_children, by_parents]

    def compare(one_id: str, two_id: str) -> int:
        one = graph.node(one_id)
        two = graph.node(two_id)

        for key in keys:
            difference = key(one, two)
            if difference:
                return difference

        # node type
        if one.type != two.type:
            return 1 if one.type.value > two.type.value else -1

        # event type
        one_event = one.event_type or ""
        two_event = two.event_type or ""
        if one_event != two_event:
            return 1 if one_event > two_event else -1

        # timestamp
        if one.millis != two.millis:
            return -1 if one.millis < two.millis else 1

        return (one.id > two.id) - (one.id < two.id)

    return sorted(level, key=cmp_to_key(compare))


def _index_of(layout: LineageLayout, node_id: str) -> int:
    position = layout.get(node_id)
    return position.index if position is not None else -1


def _place_level(
    graph: LineageGraph,
    level: list[str],
    parents: list[str],
    y: float,
    layout: LineageLayout,
    config: LayoutConfig,
) -> dict[str, float]:
    """Initial x for each node of a level."""
    if parents:
        origin_x = mean(layout[parent_id].x for parent_id in parents)
    else:
        origin_x = config.origin_x

    level_width = (len(level) - 1) * config.node_spacing
    anchor = len(level) <= len(parents)

    xs = {}
    for i, node_id in enumerate(level):
        x = _anchored_x(graph, node_id, y, layout, config) if anchor else None
        if x is None:
            # evenly space the nodes under the origin
            x = i * config.node_spacing + origin_x - level_width / 2
        xs[node_id] = x
    return xs


def _anchored_x(
    graph: LineageGraph,
    node_id: str,
    y: float,
    layout: LineageLayout,
    config: LayoutConfig,
) -> float | None:
    """x inherited from the parents, or None to fall back to even spacing."""
    incoming = graph.incoming(node_id)

    if len(incoming) == 1:
        source_id = incoming[0].source_id
        parent = layout.get(source_id)
        if parent is not None and len(graph.outgoing(source_id)) == 1:
            return parent.x
        return None

    if len(incoming) > 1:
        same_band = [
            layout[link.source_id].x
            for link in incoming
            if link.source_id in layout
            and y - layout[link.source_id].y <= config.level_spacing
        ]
        if same_band:
            return mean(same_band)

    return None


def _spread_level(level: list[str], xs: dict[str, float], spacing: float) -> list[str]:
    """Sort by x and push overlapping neighbours right.

    Returns the level ids in final left-to-right order.
    """
    ordered = sorted(level, key=lambda node_id: xs[node_id])

    for first, second in zip(ordered, ordered[1:]):
        if xs[second] - xs[first] < spacing:
            xs[second] = xs[first] + spacing

    return ordered
