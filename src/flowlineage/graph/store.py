"""🗂️ Lineage Graph Store - The visible nodes and links.

The store is the single mutable structure of a lineage view. It is only
changed through merge and remove operations; after every mutation batch
it rebuilds its derived caches from scratch:
- incoming/outgoing links per node
- the minimum/maximum event time over all nodes

Example:
    graph = LineageGraph()
    graph.merge_results(lineage.results)

    for root in graph.roots():
        print(root, [link.target_id for link in graph.outgoing(root)])
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from ..client.models import LineageResultsDTO
from ..errors import DanglingReferenceError, DuplicateIdError
from .models import Link, Node

logger = logging.getLogger(__name__)


def _link_order(link: Link) -> tuple[int, str]:
    return (link.millis, link.id)


class LineageGraph:
    """Arena of lineage nodes and links keyed by id."""

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._links: dict[str, Link] = {}

        # Derived caches, rebuilt by _refresh()
        self._incoming: dict[str, list[Link]] = {}
        self._outgoing: dict[str, list[Link]] = {}
        self._min_millis: int | None = None
        self._max_millis: int | None = None
        self._min_timestamp: str | None = None

        self._batch_depth = 0
        self._dirty = False

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    # =========================================================================
    # Mutation
    # =========================================================================

    def merge_nodes(self, nodes: Iterable[Node], strict: bool = False) -> list[Node]:
        """Add nodes that are not in the graph yet.

        A node whose id is already present is left untouched.

        Args:
            nodes: Nodes to merge
            strict: Raise DuplicateIdError instead of skipping duplicates

        Returns:
            The nodes that were actually added
        """
        added = []
        for node in nodes:
            if node.id in self._nodes:
                if strict:
                    raise DuplicateIdError(f"Node '{node.id}' already exists")
                logger.debug("Skipping duplicate node %s", node.id)
                continue
            self._nodes[node.id] = node
            added.append(node)

        if added:
            self._mark_dirty()
        return added

    def merge_links(self, links: Iterable[Link], strict: bool = False) -> list[Link]:
        """Add links whose endpoints are both in the graph.

        Duplicate links and links to unknown nodes are skipped.

        Args:
            links: Links to merge
            strict: Raise instead of skipping

        Returns:
            The links that were actually added
        """
        added = []
        for link in links:
            if link.id in self._links:
                if strict:
                    raise DuplicateIdError(f"Link '{link.id}' already exists")
                logger.debug("Skipping duplicate link %s", link.id)
                continue

            if link.source_id not in self._nodes or link.target_id not in self._nodes:
                if strict:
                    raise DanglingReferenceError(
                        f"Link '{link.id}' references an unknown node"
                    )
                logger.debug("Skipping dangling link %s", link.id)
                continue

            self._links[link.id] = link
            added.append(link)

        if added:
            self._mark_dirty()
        return added

    def merge_results(
        self, results: LineageResultsDTO
    ) -> tuple[list[Node], list[Link]]:
        """Merge the nodes and then the links of a lineage result."""
        with self.batch():
            nodes = self.merge_nodes(Node.from_dto(dto) for dto in results.nodes)
            links = self.merge_links(Link.from_dto(dto) for dto in results.links)

        logger.debug("Merged %d nodes and %d links", len(nodes), len(links))
        return nodes, links

    def remove_node(self, node_id: str) -> Node | None:
        """Remove a node together with the links attached to it."""
        node = self._nodes.pop(node_id, None)
        if node is None:
            return None

        for link_id in [
            link.id
            for link in self._links.values()
            if link.source_id == node_id or link.target_id == node_id
        ]:
            del self._links[link_id]

        self._mark_dirty()
        return node

    def remove_link(self, link_id: str) -> Link | None:
        """Remove a single link."""
        link = self._links.pop(link_id, None)
        if link is not None:
            self._mark_dirty()
        return link

    def remove_nodes(self, node_ids: Iterable[str]) -> list[Node]:
        """Remove several nodes in one batch."""
        with self.batch():
            removed = [self.remove_node(node_id) for node_id in node_ids]
        return [node for node in removed if node is not None]

    def remove_links(self, link_ids: Iterable[str]) -> list[Link]:
        """Remove several links in one batch."""
        with self.batch():
            removed = [self.remove_link(link_id) for link_id in link_ids]
        return [link for link in removed if link is not None]

    def clear(self) -> None:
        """Remove everything."""
        self._nodes.clear()
        self._links.clear()
        self._mark_dirty()

    @contextmanager
    def batch(self) -> Iterator["LineageGraph"]:
        """Defer the derived-cache rebuild until the block exits."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._refresh()

    def _mark_dirty(self) -> None:
        self._dirty = True
        if self._batch_depth == 0:
            self._refresh()

    def _refresh(self) -> None:
        """Rebuild adjacency and time bounds from the current node/link set."""
        self._incoming = {node_id: [] for node_id in self._nodes}
        self._outgoing = {node_id: [] for node_id in self._nodes}

        for link in sorted(self._links.values(), key=_link_order):
            self._outgoing[link.source_id].append(link)
            self._incoming[link.target_id].append(link)

        self._min_millis = None
        self._max_millis = None
        self._min_timestamp = None
        for node in self._nodes.values():
            if self._min_millis is None or node.millis < self._min_millis:
                self._min_millis = node.millis
                self._min_timestamp = node.timestamp
            if self._max_millis is None or node.millis > self._max_millis:
                self._max_millis = node.millis

        self._dirty = False

    # =========================================================================
    # Queries
    # =========================================================================

    def nodes(self) -> list[Node]:
        """All nodes."""
        return list(self._nodes.values())

    def links(self) -> list[Link]:
        """All links."""
        return list(self._links.values())

    def node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def link(self, link_id: str) -> Link | None:
        return self._links.get(link_id)

    def incoming(self, node_id: str) -> list[Link]:
        """Links ending at a node, ordered by (millis, id)."""
        return list(self._incoming.get(node_id, ()))

    def outgoing(self, node_id: str) -> list[Link]:
        """Links starting at a node, ordered by (millis, id)."""
        return list(self._outgoing.get(node_id, ()))

    def roots(self) -> list[str]:
        """Ids of nodes without incoming links, sorted."""
        return sorted(
            node_id for node_id, links in self._incoming.items() if not links
        )

    @property
    def min_millis(self) -> int | None:
        return self._min_millis

    @property
    def max_millis(self) -> int | None:
        return self._max_millis

    @property
    def min_timestamp(self) -> str | None:
        """Timestamp of the earliest node."""
        return self._min_timestamp
