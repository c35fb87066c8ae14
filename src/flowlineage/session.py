"""🧭 Lineage Session - Expand, collapse and lay out one lineage view.

A session owns the visible graph of one lineage view:
- show_lineage() loads the full lineage of a flowfile
- expand_parents()/expand_children() merge more lineage around an event
- collapse() hides what an event fanned out to (or in from)

After every change the layout is recomputed and handed to ``on_layout``.
Failures are reported through the notifier and leave the graph as it was.

Example:
    async with ProvenanceClient.from_settings() as client:
        session = LineageSession(client, on_layout=render)
        await session.show_lineage("a1b2c3", event_id="42")
        await session.expand_children("57")
        await session.collapse("57")
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from .client.models import LineageRequest, ProvenanceEventDTO
from .client.provenance import ProvenanceClient
from .config import LineageConfig
from .errors import ComputationError, EmptyResultError, TransportError
from .graph.collapse import CollapseResult, collapse
from .graph.store import LineageGraph
from .layout.engine import LineageLayout, compute_layout
from .layout.timeline import TimelineWindow
from .query.lifecycle import (
    LineageQuery,
    LineageQueryManager,
    ProgressCallback,
    QueryState,
)

logger = logging.getLogger(__name__)

EMPTY_RESULT_MESSAGE = (
    "The lineage search has completed successfully but no results were found. "
    "The events may have aged off."
)


class LineageAction(str, Enum):
    """Context actions offered for a node."""

    VIEW_DETAILS = "view_details"
    FIND_PARENTS = "find_parents"
    EXPAND = "expand"
    COLLAPSE = "collapse"


class Notifier(Protocol):
    """Where user-visible messages go."""

    def info(self, message: str) -> None: ...

    def error(self, messages: list[str]) -> None: ...


class LoggingNotifier:
    """Notifier that writes messages to the log."""

    def info(self, message: str) -> None:
        logger.info(message)

    def error(self, messages: list[str]) -> None:
        for message in messages:
            logger.error(message)


LayoutCallback = Callable[[LineageLayout], None]


class LineageSession:
    """One lineage view: graph, layout, timeline and running queries."""

    def __init__(
        self,
        client: ProvenanceClient,
        config: LineageConfig | None = None,
        graph: LineageGraph | None = None,
        on_layout: LayoutCallback | None = None,
        notifier: Notifier | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self.client = client
        self.config = config or LineageConfig()
        self.graph = graph if graph is not None else LineageGraph()
        self.notifier = notifier or LoggingNotifier()
        self.queries = LineageQueryManager(
            client, self.config.polling, on_progress=on_progress
        )
        self._on_layout = on_layout

        self.selected_event_id: str | None = None
        self.cluster_node_id: str | None = None

        self.layout = compute_layout(self.graph, self.config.layout)
        self.timeline = TimelineWindow.from_graph(
            self.graph, self.config.timeline.tick_count
        )

    # =========================================================================
    # Expand
    # =========================================================================

    async def show_lineage(
        self,
        flow_file_uuid: str,
        event_id: str | None = None,
        cluster_node_id: str | None = None,
    ) -> LineageQuery:
        """Load the full lineage of a flowfile.

        Args:
            flow_file_uuid: Flowfile to trace
            event_id: Event to mark as selected
            cluster_node_id: Cluster node where the flowfile originated
        """
        self.selected_event_id = event_id
        self.cluster_node_id = cluster_node_id
        return await self._expand(
            LineageRequest.for_flowfile(flow_file_uuid, cluster_node_id)
        )

    async def expand_parents(self, event_id: str) -> LineageQuery:
        """Merge in the parents of an event."""
        return await self._expand(
            LineageRequest.for_parents(event_id, self.cluster_node_id)
        )

    async def expand_children(self, event_id: str) -> LineageQuery:
        """Merge in the children of an event."""
        return await self._expand(
            LineageRequest.for_children(event_id, self.cluster_node_id)
        )

    def cancel(self) -> bool:
        """Cancel the running lineage query, if any."""
        return self.queries.cancel()

    async def _expand(self, request: LineageRequest) -> LineageQuery:
        query = await self.queries.run(request)

        if query.state == QueryState.FINISHED:
            if query.is_empty:
                self.notifier.info(str(EmptyResultError(EMPTY_RESULT_MESSAGE)))
            else:
                self.graph.merge_results(query.results)
                self.refresh()
        elif query.state == QueryState.ERRORED:
            if isinstance(query.error, ComputationError):
                self.notifier.error(query.error.errors)
            else:
                self.notifier.error([f"Unable to compute the lineage: {query.error}"])

        return query

    # =========================================================================
    # Collapse
    # =========================================================================

    async def event_details(self, event_id: str) -> ProvenanceEventDTO:
        """Look up the details of an event."""
        return await self.client.get_event(event_id, self.cluster_node_id)

    async def collapse(self, event_id: str) -> CollapseResult | None:
        """Hide the lineage an event fanned out to (or in from).

        The event selected in show_lineage() is never collapsed away.

        Returns:
            CollapseResult, or None when the event details could not be loaded
        """
        try:
            event = await self.event_details(event_id)
        except TransportError as e:
            self.notifier.error([f"Unable to load event {event_id}: {e}"])
            return None

        keep = [self.selected_event_id] if self.selected_event_id else []
        result = collapse(self.graph, event_id, event, keep=keep)
        self.refresh()
        return result

    # =========================================================================
    # Layout
    # =========================================================================

    def refresh(self) -> LineageLayout:
        """Recompute layout and timeline and publish the layout."""
        self.layout = compute_layout(self.graph, self.config.layout)
        self.timeline = TimelineWindow.from_graph(
            self.graph, self.config.timeline.tick_count
        )
        if self._on_layout is not None:
            self._on_layout(self.layout)
        return self.layout

    def actions_for(self, node_id: str) -> list[LineageAction]:
        """Context actions available for a node."""
        node = self.graph.node(node_id)
        if node is None or not node.is_event:
            return []

        actions = [LineageAction.VIEW_DETAILS]
        if node.is_expandable:
            actions += [
                LineageAction.FIND_PARENTS,
                LineageAction.EXPAND,
                LineageAction.COLLAPSE,
            ]
        return actions
