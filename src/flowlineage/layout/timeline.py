"""⏱️ Event Timeline - Replay a lineage graph over event time.

The timeline window spans the earliest to the latest event of the graph.
Sliding it back hides everything newer than the slider value; sliding it
forward shows it again.

Example:
    window = TimelineWindow.from_graph(graph)
    delta = window.slide(graph, window.minimum + window.step * 10)
    print(delta.hidden_nodes)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from ..graph.store import LineageGraph


@dataclass
class TimelineDelta:
    """What became hidden or visible after moving the slider."""

    hidden_nodes: list[str] = field(default_factory=list)
    hidden_links: list[str] = field(default_factory=list)
    shown_nodes: list[str] = field(default_factory=list)
    shown_links: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.hidden_nodes or self.hidden_links or self.shown_nodes or self.shown_links
        )


@dataclass
class TimelineWindow:
    """Slider bounds and current value, in epoch milliseconds."""

    minimum: int
    maximum: int
    step: float
    value: int

    @classmethod
    def from_graph(cls, graph: LineageGraph, tick_count: int = 75) -> "TimelineWindow":
        """Span the event times of a graph, starting fully expanded."""
        minimum = graph.min_millis or 0
        maximum = graph.max_millis if graph.max_millis is not None else minimum
        return cls(
            minimum=minimum,
            maximum=maximum,
            step=(maximum - minimum) / tick_count,
            value=maximum,
        )

    def visible_at(
        self, graph: LineageGraph, value: int | None = None
    ) -> tuple[list[str], list[str]]:
        """Node and link ids with an event time at or before ``value``."""
        value = self.value if value is None else value
        nodes = sorted(node.id for node in graph.nodes() if node.millis <= value)
        links = sorted(link.id for link in graph.links() if link.millis <= value)
        return nodes, links

    def slide(self, graph: LineageGraph, value: int) -> TimelineDelta:
        """Move the slider and report what changes visibility."""
        value = max(self.minimum, min(self.maximum, value))
        previous = self.value
        delta = TimelineDelta()

        if value < previous:
            delta.hidden_nodes = sorted(
                node.id for node in graph.nodes() if value < node.millis <= previous
            )
            delta.hidden_links = sorted(
                link.id for link in graph.links() if value < link.millis <= previous
            )
        elif value > previous:
            delta.shown_nodes = sorted(
                node.id for node in graph.nodes() if previous < node.millis <= value
            )
            delta.shown_links = sorted(
                link.id for link in graph.links() if previous < link.millis <= value
            )

        self.value = value
        return delta


def format_event_time(millis: int, server_offset_ms: int = 0) -> str:
    """Format an event time as the server sees it.

    Args:
        millis: Epoch milliseconds (UTC)
        server_offset_ms: Offset of the server timezone from UTC

    Returns:
        "MM/DD/YYYY HH:MM:SS.mmm"
    """
    moment = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(
        milliseconds=millis + server_offset_ms
    )
    return moment.strftime("%m/%d/%Y %H:%M:%S.") + f"{moment.microsecond // 1000:03d}"
