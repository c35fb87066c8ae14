"""📐 Layout - Level positions and the event timeline."""

from .engine import LineageLayout, NodePosition, compute_layout
from .timeline import TimelineDelta, TimelineWindow, format_event_time

__all__ = [
    "compute_layout",
    "LineageLayout",
    "NodePosition",
    "TimelineWindow",
    "TimelineDelta",
    "format_event_time",
]
