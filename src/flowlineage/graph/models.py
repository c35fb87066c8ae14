"""🔗 Lineage graph model - Flowfile/event nodes and flow-of-identity links."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..client.models import LineageLinkDTO, LineageNodeDTO


class NodeType(str, Enum):
    """Kind of lineage node."""

    FLOWFILE = "FLOWFILE"
    EVENT = "EVENT"


class EventType(str, Enum):
    """Provenance event types."""

    CREATE = "CREATE"
    RECEIVE = "RECEIVE"
    FETCH = "FETCH"
    SEND = "SEND"
    DOWNLOAD = "DOWNLOAD"
    DROP = "DROP"
    EXPIRE = "EXPIRE"
    FORK = "FORK"
    JOIN = "JOIN"
    CLONE = "CLONE"
    CONTENT_MODIFIED = "CONTENT_MODIFIED"
    ATTRIBUTES_MODIFIED = "ATTRIBUTES_MODIFIED"
    ROUTE = "ROUTE"
    ADDINFO = "ADDINFO"
    REPLAY = "REPLAY"
    SPAWN = "SPAWN"
    UNKNOWN = "UNKNOWN"


# Events whose lineage can be expanded or collapsed in place
EXPANDABLE_EVENT_TYPES = frozenset(
    {
        EventType.SPAWN.value,
        EventType.CLONE.value,
        EventType.FORK.value,
        EventType.JOIN.value,
        EventType.REPLAY.value,
    }
)


@dataclass(frozen=True)
class Node:
    """A flowfile or provenance event in the lineage graph.

    ``event_type`` stays a plain string so event types the backend adds
    later survive a round trip.
    """

    id: str
    type: NodeType
    flow_file_uuid: str
    event_type: str | None = None
    parent_uuids: tuple[str, ...] = field(default_factory=tuple)
    child_uuids: tuple[str, ...] = field(default_factory=tuple)
    timestamp: str | None = None
    millis: int = 0
    cluster_node_identifier: str | None = None

    @property
    def is_event(self) -> bool:
        return self.type == NodeType.EVENT

    @property
    def is_expandable(self) -> bool:
        """Whether the event can be expanded or collapsed."""
        return self.is_event and self.event_type in EXPANDABLE_EVENT_TYPES

    @classmethod
    def from_dto(cls, dto: LineageNodeDTO) -> "Node":
        """Create from a wire node."""
        return cls(
            id=dto.id,
            type=NodeType(dto.type.upper()),
            flow_file_uuid=dto.flow_file_uuid,
            event_type=dto.event_type,
            parent_uuids=tuple(dto.parent_uuids),
            child_uuids=tuple(dto.child_uuids),
            timestamp=dto.timestamp,
            millis=dto.millis,
            cluster_node_identifier=dto.cluster_node_identifier,
        )


@dataclass(frozen=True)
class Link:
    """A directed edge for one flowfile identity.

    Endpoints are node ids into the owning graph, never node objects.
    """

    id: str
    source_id: str
    target_id: str
    flow_file_uuid: str
    millis: int = 0

    @classmethod
    def create(
        cls,
        source_id: str,
        target_id: str,
        flow_file_uuid: str,
        millis: int = 0,
    ) -> "Link":
        """Create a link with its synthetic ``source-target`` id."""
        return cls(
            id=f"{source_id}-{target_id}",
            source_id=source_id,
            target_id=target_id,
            flow_file_uuid=flow_file_uuid,
            millis=millis,
        )

    @classmethod
    def from_dto(cls, dto: LineageLinkDTO) -> "Link":
        """Create from a wire link."""
        return cls.create(dto.source_id, dto.target_id, dto.flow_file_uuid, dto.millis)
