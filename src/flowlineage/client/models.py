"""📨 Wire models for the provenance lineage API.

The backend speaks camelCase JSON; these models accept both the aliases
and the snake_case field names.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class LineageRequestType(str, Enum):
    """Kinds of lineage computation the backend supports."""

    FLOWFILE = "FLOWFILE"
    PARENTS = "PARENTS"
    CHILDREN = "CHILDREN"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _as_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value))
    return value


# Event ids are numeric on the backend but strings everywhere in the graph
IdStr = Annotated[str, BeforeValidator(_as_str)]


class LineageRequest(_WireModel):
    """Body of a lineage submission."""

    lineage_request_type: LineageRequestType
    event_id: IdStr | None = None
    uuid: str | None = None
    cluster_node_id: str | None = None

    @model_validator(mode="after")
    def _check_target(self) -> "LineageRequest":
        if self.lineage_request_type == LineageRequestType.FLOWFILE:
            if not self.uuid:
                raise ValueError("A FLOWFILE lineage request requires a uuid")
        elif not self.event_id:
            raise ValueError(
                f"A {self.lineage_request_type.value} lineage request requires an event id"
            )
        return self

    @classmethod
    def for_flowfile(
        cls, uuid: str, cluster_node_id: str | None = None
    ) -> "LineageRequest":
        """Full lineage of a flowfile."""
        return cls(
            lineage_request_type=LineageRequestType.FLOWFILE,
            uuid=uuid,
            cluster_node_id=cluster_node_id,
        )

    @classmethod
    def for_parents(
        cls, event_id: str, cluster_node_id: str | None = None
    ) -> "LineageRequest":
        """Parents of an event."""
        return cls(
            lineage_request_type=LineageRequestType.PARENTS,
            event_id=event_id,
            cluster_node_id=cluster_node_id,
        )

    @classmethod
    def for_children(
        cls, event_id: str, cluster_node_id: str | None = None
    ) -> "LineageRequest":
        """Children of an event."""
        return cls(
            lineage_request_type=LineageRequestType.CHILDREN,
            event_id=event_id,
            cluster_node_id=cluster_node_id,
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the submit call."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class LineageNodeDTO(_WireModel):
    """A flowfile or event node in lineage results."""

    id: IdStr
    type: str
    event_type: str | None = None
    flow_file_uuid: str
    parent_uuids: list[str] = Field(default_factory=list)
    child_uuids: list[str] = Field(default_factory=list)
    timestamp: str | None = None
    millis: int = 0
    cluster_node_identifier: str | None = None


class LineageLinkDTO(_WireModel):
    """A flow-of-identity edge in lineage results."""

    source_id: IdStr
    target_id: IdStr
    flow_file_uuid: str
    millis: int = 0
    timestamp: str | None = None


class LineageResultsDTO(_WireModel):
    """Nodes, links and errors of a lineage computation."""

    nodes: list[LineageNodeDTO] = Field(default_factory=list)
    links: list[LineageLinkDTO] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class LineageDTO(_WireModel):
    """Status of a lineage computation on the backend."""

    id: IdStr | None = None
    uri: str
    submission_time: datetime | str | None = None
    expiration: datetime | str | None = None
    percent_completed: int = Field(default=0, ge=0, le=100)
    finished: bool = False
    cluster_node_id: str | None = None
    request: dict[str, Any] | None = None
    results: LineageResultsDTO = Field(default_factory=LineageResultsDTO)

    @field_validator("results", mode="before")
    @classmethod
    def _default_results(cls, value: Any) -> Any:
        return {} if value is None else value


class ProvenanceEventDTO(_WireModel):
    """Detail record of a single provenance event."""

    id: IdStr | None = None
    event_id: int | None = None
    event_type: str
    flow_file_uuid: str
    parent_uuids: list[str] = Field(default_factory=list)
    child_uuids: list[str] = Field(default_factory=list)
    event_time: str | None = None
    component_id: str | None = None
    component_name: str | None = None
    cluster_node_id: str | None = None
