"""🛰️ Lineage backend client and wire models."""

from .models import (
    LineageDTO,
    LineageLinkDTO,
    LineageNodeDTO,
    LineageRequest,
    LineageRequestType,
    LineageResultsDTO,
    ProvenanceEventDTO,
)
from .provenance import ProvenanceClient

__all__ = [
    "ProvenanceClient",
    "LineageRequest",
    "LineageRequestType",
    "LineageDTO",
    "LineageResultsDTO",
    "LineageNodeDTO",
    "LineageLinkDTO",
    "ProvenanceEventDTO",
]
