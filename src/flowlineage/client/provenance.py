"""🛰️ Provenance REST Client - Lineage computations and event details.

The backend computes lineage out-of-band:
- POST a lineage request, receive a status handle (uri)
- GET the uri until the status reports finished
- DELETE the uri once the results are no longer needed
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from ..config import Settings, get_settings
from ..errors import TransportError
from .models import LineageDTO, LineageRequest, ProvenanceEventDTO

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ProvenanceClient:
    """Async client for the provenance lineage API.

    Example:
        async with ProvenanceClient("http://localhost:8080/nifi-api") as client:
            lineage = await client.submit_lineage(
                LineageRequest.for_flowfile("abc")
            )
            while not lineage.finished:
                lineage = await client.get_lineage(lineage)
            await client.cancel_lineage(lineage)
    """

    def __init__(
        self,
        base_url: str,
        lineage_path: str = "controller/provenance/lineage",
        events_path: str = "controller/provenance/events",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: API root (e.g., "http://localhost:8080/nifi-api")
            lineage_path: Path of the lineage collection under the root
            events_path: Path of the provenance events under the root
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.lineage_path = lineage_path.strip("/")
        self.events_path = events_path.strip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ProvenanceClient":
        """Build a client from environment settings."""
        settings = settings or get_settings()
        return cls(
            settings.api_base_url,
            lineage_path=settings.lineage_path,
            events_path=settings.events_path,
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "ProvenanceClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs,
    ) -> dict[str, Any] | None:
        """Make an HTTP request to the lineage API.

        Args:
            method: HTTP method
            url: Absolute URL
            **kwargs: Additional httpx request arguments

        Returns:
            JSON response or None for empty bodies

        Raises:
            TransportError: On network failures and API errors
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 400:
            error_msg = response.text
            try:
                error_data = response.json()
                if isinstance(error_data, dict):
                    error_msg = error_data.get("message", error_msg)
            except ValueError:
                pass

            raise TransportError(
                f"Lineage API error ({response.status_code}): {error_msg}",
                status_code=response.status_code,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"{method} {url} returned invalid JSON") from e

    @staticmethod
    def _cluster_params(cluster_node_id: str | None) -> dict[str, str] | None:
        if cluster_node_id is None:
            return None
        return {"clusterNodeId": cluster_node_id}

    @staticmethod
    def _parse(data: dict[str, Any] | None, key: str, model: type[ModelT]) -> ModelT:
        """Unwrap the response envelope and validate its payload.

        Raises:
            TransportError: If the envelope or the payload is malformed
        """
        if not data or key not in data:
            raise TransportError(f"Response is missing '{key}'")
        try:
            return model.model_validate(data[key])
        except ValidationError as e:
            raise TransportError(f"Invalid '{key}' in response: {e}") from e

    # =========================================================================
    # Lineage Operations
    # =========================================================================

    async def submit_lineage(self, request: LineageRequest) -> LineageDTO:
        """Submit a lineage computation.

        Args:
            request: What to compute the lineage of

        Returns:
            Initial LineageDTO carrying the status uri

        Raises:
            TransportError: If the submission fails
        """
        url = f"{self.base_url}/{self.lineage_path}"
        logger.debug(
            "Submitting %s lineage request", request.lineage_request_type.value
        )
        data = await self._request("POST", url, json=request.to_payload())
        return self._parse(data, "lineage", LineageDTO)

    async def get_lineage(
        self, lineage: LineageDTO, cluster_node_id: str | None = None
    ) -> LineageDTO:
        """Fetch the current status of a lineage computation.

        Args:
            lineage: Status returned by a previous call
            cluster_node_id: Cluster node routing hint (default: the lineage's)

        Returns:
            Updated LineageDTO
        """
        cluster_node_id = cluster_node_id or lineage.cluster_node_id
        data = await self._request(
            "GET", lineage.uri, params=self._cluster_params(cluster_node_id)
        )
        return self._parse(data, "lineage", LineageDTO)

    async def cancel_lineage(
        self, lineage: LineageDTO, cluster_node_id: str | None = None
    ) -> None:
        """Delete a lineage computation on the backend.

        The response body is ignored.
        """
        cluster_node_id = cluster_node_id or lineage.cluster_node_id
        await self._request(
            "DELETE", lineage.uri, params=self._cluster_params(cluster_node_id)
        )

    # =========================================================================
    # Event Operations
    # =========================================================================

    async def get_event(
        self, event_id: str, cluster_node_id: str | None = None
    ) -> ProvenanceEventDTO:
        """Look up the details of a provenance event.

        Args:
            event_id: Id of the event
            cluster_node_id: Cluster node where the event originated

        Returns:
            ProvenanceEventDTO
        """
        url = f"{self.base_url}/{self.events_path}/{quote(str(event_id), safe='')}"
        data = await self._request(
            "GET", url, params=self._cluster_params(cluster_node_id)
        )
        return self._parse(data, "provenanceEvent", ProvenanceEventDTO)
