"""🔄 Lineage Query Lifecycle - Submit, poll with backoff, cancel.

A lineage is computed by the backend out-of-band. One lifecycle drives a
single request through:

    IDLE -> SUBMITTED -> POLLING (after each delay) -> FINISHED | ERRORED | CANCELLED

Each lifecycle is identified by a token. A user cancel retires the token;
every response re-checks its token after the await returns and is ignored
when the token is no longer live. A pending backoff wait is interrupted by
the cancel, so no further poll is sent. Whatever the outcome, the backend
resource is deleted once the handle is known.

Example:
    manager = LineageQueryManager(client)
    query = await manager.run(LineageRequest.for_flowfile("abc"))

    if query.state is QueryState.FINISHED:
        graph.merge_results(query.results)
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from ..client.models import LineageDTO, LineageRequest, LineageResultsDTO
from ..client.provenance import ProvenanceClient
from ..config import PollingConfig
from ..errors import ComputationError, LineageError, TransportError
from .backoff import BackoffPolicy

logger = logging.getLogger(__name__)


class QueryState(str, Enum):
    """Lifecycle states of a lineage query."""

    IDLE = "IDLE"
    SUBMITTED = "SUBMITTED"
    POLLING = "POLLING"
    FINISHED = "FINISHED"
    ERRORED = "ERRORED"
    CANCELLED = "CANCELLED"


TERMINAL_STATES = frozenset({QueryState.FINISHED, QueryState.ERRORED, QueryState.CANCELLED})


@dataclass
class LineageQuery:
    """One outstanding lineage request and what is known about it."""

    request: LineageRequest
    token: int
    state: QueryState = QueryState.IDLE

    # Latest status from the backend
    uri: str | None = None
    percent_completed: int = 0
    finished: bool = False
    errors: list[str] = field(default_factory=list)
    results: LineageResultsDTO | None = None
    cluster_node_id: str | None = None

    # Bookkeeping
    handle: LineageDTO | None = None
    error: LineageError | None = None
    delays: list[float] = field(default_factory=list)
    polls: int = 0
    cleaned_up: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_empty(self) -> bool:
        """Finished without any nodes (the events may have aged off)."""
        return self.state == QueryState.FINISHED and not (
            self.results and self.results.nodes
        )

    def apply(self, lineage: LineageDTO) -> None:
        """Take over the status fields of a backend response."""
        self.uri = lineage.uri
        self.percent_completed = lineage.percent_completed
        self.finished = lineage.finished
        self.errors = list(lineage.results.errors)
        self.results = lineage.results
        self.cluster_node_id = lineage.cluster_node_id or self.cluster_node_id


ProgressCallback = Callable[[LineageQuery], None]


class LineageQueryManager:
    """Run lineage queries against the backend.

    Independent queries may run side by side; ``cancel()`` without a token
    cancels the most recently started one.
    """

    def __init__(
        self,
        client: ProvenanceClient,
        polling: PollingConfig | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        self._client = client
        self._backoff = BackoffPolicy.from_config(polling or PollingConfig())
        self._on_progress = on_progress

        self._tokens = itertools.count(1)
        self._live: dict[int, LineageQuery] = {}
        self._cancel_signals: dict[int, asyncio.Event] = {}
        self._current: int | None = None

    @property
    def current(self) -> LineageQuery | None:
        """The most recently started query, while it is running."""
        if self._current is None:
            return None
        return self._live.get(self._current)

    @property
    def backoff(self) -> BackoffPolicy:
        return self._backoff

    def is_live(self, token: int) -> bool:
        """Whether responses for this token should still be acted on."""
        query = self._live.get(token)
        return query is not None and query.state != QueryState.CANCELLED

    def cancel(self, token: int | None = None) -> bool:
        """Cancel a running query.

        Any scheduled poll is suppressed and an in-flight response is ignored
        when it arrives. The backend resource is deleted by the running
        lifecycle itself.

        Args:
            token: Query to cancel (default: the current one)

        Returns:
            True if a running query was cancelled
        """
        token = self._current if token is None else token
        query = self._live.get(token) if token is not None else None
        if query is None or query.is_terminal:
            return False

        query.state = QueryState.CANCELLED
        self._cancel_signals[token].set()
        logger.info("Lineage query %d cancelled", token)
        return True

    async def run(self, request: LineageRequest) -> LineageQuery:
        """Drive a lineage request to a terminal state.

        Transport failures end the query as ERRORED; they are never retried.
        If the running task is cancelled, the backend resource is still
        deleted before the cancellation propagates.

        Returns:
            The LineageQuery in FINISHED, ERRORED or CANCELLED state
        """
        token = next(self._tokens)
        query = LineageQuery(
            request=request, token=token, cluster_node_id=request.cluster_node_id
        )
        cancelled = asyncio.Event()

        self._live[token] = query
        self._cancel_signals[token] = cancelled
        self._current = token

        try:
            return await self._drive(query, cancelled)
        except asyncio.CancelledError:
            # the task was cancelled from outside
            if not query.is_terminal:
                query.state = QueryState.CANCELLED
            await self._cleanup(query)
            raise
        finally:
            self._live.pop(token, None)
            self._cancel_signals.pop(token, None)
            if self._current == token:
                self._current = None

    async def _drive(self, query: LineageQuery, cancelled: asyncio.Event) -> LineageQuery:
        query.state = QueryState.SUBMITTED
        logger.info(
            "Lineage query %d submitted (%s)",
            query.token,
            query.request.lineage_request_type.value,
        )

        try:
            lineage = await self._client.submit_lineage(query.request)
        except TransportError as e:
            if not self.is_live(query.token):
                # cancelled while the submission was in flight
                query.state = QueryState.CANCELLED
                return query
            return self._fail(query, e)

        delays = self._backoff.delays()
        while True:
            query.handle = lineage

            # the user may have cancelled while the response was in flight
            if not self.is_live(query.token):
                return await self._finish_cancelled(query)

            query.apply(lineage)

            if query.errors:
                self._fail(query, ComputationError(query.errors))
                await self._cleanup(query)
                return query

            self._report_progress(query)

            if query.finished:
                query.state = QueryState.FINISHED
                logger.info(
                    "Lineage query %d finished with %d nodes",
                    query.token,
                    len(query.results.nodes) if query.results else 0,
                )
                await self._cleanup(query)
                return query

            query.state = QueryState.POLLING
            delay = next(delays)
            query.delays.append(delay)

            if await self._wait(cancelled, delay):
                return await self._finish_cancelled(query)

            try:
                lineage = await self._client.get_lineage(
                    query.handle, cluster_node_id=query.cluster_node_id
                )
            except TransportError as e:
                if not self.is_live(query.token):
                    return await self._finish_cancelled(query)
                self._fail(query, e)
                await self._cleanup(query)
                return query
            query.polls += 1

    @staticmethod
    async def _wait(cancelled: asyncio.Event, delay: float) -> bool:
        """Sleep for ``delay`` seconds; True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(cancelled.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    def _report_progress(self, query: LineageQuery) -> None:
        logger.debug(
            "Lineage query %d at %d%%", query.token, query.percent_completed
        )
        if self._on_progress is not None:
            self._on_progress(query)

    def _fail(self, query: LineageQuery, error: LineageError) -> LineageQuery:
        query.state = QueryState.ERRORED
        query.error = error
        logger.warning("Lineage query %d failed: %s", query.token, error)
        return query

    async def _finish_cancelled(self, query: LineageQuery) -> LineageQuery:
        query.state = QueryState.CANCELLED
        await self._cleanup(query)
        return query

    async def _cleanup(self, query: LineageQuery) -> None:
        """Best-effort delete of the backend lineage resource."""
        if query.handle is None or query.cleaned_up:
            return

        query.cleaned_up = True
        try:
            await self._client.cancel_lineage(
                query.handle, cluster_node_id=query.cluster_node_id
            )
        except TransportError as e:
            logger.warning("Could not delete lineage %s: %s", query.handle.uri, e)
