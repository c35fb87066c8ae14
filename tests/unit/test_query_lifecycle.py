"""🧪 Tests for the lineage query lifecycle."""

import asyncio

import pytest
from lineage_factories import FakeLineageBackend, event, lineage_status, link

from flowlineage.client import LineageRequest
from flowlineage.config import PollingConfig
from flowlineage.errors import ComputationError, TransportError
from flowlineage.query import LineageQueryManager, QueryState

pytestmark = pytest.mark.asyncio


@pytest.fixture
def slow_polling():
    """Polling config whose first wait outlasts any test."""
    return PollingConfig(initial_delay=30.0, max_delay=30.0)


async def wait_for_state(manager, state):
    while manager.current is None or manager.current.state != state:
        await asyncio.sleep(0)


class TestCompletion:
    """Test queries that run to completion."""

    async def test_poll_until_finished(self, fast_polling):
        a = event("A", "abc", millis=50)
        b = event("B", "abc", millis=100)
        backend = FakeLineageBackend(
            [
                lineage_status(percent=40),
                lineage_status(
                    percent=100,
                    finished=True,
                    nodes=[a, b],
                    links=[link("A", "B", "abc", 100)],
                ),
            ]
        )
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.FINISHED
        assert [n.id for n in query.results.nodes] == ["A", "B"]
        assert len(query.results.links) == 1
        assert query.delays == [0.01]
        assert query.polls == 1
        assert len(backend.calls("GET")) == 1
        assert len(backend.calls("DELETE")) == 1
        assert manager.current is None

    async def test_submission_body(self, fast_polling):
        backend = FakeLineageBackend()
        manager = LineageQueryManager(backend.client(), fast_polling)

        await manager.run(LineageRequest.for_flowfile("abc"))

        assert backend.posted_body() == {"lineageRequestType": "FLOWFILE", "uuid": "abc"}

    async def test_finished_on_submit_needs_no_poll(self, fast_polling):
        backend = FakeLineageBackend()
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_children("42"))

        assert query.state == QueryState.FINISHED
        assert query.delays == []
        assert backend.calls("GET") == []
        assert len(backend.calls("DELETE")) == 1

    async def test_empty_result_is_still_finished(self, fast_polling):
        backend = FakeLineageBackend()
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.FINISHED
        assert query.is_empty

    async def test_delays_are_non_decreasing_and_capped(self, fast_polling):
        statuses = [lineage_status(percent=p) for p in (0, 10, 20, 30, 40, 50)]
        backend = FakeLineageBackend(statuses + [lineage_status(percent=100, finished=True)])
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.FINISHED
        assert query.delays == pytest.approx([0.01, 0.02, 0.04, 0.04, 0.04, 0.04])
        assert query.delays == sorted(query.delays)
        assert max(query.delays) <= fast_polling.max_delay

    async def test_progress_is_reported(self, fast_polling):
        backend = FakeLineageBackend(
            [lineage_status(percent=40), lineage_status(percent=100, finished=True)]
        )
        seen = []
        manager = LineageQueryManager(
            backend.client(), fast_polling, on_progress=lambda q: seen.append(q.percent_completed)
        )

        await manager.run(LineageRequest.for_flowfile("abc"))

        assert seen == [40, 100]

    async def test_cluster_node_is_forwarded(self, fast_polling):
        backend = FakeLineageBackend(
            [lineage_status(percent=0), lineage_status(percent=100, finished=True)]
        )
        manager = LineageQueryManager(backend.client(), fast_polling)

        await manager.run(LineageRequest.for_flowfile("abc", cluster_node_id="node-1"))

        assert backend.posted_body()["clusterNodeId"] == "node-1"
        assert backend.calls("GET")[0].url.params["clusterNodeId"] == "node-1"
        assert backend.calls("DELETE")[0].url.params["clusterNodeId"] == "node-1"


class TestFailures:
    """Test queries that end in ERRORED."""

    async def test_computation_errors(self, fast_polling):
        backend = FakeLineageBackend(
            [lineage_status(percent=0), lineage_status(percent=50, errors=["boom"])]
        )
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.ERRORED
        assert isinstance(query.error, ComputationError)
        assert query.error.errors == ["boom"]
        assert len(backend.calls("DELETE")) == 1

    async def test_submit_failure_has_nothing_to_clean_up(self, fast_polling):
        backend = FakeLineageBackend(fail_on={"POST"})
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.ERRORED
        assert isinstance(query.error, TransportError)
        assert backend.calls("DELETE") == []

    async def test_poll_failure_is_not_retried(self, fast_polling):
        backend = FakeLineageBackend([lineage_status(percent=0)], fail_on={"GET"})
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.ERRORED
        assert isinstance(query.error, TransportError)
        assert len(backend.calls("GET")) == 1
        assert len(backend.calls("DELETE")) == 1

    async def test_malformed_poll_body_is_a_transport_error(self, fast_polling):
        backend = FakeLineageBackend([lineage_status(percent=0), lineage_status(percent=150)])
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.ERRORED
        assert isinstance(query.error, TransportError)
        assert len(backend.calls("DELETE")) == 1
        assert manager.current is None

    async def test_malformed_submit_body_is_a_transport_error(self, fast_polling):
        backend = FakeLineageBackend([lineage_status(percent=150)])
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.ERRORED
        assert isinstance(query.error, TransportError)
        assert backend.calls("DELETE") == []

    async def test_cleanup_failure_does_not_change_outcome(self, fast_polling):
        backend = FakeLineageBackend(fail_on={"DELETE"})
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.FINISHED
        assert query.cleaned_up


class TestCancellation:
    """Test user cancels racing with polls."""

    async def test_cancel_during_delay_suppresses_poll(self, slow_polling):
        backend = FakeLineageBackend([lineage_status(percent=10)])
        manager = LineageQueryManager(backend.client(), slow_polling)

        task = asyncio.create_task(manager.run(LineageRequest.for_flowfile("abc")))
        await asyncio.wait_for(wait_for_state(manager, QueryState.POLLING), timeout=5)

        assert manager.cancel() is True
        query = await asyncio.wait_for(task, timeout=5)

        assert query.state == QueryState.CANCELLED
        assert backend.calls("GET") == []
        assert len(backend.calls("DELETE")) == 1

    async def test_response_arriving_after_cancel_is_ignored(self, fast_polling):
        backend = FakeLineageBackend(
            [
                lineage_status(percent=10),
                lineage_status(
                    percent=100, finished=True, nodes=[event("A", "abc")]
                ),
            ]
        )
        manager = LineageQueryManager(backend.client(), fast_polling)

        async def cancel_in_flight(_):
            manager.cancel()

        backend.before_poll = cancel_in_flight

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.CANCELLED
        assert not query.finished
        assert query.results.nodes == []
        assert len(backend.calls("GET")) == 1
        assert len(backend.calls("DELETE")) == 1

    async def test_cancel_during_failed_submit(self, fast_polling, monkeypatch):
        backend = FakeLineageBackend()
        client = backend.client()
        manager = LineageQueryManager(client, fast_polling)

        async def cancel_then_fail(request):
            manager.cancel()
            raise TransportError("connection reset")

        monkeypatch.setattr(client, "submit_lineage", cancel_then_fail)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert query.state == QueryState.CANCELLED
        assert query.error is None
        assert backend.calls("DELETE") == []

    async def test_cancelled_task_still_cleans_up(self, slow_polling):
        backend = FakeLineageBackend([lineage_status(percent=10)])
        manager = LineageQueryManager(backend.client(), slow_polling)

        task = asyncio.create_task(manager.run(LineageRequest.for_flowfile("abc")))
        await asyncio.wait_for(wait_for_state(manager, QueryState.POLLING), timeout=5)
        query = manager.current

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert query.state == QueryState.CANCELLED
        assert backend.calls("GET") == []
        assert len(backend.calls("DELETE")) == 1
        assert manager.current is None

    async def test_cancel_without_running_query(self, fast_polling):
        manager = LineageQueryManager(FakeLineageBackend().client(), fast_polling)

        assert manager.cancel() is False
        assert manager.cancel(token=99) is False

    async def test_cancel_after_finish_is_a_no_op(self, fast_polling):
        backend = FakeLineageBackend()
        manager = LineageQueryManager(backend.client(), fast_polling)

        query = await manager.run(LineageRequest.for_flowfile("abc"))

        assert manager.cancel(query.token) is False
        assert query.state == QueryState.FINISHED
