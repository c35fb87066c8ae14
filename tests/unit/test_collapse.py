"""🧪 Tests for collapsing an event's lineage."""

from lineage_factories import build_graph, event, flowfile, link

from flowlineage.client.models import ProvenanceEventDTO
from flowlineage.graph import collapse, is_fan_in, plan_collapse


def details(node):
    """Event details as the events endpoint would return them."""
    return ProvenanceEventDTO(
        id=node.id,
        event_type=node.event_type,
        flow_file_uuid=node.flow_file_uuid,
        parent_uuids=list(node.parent_uuids),
        child_uuids=list(node.child_uuids),
    )


def node_ids(graph):
    return sorted(n.id for n in graph.nodes())


def link_ids(graph):
    return sorted(lk.id for lk in graph.links())


class TestFanOut:
    """Test collapsing a fan-out event such as SPAWN."""

    def test_spawn_removes_children_but_keeps_event(self, spawn_lineage):
        graph = build_graph(*spawn_lineage)
        spawn = graph.node("2")

        result = collapse(graph, "2", details(spawn))

        assert not result.plan.fan_in
        assert node_ids(graph) == ["1", "2", "p"]
        assert link_ids(graph) == ["1-2", "p-1"]
        assert sorted(n.id for n in result.removed_nodes) == ["3", "4", "c1", "c2"]
        assert sorted(lk.id for lk in result.removed_links) == [
            "2-c1",
            "2-c2",
            "c1-3",
            "c2-4",
        ]

    def test_direct_descendant_of_origin_is_kept(self, spawn_lineage):
        nodes, links = spawn_lineage
        graph = build_graph(nodes + [event("5", "c1", "CLONE", parents=["p"])], links)

        collapse(graph, "2", details(graph.node("2")))

        assert "5" in graph
        assert "c1" not in graph

    def test_identities_propagate_to_fixed_point(self, spawn_lineage):
        nodes, links = spawn_lineage
        graph = build_graph(
            nodes + [flowfile("g"), event("6", "g", "DROP", parents=["g"])],
            links + [link("3", "g", "g", 400), link("g", "6", "g", 500)],
        )

        plan = plan_collapse(graph, "2", details(graph.node("2")))

        assert "g" in plan.uuids
        assert {"g", "6"} <= set(plan.node_ids)
        assert {"3-g", "g-6"} <= set(plan.link_ids)

    def test_keep_node_survives(self, spawn_lineage):
        graph = build_graph(*spawn_lineage)

        result = collapse(graph, "2", details(graph.node("2")), keep=["3"])

        assert "3" in graph
        assert "c1" not in graph
        assert "3" not in result.plan.node_ids
        assert "c1-3" not in link_ids(graph)

    def test_plan_does_not_modify_graph(self, spawn_lineage):
        graph = build_graph(*spawn_lineage)

        plan = plan_collapse(graph, "2", details(graph.node("2")))

        assert not plan.is_empty
        assert len(graph) == 7

    def test_event_without_children_collapses_nothing(self, spawn_lineage):
        graph = build_graph(*spawn_lineage)

        result = collapse(graph, "3", details(graph.node("3")))

        assert result.plan.is_empty
        assert len(graph) == 7


class TestFanIn:
    """Test collapsing a merge event such as JOIN."""

    def test_join_is_fan_in(self, join_lineage):
        graph = build_graph(*join_lineage)

        assert is_fan_in(details(graph.node("12")))
        assert not is_fan_in(details(graph.node("10")))

    def test_join_keeps_selected_event(self, join_lineage):
        graph = build_graph(*join_lineage)

        result = collapse(graph, "12", details(graph.node("12")))

        assert result.plan.fan_in
        assert node_ids(graph) == ["10", "11", "12"]
        assert link_ids(graph) == ["10-12", "11-12"]
