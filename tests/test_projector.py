"""Tests for the one-hop link graph projection."""

import asyncio

import pytest

from anchorgraph.core.errors import NotFound, StoreUnavailable
from anchorgraph.core.layout import LayoutBounds
from anchorgraph.core.model import GraphEdge, Position
from anchorgraph.core.projector import CENTER, Projector

POOL = [Position(100, 60), Position(300, 180), Position(500, 420)]


@pytest.fixture
def star(stores):
    """N0 linked to N1 (via A0-A1) and N2 (via A0b-A2)."""
    for node_id in ("N0", "N1", "N2"):
        stores.add_node(node_id)
    stores.add_anchor("A0", "N0")
    stores.add_anchor("A0b", "N0")
    stores.add_anchor("A1", "N1")
    stores.add_anchor("A2", "N2")
    stores.add_link("L1", "A0", "A1")
    stores.add_link("L2", "A0b", "A2")
    return stores


def project(stores, node_id, pool=POOL):
    projector = Projector(stores.nodes, stores.anchors, stores.links, pool=list(pool))
    return asyncio.run(projector.project_id(node_id))


def test_focal_and_neighbours(star):
    projection = project(star, "N0")

    assert [(n.id, n.label, n.position) for n in projection.nodes] == [
        ("N0", "N0", CENTER),
        ("N1", "N1", POOL[0]),
        ("N2", "N2", POOL[1]),
    ]
    assert projection.edges == [GraphEdge("L1", "N0", "N1"), GraphEdge("L2", "N0", "N2")]


def test_projection_is_deterministic_for_fixed_pool(star):
    assert project(star, "N0") == project(star, "N0")


def test_node_reached_twice_appears_once(stores):
    stores.add_node("N0")
    stores.add_node("N1")
    stores.add_anchor("A0", "N0")
    stores.add_anchor("A0b", "N0")
    stores.add_anchor("B1", "N1")
    stores.add_anchor("B2", "N1")
    stores.add_link("L1", "A0", "B1")
    stores.add_link("L2", "A0b", "B2")

    projection = project(stores, "N0")

    assert [n.id for n in projection.nodes] == ["N0", "N1"]
    assert {e.id for e in projection.edges} == {"L1", "L2"}


def test_link_between_two_focal_anchors(stores):
    stores.add_node("N0")
    stores.add_anchor("A0", "N0")
    stores.add_anchor("A1", "N0")
    stores.add_link("L1", "A0", "A1")

    projection = project(stores, "N0")

    assert projection.node_ids() == {"N0"}
    # Reached from both anchors, emitted once
    assert projection.edges == [GraphEdge("L1", "N0", "N0")]


def test_isolated_node(stores):
    stores.add_node("N0", title="Lonely")

    projection = project(stores, "N0")

    assert projection.to_dict() == {
        "nodes": [{"id": "N0", "label": "Lonely", "position": {"x": 250, "y": 25}}],
        "edges": [],
    }


def test_focal_anchor_failure_yields_focal_only(star):
    star.anchors.fail("get_by_node", "N0")

    projection = project(star, "N0")

    assert projection.node_ids() == {"N0"}
    assert projection.edges == []


def test_link_lookup_failure_skips_that_anchor(star):
    star.links.fail("get_by_anchor", "A0b")

    projection = project(star, "N0")

    assert projection.node_ids() == {"N0", "N1"}
    assert [e.id for e in projection.edges] == ["L1"]


def test_endpoint_failure_drops_edge(star):
    star.anchors.fail("get", "A2")

    projection = project(star, "N0")

    assert projection.node_ids() == {"N0", "N1"}
    assert [e.id for e in projection.edges] == ["L1"]


def test_node_failure_drops_node_and_its_edges(star):
    star.nodes.fail("get", "N1")

    projection = project(star, "N0")

    assert [n.id for n in projection.nodes] == ["N0", "N2"]
    assert [e.id for e in projection.edges] == ["L2"]
    # Positions are handed out to nodes that made it
    assert projection.nodes[1].position == POOL[0]


def test_every_edge_endpoint_is_a_node(star):
    star.nodes.fail("get", "N2")
    projection = project(star, "N0")
    ids = projection.node_ids()
    for edge in projection.edges:
        assert edge.source in ids and edge.target in ids


def test_unknown_focal_raises(stores):
    with pytest.raises(NotFound):
        project(stores, "nope")


def test_focal_fetch_failure_propagates(star):
    star.nodes.fail("get", "N0")
    with pytest.raises(StoreUnavailable):
        project(star, "N0")


def test_more_neighbours_than_pool(stores):
    """Neighbours past the pool get distinct overflow positions."""
    stores.add_node("N0")
    for i in range(5):
        stores.add_node(f"M{i}")
        stores.add_anchor(f"A{i}", "N0")
        stores.add_anchor(f"B{i}", f"M{i}")
        stores.add_link(f"L{i}", f"A{i}", f"B{i}")

    projection = project(stores, "N0", pool=[Position(0, 0)])

    positions = [n.position for n in projection.nodes[1:]]
    assert len(positions) == 5
    assert len(set(positions)) == 5
    assert positions[0] == Position(0, 0)
    assert all(p.y > LayoutBounds().max_y for p in positions[1:])


def test_default_pool_is_generated(star):
    projector = Projector(star.nodes, star.anchors, star.links)
    assert len(projector.pool) == 10


def test_default_layout_repeats_across_instances(star):
    """Two projectors built with defaults place neighbours identically."""
    first = Projector(star.nodes, star.anchors, star.links)
    second = Projector(star.nodes, star.anchors, star.links)

    assert first.pool == second.pool
    assert asyncio.run(first.project_id("N0")) == asyncio.run(second.project_id("N0"))
