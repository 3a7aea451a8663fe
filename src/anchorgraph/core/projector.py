"""
Project the link graph around a focal node into laid-out nodes and edges.

The projection covers the focal node and every node one link hop away.
It is best-effort: a failed fetch drops the affected node or edge and
never fails the whole projection.
"""

from __future__ import annotations

import asyncio
import logging

from .errors import AnchorGraphError
from .layout import GridStep, LayoutBounds, PositionCursor, generate_positions
from .model import GraphEdge, GraphNode, Link, Node, NodeId, Position, Projection
from .ports import AnchorStore, LinkStore, NodeStore

logger = logging.getLogger(__name__)

CENTER = Position(250, 25)


class Projector:
    def __init__(
        self,
        nodes: NodeStore,
        anchors: AnchorStore,
        links: LinkStore,
        pool: list[Position] | None = None,
        center: Position = CENTER,
        bounds: LayoutBounds | None = None,
        grid: GridStep | None = None,
    ):
        self.nodes = nodes
        self.anchors = anchors
        self.links = links
        self.bounds = bounds or LayoutBounds()
        self.grid = grid or GridStep()
        self.pool = pool if pool is not None else generate_positions(10, self.bounds, self.grid, seed=0)
        self.center = center

    async def project_id(self, node_id: NodeId) -> Projection:
        """Resolve the focal node, then project. Focal lookup errors propagate."""
        focal = await self.nodes.get(node_id)
        return await self.project(focal)

    async def project(self, focal: Node) -> Projection:
        cursor = PositionCursor(self.pool, self.bounds, self.grid)
        seen: set[NodeId] = {focal.node_id}
        graph_nodes = [GraphNode(focal.node_id, focal.title, self.center)]

        try:
            anchors = await self.anchors.get_by_node(focal.node_id)
        except AnchorGraphError as e:
            logger.warning("Cannot fetch anchors of focal node %s: %s", focal.node_id, e)
            return Projection(nodes=graph_nodes)

        per_anchor = await asyncio.gather(*(self._links_of(a.anchor_id) for a in anchors))
        links: dict[str, Link] = {}
        for anchor_links in per_anchor:
            for link in anchor_links:
                links.setdefault(link.link_id, link)

        endpoints = await asyncio.gather(*(self._endpoints(link) for link in links.values()))

        edges: list[GraphEdge] = []
        discovered: list[NodeId] = []
        for link, ends in zip(links.values(), endpoints):
            if ends is None:
                continue
            source, target = ends
            edges.append(GraphEdge(link.link_id, source, target))
            for node_id in ends:
                if node_id not in seen:
                    seen.add(node_id)
                    discovered.append(node_id)

        fetched = await asyncio.gather(*(self._node(node_id) for node_id in discovered))
        present = {focal.node_id}
        # Positions follow discovery order, not completion order
        for node in fetched:
            if node is None:
                continue
            present.add(node.node_id)
            graph_nodes.append(GraphNode(node.node_id, node.title, cursor.next()))

        edges = [e for e in edges if e.source in present and e.target in present]
        return Projection(nodes=graph_nodes, edges=edges)

    async def _links_of(self, anchor_id: str) -> list[Link]:
        try:
            return await self.links.get_by_anchor(anchor_id)
        except AnchorGraphError as e:
            logger.warning("Skipping links of anchor %s: %s", anchor_id, e)
            return []

    async def _endpoints(self, link: Link) -> tuple[NodeId, NodeId] | None:
        try:
            anchor1, anchor2 = await asyncio.gather(
                self.anchors.get(link.anchor1_id),
                self.anchors.get(link.anchor2_id),
            )
        except AnchorGraphError as e:
            logger.warning("Skipping link %s: %s", link.link_id, e)
            return None
        return anchor1.node_id, anchor2.node_id

    async def _node(self, node_id: NodeId) -> Node | None:
        try:
            return await self.nodes.get(node_id)
        except AnchorGraphError as e:
            logger.warning("Skipping node %s: %s", node_id, e)
            return None
