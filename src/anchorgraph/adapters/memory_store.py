"""In-process stores, used for snapshot checks and tests."""

from __future__ import annotations

from dataclasses import replace

from ..core.errors import NotFound, ReferenceInconsistency
from ..core.extent import Extent
from ..core.model import Anchor, AnchorId, Link, LinkId, Node, NodeId
from ..core.ports import AnchorStore, IdGenerator, LinkStore, NodeStore
from .idgen import HexId


class MemoryNodeStore(NodeStore):
    def __init__(self) -> None:
        self._nodes: dict[NodeId, Node] = {}

    async def get(self, node_id: NodeId) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NotFound("node", node_id)
        return node

    async def put(self, node: Node) -> None:
        self._nodes[node.node_id] = node

    async def delete(self, node_id: NodeId) -> None:
        if self._nodes.pop(node_id, None) is None:
            raise NotFound("node", node_id)

    async def all(self) -> list[Node]:
        return list(self._nodes.values())


class MemoryAnchorStore(AnchorStore):
    def __init__(self, idgen: IdGenerator | None = None) -> None:
        self.idgen = idgen or HexId()
        self._anchors: dict[AnchorId, Anchor] = {}

    async def get_by_node(self, node_id: NodeId) -> list[Anchor]:
        return [a for a in self._anchors.values() if a.node_id == node_id]

    async def get(self, anchor_id: AnchorId) -> Anchor:
        anchor = self._anchors.get(anchor_id)
        if anchor is None:
            raise NotFound("anchor", anchor_id)
        return anchor

    async def create(self, node_id: NodeId, extent: Extent | None) -> Anchor:
        anchor = Anchor(self.idgen.new_id("anchor"), node_id, extent)
        self._anchors[anchor.anchor_id] = anchor
        return anchor

    async def put(self, anchor: Anchor) -> None:
        self._anchors[anchor.anchor_id] = anchor

    async def update_extent(self, anchor_id: AnchorId, extent: Extent | None) -> None:
        anchor = await self.get(anchor_id)
        self._anchors[anchor_id] = replace(anchor, extent=extent)

    async def delete(self, anchor_id: AnchorId) -> None:
        if self._anchors.pop(anchor_id, None) is None:
            raise NotFound("anchor", anchor_id)

    async def all(self) -> list[Anchor]:
        return list(self._anchors.values())


class MemoryLinkStore(LinkStore):
    def __init__(self, anchors: MemoryAnchorStore, idgen: IdGenerator | None = None) -> None:
        self.anchors = anchors
        self.idgen = idgen or HexId()
        self._links: dict[LinkId, Link] = {}

    async def get_by_anchor(self, anchor_id: AnchorId) -> list[Link]:
        return [link for link in self._links.values() if link.touches(anchor_id)]

    async def create(self, anchor1_id: AnchorId, anchor2_id: AnchorId) -> Link:
        try:
            anchor1 = await self.anchors.get(anchor1_id)
            anchor2 = await self.anchors.get(anchor2_id)
        except NotFound as e:
            raise ReferenceInconsistency(f"cannot link missing {e.kind} {e.id}") from e
        link = Link(
            link_id=self.idgen.new_id("link"),
            anchor1_id=anchor1.anchor_id,
            anchor2_id=anchor2.anchor_id,
            anchor1_node_id=anchor1.node_id,
            anchor2_node_id=anchor2.node_id,
        )
        self._links[link.link_id] = link
        return link

    async def put(self, link: Link) -> None:
        self._links[link.link_id] = link

    async def delete(self, link_id: LinkId) -> None:
        if self._links.pop(link_id, None) is None:
            raise NotFound("link", link_id)

    async def all(self) -> list[Link]:
        return list(self._links.values())
