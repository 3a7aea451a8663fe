from typing import Protocol

from .extent import Extent
from .model import Anchor, AnchorId, Link, LinkId, Node, NodeId


class NodeStore(Protocol):
    """
    Read access to nodes. ``get`` raises NotFound for an unknown id.
    """

    async def get(self, node_id: NodeId) -> Node:
        pass


class AnchorStore(Protocol):
    """
    Anchors owned by nodes. Every call may raise StoreUnavailable;
    ``get``, ``update_extent`` and ``delete`` raise NotFound for an unknown id.
    """

    async def get_by_node(self, node_id: NodeId) -> list[Anchor]:
        pass

    async def get(self, anchor_id: AnchorId) -> Anchor:
        pass

    async def create(self, node_id: NodeId, extent: Extent | None) -> Anchor:
        pass

    async def update_extent(self, anchor_id: AnchorId, extent: Extent | None) -> None:
        pass

    async def delete(self, anchor_id: AnchorId) -> None:
        pass


class LinkStore(Protocol):
    """
    Links between pairs of anchors. ``create`` raises ReferenceInconsistency
    when either anchor is missing.
    """

    async def get_by_anchor(self, anchor_id: AnchorId) -> list[Link]:
        pass

    async def create(self, anchor1_id: AnchorId, anchor2_id: AnchorId) -> Link:
        pass

    async def delete(self, link_id: LinkId) -> None:
        pass


class IdGenerator(Protocol):
    def new_id(self, kind: str) -> str:
        pass
