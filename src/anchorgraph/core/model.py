from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from .extent import Extent, extent_to_dict

NodeId = str
AnchorId = str
LinkId = str

NodeType = Literal["text", "image", "folder", "pdf", "temporal"]
NODE_TYPES: tuple[str, ...] = ("text", "image", "folder", "pdf", "temporal")


@dataclass
class Node:
    node_id: NodeId
    title: str
    type: NodeType = "text"
    content: Any = None  # html for text nodes, a url for media


@dataclass(frozen=True)
class Anchor:
    anchor_id: AnchorId
    node_id: NodeId
    extent: Extent | None = None  # None anchors the whole node


@dataclass(frozen=True)
class Link:
    link_id: LinkId
    anchor1_id: AnchorId
    anchor2_id: AnchorId
    anchor1_node_id: NodeId
    anchor2_node_id: NodeId

    def other_anchor_id(self, anchor_id: AnchorId) -> AnchorId:
        """The endpoint opposite ``anchor_id``; a self-link returns itself."""
        if anchor_id == self.anchor1_id:
            return self.anchor2_id
        return self.anchor1_id

    def touches(self, anchor_id: AnchorId) -> bool:
        return anchor_id in (self.anchor1_id, self.anchor2_id)


@dataclass(frozen=True)
class AnchorMark:
    """One anchor reference found in annotated content."""
    anchor_id: AnchorId
    extent: Extent | None


@dataclass(frozen=True)
class Position:
    x: int
    y: int


@dataclass(frozen=True)
class GraphNode:
    id: NodeId
    label: str
    position: Position


@dataclass(frozen=True)
class GraphEdge:
    id: LinkId
    source: NodeId
    target: NodeId


@dataclass
class Projection:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    def node_ids(self) -> set[NodeId]:
        return {n.id for n in self.nodes}

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [
                {
                    "id": n.id,
                    "label": n.label,
                    "position": {"x": n.position.x, "y": n.position.y},
                }
                for n in self.nodes
            ],
            "edges": [
                {"id": e.id, "source": e.source, "target": e.target}
                for e in self.edges
            ],
        }


def anchor_to_dict(anchor: Anchor) -> dict[str, Any]:
    return {
        "anchorId": anchor.anchor_id,
        "nodeId": anchor.node_id,
        "extent": extent_to_dict(anchor.extent),
    }


def link_to_dict(link: Link) -> dict[str, Any]:
    return {
        "linkId": link.link_id,
        "anchor1Id": link.anchor1_id,
        "anchor2Id": link.anchor2_id,
        "anchor1NodeId": link.anchor1_node_id,
        "anchor2NodeId": link.anchor2_node_id,
    }


def node_to_dict(node: Node) -> dict[str, Any]:
    return {
        "nodeId": node.node_id,
        "title": node.title,
        "type": node.type,
        "content": node.content,
    }
