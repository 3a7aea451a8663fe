"""YAML snapshots of a whole graph: nodes, anchors and links."""

import io
from dataclasses import dataclass, field
from typing import Any

import yaml

from ..core.errors import InvalidExtent, ReferenceInconsistency
from ..core.extent import extent_from_dict
from ..core.model import (
    NODE_TYPES,
    Anchor,
    Link,
    Node,
    anchor_to_dict,
    link_to_dict,
    node_to_dict,
)


@dataclass
class Snapshot:
    nodes: list[Node] = field(default_factory=list)
    anchors: list[Anchor] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)


def _require(item: dict[str, Any], key: str, where: str) -> Any:
    if key not in item:
        raise ValueError(f"{where} entry missing '{key}': {item}")
    return item[key]


def decode_snapshot(text: str) -> Snapshot:
    """
    Parse a YAML snapshot.

    Link node ids are taken from the anchors in the snapshot, so every link
    endpoint must be listed under ``anchors``.

    Raises:
        ValueError: malformed document
        InvalidExtent: an anchor's extent breaks its invariant
        ReferenceInconsistency: a link names an unknown anchor
    """
    try:
        data = yaml.safe_load(io.StringIO(text)) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"malformed snapshot: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("snapshot must be a mapping with nodes/anchors/links")

    snap = Snapshot()
    for item in data.get("nodes") or []:
        node_type = item.get("type", "text")
        if node_type not in NODE_TYPES:
            raise ValueError(f"unknown node type {node_type!r}")
        snap.nodes.append(
            Node(
                node_id=str(_require(item, "nodeId", "node")),
                title=str(item.get("title", "")),
                type=node_type,
                content=item.get("content"),
            )
        )

    for item in data.get("anchors") or []:
        anchor_id = str(_require(item, "anchorId", "anchor"))
        try:
            extent = extent_from_dict(item.get("extent"))
        except InvalidExtent as e:
            raise InvalidExtent(f"anchor {anchor_id}: {e}") from e
        snap.anchors.append(Anchor(anchor_id, str(_require(item, "nodeId", "anchor")), extent))

    owners = {a.anchor_id: a.node_id for a in snap.anchors}
    for item in data.get("links") or []:
        link_id = str(_require(item, "linkId", "link"))
        a1 = str(_require(item, "anchor1Id", "link"))
        a2 = str(_require(item, "anchor2Id", "link"))
        for anchor_id in (a1, a2):
            if anchor_id not in owners:
                raise ReferenceInconsistency(f"link {link_id} references unknown anchor {anchor_id}")
        snap.links.append(Link(link_id, a1, a2, owners[a1], owners[a2]))

    return snap


def encode_snapshot(snap: Snapshot) -> str:
    data = {
        "nodes": [node_to_dict(n) for n in snap.nodes],
        "anchors": [anchor_to_dict(a) for a in snap.anchors],
        "links": [
            {k: v for k, v in link_to_dict(link).items() if k in ("linkId", "anchor1Id", "anchor2Id")}
            for link in snap.links
        ],
    }
    buf = io.StringIO()
    yaml.safe_dump(data, buf, sort_keys=False, allow_unicode=True)
    return buf.getvalue()


async def read_snapshot(nodes: Any, anchors: Any, links: Any) -> Snapshot:
    """Collect everything held by a set of stores exposing ``all()``."""
    return Snapshot(
        nodes=await nodes.all(),
        anchors=await anchors.all(),
        links=await links.all(),
    )


async def write_snapshot(snap: Snapshot, nodes: Any, anchors: Any, links: Any) -> dict[str, int]:
    """Upsert a snapshot into stores exposing ``put()``. Returns counts."""
    for node in snap.nodes:
        await nodes.put(node)
    for anchor in snap.anchors:
        await anchors.put(anchor)
    for link in snap.links:
        await links.put(link)
    return {"nodes": len(snap.nodes), "anchors": len(snap.anchors), "links": len(snap.links)}
