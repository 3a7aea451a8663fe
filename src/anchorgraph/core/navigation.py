"""Following links from an anchor, and highlighting linked text spans."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import NotFound, ReferenceInconsistency
from .extent import TextExtent
from .model import Anchor, AnchorId, NodeId
from .ports import AnchorStore, LinkStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnchorHighlight:
    anchor_id: AnchorId
    start: int
    end: int
    target_node_id: NodeId


async def follow_link(anchors: AnchorStore, links: LinkStore, anchor_id: AnchorId) -> Anchor:
    """Anchor at the other end of the first link on ``anchor_id``."""
    incident = await links.get_by_anchor(anchor_id)
    if not incident:
        raise NotFound("link from anchor", anchor_id)
    link = incident[0]
    other_id = link.other_anchor_id(anchor_id)
    try:
        return await anchors.get(other_id)
    except NotFound as e:
        raise ReferenceInconsistency(
            f"link {link.link_id} references missing anchor {other_id}"
        ) from e


async def anchor_marks(anchors: AnchorStore, links: LinkStore, node_id: NodeId) -> list[AnchorHighlight]:
    """Text spans of a node that should render as links, ordered by position."""
    out: list[AnchorHighlight] = []
    for anchor in await anchors.get_by_node(node_id):
        if not isinstance(anchor.extent, TextExtent):
            continue
        incident = await links.get_by_anchor(anchor.anchor_id)
        if not incident:
            logger.info("Anchor %s on %s has no links", anchor.anchor_id, node_id)
            continue
        link = incident[0]
        target = link.anchor2_node_id
        if link.anchor1_id != anchor.anchor_id:
            target = link.anchor1_node_id
        out.append(
            AnchorHighlight(
                anchor_id=anchor.anchor_id,
                start=anchor.extent.start_character,
                end=anchor.extent.end_character,
                target_node_id=target,
            )
        )
    out.sort(key=lambda h: (h.start, h.end))
    return out
