"""
Keep a node's stored anchors consistent with its edited content.

Anchors still referenced by the content get their extents refreshed;
the rest are orphans and are removed together with their links. An
anchor on the far side of a removed link goes too once it is left
without links, so no linkless anchors are left behind.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from .errors import AnchorGraphError, NotFound, StoreUnavailable
from .extent import equals
from .model import Anchor, AnchorId, AnchorMark, Link, LinkId, NodeId
from .ports import AnchorStore, LinkStore

logger = logging.getLogger(__name__)


class OrphanState(str, Enum):
    SCANNING = "scanning"
    CASCADE_LINKS = "cascade_links"
    CASCADE_OTHER_ANCHOR = "cascade_other_anchor"
    DELETED = "deleted"
    FAILED = "failed"


@dataclass
class OrphanOutcome:
    """Terminal state of one orphan's cascade."""
    anchor_id: AnchorId
    state: OrphanState = OrphanState.SCANNING
    deleted_links: list[LinkId] = field(default_factory=list)
    deleted_anchors: list[AnchorId] = field(default_factory=list)
    errors: list[AnchorGraphError] = field(default_factory=list)


@dataclass
class ReconcileResult:
    node_id: NodeId
    updated: list[AnchorId] = field(default_factory=list)
    unchanged: list[AnchorId] = field(default_factory=list)
    ignored: list[AnchorId] = field(default_factory=list)
    update_failures: dict[AnchorId, AnchorGraphError] = field(default_factory=dict)
    orphans: list[OrphanOutcome] = field(default_factory=list)

    @property
    def errors(self) -> list[AnchorGraphError]:
        out = list(self.update_failures.values())
        for orphan in self.orphans:
            out.extend(orphan.errors)
        return out

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def first_error(self) -> AnchorGraphError | None:
        errors = self.errors
        return errors[0] if errors else None

    @property
    def mutation_count(self) -> int:
        count = len(self.updated)
        for orphan in self.orphans:
            count += len(orphan.deleted_links) + len(orphan.deleted_anchors)
        return count

    def summary(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "updated": len(self.updated),
            "unchanged": len(self.unchanged),
            "ignored": len(self.ignored),
            "orphans": len(self.orphans),
            "deleted_links": sum(len(o.deleted_links) for o in self.orphans),
            "deleted_anchors": sum(len(o.deleted_anchors) for o in self.orphans),
            "failed": len(self.update_failures)
            + sum(1 for o in self.orphans if o.state is OrphanState.FAILED),
        }


class Reconciler:
    def __init__(self, anchors: AnchorStore, links: LinkStore):
        self.anchors = anchors
        self.links = links

    async def reconcile(self, node_id: NodeId, marks: Iterable[AnchorMark]) -> ReconcileResult:
        """
        Bring the stored anchors of ``node_id`` in line with ``marks``.

        Args:
            node_id: Node whose content was edited
            marks: Anchor references found in the new content

        Returns:
            ReconcileResult describing every update and cascade

        Raises:
            StoreUnavailable: the node's anchors could not be fetched; nothing
                was written
        """
        try:
            stored = await self.anchors.get_by_node(node_id)
        except AnchorGraphError as e:
            raise StoreUnavailable(f"cannot fetch anchors of {node_id}: {e}") from e

        result = ReconcileResult(node_id=node_id)
        pending: dict[AnchorId, Anchor] = {a.anchor_id: a for a in stored}

        # Last mark for an anchor id wins
        latest: dict[AnchorId, AnchorMark] = {}
        for mark in marks:
            latest[mark.anchor_id] = mark

        updates: list[tuple[AnchorId, Any]] = []
        for anchor_id, mark in latest.items():
            anchor = pending.pop(anchor_id, None)
            if anchor is None:
                logger.info("Ignoring unknown anchor %s referenced by %s", anchor_id, node_id)
                result.ignored.append(anchor_id)
                continue
            if equals(anchor.extent, mark.extent):
                result.unchanged.append(anchor_id)
            else:
                updates.append((anchor_id, mark.extent))

        outcomes = await asyncio.gather(
            *(self.anchors.update_extent(aid, extent) for aid, extent in updates),
            return_exceptions=True,
        )
        for (anchor_id, _), outcome in zip(updates, outcomes):
            if isinstance(outcome, AnchorGraphError):
                logger.warning("Failed to update extent of %s: %s", anchor_id, outcome)
                result.update_failures[anchor_id] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.updated.append(anchor_id)

        orphans = [OrphanOutcome(anchor_id=anchor_id) for anchor_id in pending]

        # Every orphan's links go first, so far anchors are judged on the
        # link counts left once all cascades have cut their links
        far_lists = await asyncio.gather(*(self._cascade_links(o) for o in orphans))

        owner: dict[AnchorId, OrphanOutcome] = {}
        for orphan, far_ids in zip(orphans, far_lists):
            for far_id in far_ids:
                if far_id not in pending:
                    owner.setdefault(far_id, orphan)
        await asyncio.gather(*(self._sweep_far_anchor(a, o) for a, o in owner.items()))

        await asyncio.gather(*(self._finish(o) for o in orphans))
        result.orphans = orphans

        logger.debug("Reconciled %s: %s", node_id, result.summary())
        return result

    async def _cascade_links(self, outcome: OrphanOutcome) -> list[AnchorId]:
        """Delete the orphan's links in turn; returns far anchors of the links now gone."""
        anchor_id = outcome.anchor_id
        outcome.state = OrphanState.CASCADE_LINKS
        try:
            links = await self.links.get_by_anchor(anchor_id)
        except AnchorGraphError as e:
            logger.warning("Cannot fetch links of orphan %s: %s", anchor_id, e)
            outcome.errors.append(e)
            outcome.state = OrphanState.FAILED
            return []

        far_ids: list[AnchorId] = []
        links_left = False
        for link in links:
            if await self._delete_link(link, outcome):
                other_id = link.other_anchor_id(anchor_id)
                if other_id != anchor_id and other_id not in far_ids:
                    far_ids.append(other_id)
            else:
                links_left = True

        if links_left:
            # Keeping the anchor keeps the surviving links valid
            outcome.state = OrphanState.FAILED
        else:
            outcome.state = OrphanState.CASCADE_OTHER_ANCHOR
        return far_ids

    async def _delete_link(self, link: Link, outcome: OrphanOutcome) -> bool:
        try:
            await self.links.delete(link.link_id)
        except NotFound:
            logger.debug("Link %s already deleted", link.link_id)
        except AnchorGraphError as e:
            logger.warning("Failed to delete link %s: %s", link.link_id, e)
            outcome.errors.append(e)
            return False
        else:
            outcome.deleted_links.append(link.link_id)
        return True

    async def _sweep_far_anchor(self, anchor_id: AnchorId, outcome: OrphanOutcome) -> None:
        """Delete a far anchor left without links."""
        try:
            remaining = await self.links.get_by_anchor(anchor_id)
        except AnchorGraphError as e:
            logger.warning("Cannot fetch links of %s: %s", anchor_id, e)
            outcome.errors.append(e)
            return
        if not remaining:
            await self._delete_anchor(anchor_id, outcome)

    async def _finish(self, outcome: OrphanOutcome) -> None:
        if outcome.state is not OrphanState.CASCADE_OTHER_ANCHOR:
            return
        if await self._delete_anchor(outcome.anchor_id, outcome):
            outcome.state = OrphanState.DELETED
        else:
            outcome.state = OrphanState.FAILED

    async def _delete_anchor(self, anchor_id: AnchorId, outcome: OrphanOutcome) -> bool:
        try:
            await self.anchors.delete(anchor_id)
        except NotFound:
            logger.debug("Anchor %s already deleted", anchor_id)
            return True
        except AnchorGraphError as e:
            logger.warning("Failed to delete anchor %s: %s", anchor_id, e)
            outcome.errors.append(e)
            return False
        outcome.deleted_anchors.append(anchor_id)
        return True
