from dataclasses import dataclass
from typing import Protocol

from .adapters.yaml_codec import Snapshot
from .core.extent import ImageExtent, TemporalExtent, TextExtent, is_valid

# Extent variant each node type can carry
EXTENT_FOR_NODE_TYPE = {
    "text": TextExtent,
    "image": ImageExtent,
    "temporal": TemporalExtent,
}


@dataclass
class Finding:
    severity: str  # "info" | "warn" | "error"
    message: str
    ref: str | None = None  # id of the offending record


class LintRule(Protocol):
    id: str

    def check(self, snap: Snapshot) -> list[Finding]:
        pass


class DanglingLinksRule:
    id = "dangling-links"

    def check(self, snap: Snapshot) -> list[Finding]:
        owners = {a.anchor_id: a.node_id for a in snap.anchors}
        out: list[Finding] = []
        for link in snap.links:
            ends = (
                (link.anchor1_id, link.anchor1_node_id),
                (link.anchor2_id, link.anchor2_node_id),
            )
            for anchor_id, node_id in ends:
                if anchor_id not in owners:
                    out.append(
                        Finding("error", f"Link references missing anchor {anchor_id}", link.link_id)
                    )
                elif owners[anchor_id] != node_id:
                    out.append(
                        Finding(
                            "warn",
                            f"Link records node {node_id} for anchor {anchor_id}, owner is {owners[anchor_id]}",
                            link.link_id,
                        )
                    )
        return out


class AnchorOwnerRule:
    id = "anchor-owner"

    def check(self, snap: Snapshot) -> list[Finding]:
        node_ids = {n.node_id for n in snap.nodes}
        return [
            Finding("error", f"Anchor belongs to missing node {a.node_id}", a.anchor_id)
            for a in snap.anchors
            if a.node_id not in node_ids
        ]


class ExtentRule:
    id = "extent"

    def check(self, snap: Snapshot) -> list[Finding]:
        types = {n.node_id: n.type for n in snap.nodes}
        out: list[Finding] = []
        for anchor in snap.anchors:
            if anchor.extent is None:
                continue
            if not is_valid(anchor.extent):
                out.append(Finding("error", f"Invalid extent {anchor.extent}", anchor.anchor_id))
                continue
            expected = EXTENT_FOR_NODE_TYPE.get(types.get(anchor.node_id, ""))
            if expected is not None and not isinstance(anchor.extent, expected):
                out.append(
                    Finding(
                        "warn",
                        f"{anchor.extent.type} extent on {types[anchor.node_id]} node {anchor.node_id}",
                        anchor.anchor_id,
                    )
                )
        return out


class LinklessAnchorsRule:
    id = "linkless-anchors"

    def check(self, snap: Snapshot) -> list[Finding]:
        linked = set()
        for link in snap.links:
            linked.add(link.anchor1_id)
            linked.add(link.anchor2_id)
        return [
            Finding("warn", "Anchor has no links", a.anchor_id)
            for a in snap.anchors
            if a.anchor_id not in linked
        ]


DEFAULT_RULES: list[LintRule] = [
    DanglingLinksRule(),
    AnchorOwnerRule(),
    ExtentRule(),
    LinklessAnchorsRule(),
]


def lint(snap: Snapshot, rules: list[LintRule] | None = None) -> list[tuple[str, Finding]]:
    """Run every rule; returns ``(rule id, finding)`` pairs."""
    out: list[tuple[str, Finding]] = []
    for rule in rules or DEFAULT_RULES:
        for finding in rule.check(snap):
            out.append((rule.id, finding))
    return out
