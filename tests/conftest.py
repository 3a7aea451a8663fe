"""Shared fixtures: in-memory stores that record mutations and can fail on demand."""

import asyncio
from types import SimpleNamespace

import pytest

from anchorgraph.adapters.memory_store import MemoryAnchorStore, MemoryLinkStore, MemoryNodeStore
from anchorgraph.core.errors import StoreUnavailable
from anchorgraph.core.model import Anchor, Link, Node


class FlakyMixin:
    """
    Raise StoreUnavailable for chosen (method, id) pairs; record mutations.

    With ``yielding`` set, every call gives up control before touching the
    data, the way thread-backed stores do.
    """

    def _setup(self) -> None:
        self.failures: set[tuple[str, str]] = set()
        self.mutations: list[tuple[str, str]] = []
        self.yielding = False

    def fail(self, method: str, id: str) -> None:
        self.failures.add((method, id))

    async def _pause(self) -> None:
        if self.yielding:
            await asyncio.sleep(0)

    def _check(self, method: str, id: str) -> None:
        if (method, id) in self.failures or (method, "*") in self.failures:
            raise StoreUnavailable(f"{method}({id}) unavailable")


class RecordingNodeStore(FlakyMixin, MemoryNodeStore):
    def __init__(self):
        super().__init__()
        self._setup()

    async def get(self, node_id):
        await self._pause()
        self._check("get", node_id)
        return await super().get(node_id)


class RecordingAnchorStore(FlakyMixin, MemoryAnchorStore):
    def __init__(self):
        super().__init__()
        self._setup()

    async def get_by_node(self, node_id):
        await self._pause()
        self._check("get_by_node", node_id)
        return await super().get_by_node(node_id)

    async def get(self, anchor_id):
        await self._pause()
        self._check("get", anchor_id)
        return await super().get(anchor_id)

    async def update_extent(self, anchor_id, extent):
        await self._pause()
        self._check("update_extent", anchor_id)
        await super().update_extent(anchor_id, extent)
        self.mutations.append(("update_extent", anchor_id))

    async def delete(self, anchor_id):
        await self._pause()
        self._check("delete", anchor_id)
        await super().delete(anchor_id)
        self.mutations.append(("delete", anchor_id))


class RecordingLinkStore(FlakyMixin, MemoryLinkStore):
    def __init__(self, anchors):
        super().__init__(anchors)
        self._setup()

    async def get_by_anchor(self, anchor_id):
        await self._pause()
        self._check("get_by_anchor", anchor_id)
        return await super().get_by_anchor(anchor_id)

    async def delete(self, link_id):
        await self._pause()
        self._check("delete", link_id)
        await super().delete(link_id)
        self.mutations.append(("delete", link_id))


@pytest.fixture
def stores():
    """Empty recording stores plus sync seeding helpers."""
    nodes = RecordingNodeStore()
    anchors = RecordingAnchorStore()
    links = RecordingLinkStore(anchors)

    def add_node(node_id, title=None, type="text", content=None):
        node = Node(node_id=node_id, title=title or node_id.upper(), type=type, content=content)
        nodes._nodes[node_id] = node
        return node

    def add_anchor(anchor_id, node_id, extent=None):
        anchor = Anchor(anchor_id, node_id, extent)
        anchors._anchors[anchor_id] = anchor
        return anchor

    def add_link(link_id, anchor1_id, anchor2_id):
        a1 = anchors._anchors[anchor1_id]
        a2 = anchors._anchors[anchor2_id]
        link = Link(link_id, a1.anchor_id, a2.anchor_id, a1.node_id, a2.node_id)
        links._links[link_id] = link
        return link

    return SimpleNamespace(
        nodes=nodes,
        anchors=anchors,
        links=links,
        add_node=add_node,
        add_anchor=add_anchor,
        add_link=add_link,
    )
