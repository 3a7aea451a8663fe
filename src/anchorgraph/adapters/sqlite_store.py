"""SQLite-backed node, anchor and link stores."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..core.errors import InvalidExtent, NotFound, ReferenceInconsistency, StoreUnavailable
from ..core.extent import Extent, extent_from_dict, extent_to_dict
from ..core.model import Anchor, AnchorId, Link, LinkId, Node, NodeId
from ..core.ports import AnchorStore, IdGenerator, LinkStore, NodeStore
from .idgen import HexId

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA_VERSION = "1"


@dataclass
class SQLiteDatabase:
    """
    One SQLite file holding nodes, anchors and links.

    Each call opens its own connection, so calls can run on worker threads.
    """

    db_path: Path
    _ready: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _conn(self) -> sqlite3.Connection:
        """Get a connection to the SQLite database."""
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.execute("PRAGMA busy_timeout=3000")
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS nodes (
                node_id TEXT PRIMARY KEY,
                title TEXT NOT NULL DEFAULT '',
                type TEXT NOT NULL DEFAULT 'text',
                content TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS anchors (
                anchor_id TEXT PRIMARY KEY,
                node_id TEXT NOT NULL,
                extent TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS links (
                link_id TEXT PRIMARY KEY,
                anchor1_id TEXT NOT NULL,
                anchor2_id TEXT NOT NULL,
                anchor1_node_id TEXT NOT NULL,
                anchor2_node_id TEXT NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS anchors_node_idx ON anchors(node_id)")
        conn.execute("CREATE INDEX IF NOT EXISTS links_anchor1_idx ON links(anchor1_id)")
        conn.execute("CREATE INDEX IF NOT EXISTS links_anchor2_idx ON links(anchor2_id)")
        conn.execute(
            """
            INSERT INTO meta(key, value) VALUES('schema_version', ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """,
            (SCHEMA_VERSION,),
        )
        conn.commit()

    def ensure_schema(self) -> None:
        """Ensure DB exists and schema is initialized."""
        with self._lock:
            if not self._ready:
                self._prepare()
                self._ready = True

    def _prepare(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        if self.db_path.exists():
            try:
                conn = self._conn()
                try:
                    conn.execute("SELECT 1").fetchone()
                finally:
                    conn.close()
            except sqlite3.DatabaseError:
                # Corrupt file: keep it aside and start fresh
                timestamp = int(time.time())
                backup_path = self.db_path.with_suffix(f".bad-{timestamp}.sqlite")
                self.db_path.rename(backup_path)
                logger.warning("Corrupt DB backed up to %s", backup_path)

        conn = self._conn()
        try:
            self._init_schema(conn)
        finally:
            conn.close()

    def run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn`` inside a transaction, translating sqlite errors."""
        try:
            self.ensure_schema()
            conn = self._conn()
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailable(f"cannot open {self.db_path}: {e}") from e
        try:
            result = fn(conn)
            conn.commit()
            return result
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreUnavailable(str(e)) from e
        finally:
            conn.close()

    async def arun(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        return await asyncio.to_thread(self.run, fn)


def _encode_extent(extent: Extent | None) -> str | None:
    data = extent_to_dict(extent)
    return None if data is None else json.dumps(data)


def _decode_extent(raw: str | None, anchor_id: str) -> Extent | None:
    if raw is None:
        return None
    try:
        return extent_from_dict(json.loads(raw))
    except (ValueError, InvalidExtent) as e:
        raise InvalidExtent(f"anchor {anchor_id} has a corrupt extent: {e}") from e


def _row_to_anchor(row: tuple[Any, ...]) -> Anchor:
    anchor_id, node_id, extent = row
    return Anchor(anchor_id, node_id, _decode_extent(extent, anchor_id))


def _row_to_link(row: tuple[Any, ...]) -> Link:
    return Link(*row)


def _row_to_node(row: tuple[Any, ...]) -> Node:
    node_id, title, type_, content = row
    return Node(node_id=node_id, title=title, type=type_, content=content)


class SQLiteNodeStore(NodeStore):
    def __init__(self, db: SQLiteDatabase):
        self.db = db

    async def get(self, node_id: NodeId) -> Node:
        row = await self.db.arun(
            lambda conn: conn.execute(
                "SELECT node_id, title, type, content FROM nodes WHERE node_id = ?",
                (node_id,),
            ).fetchone()
        )
        if row is None:
            raise NotFound("node", node_id)
        return _row_to_node(row)

    async def put(self, node: Node) -> None:
        content = node.content
        if content is not None and not isinstance(content, str):
            content = json.dumps(content)
        await self.db.arun(
            lambda conn: conn.execute(
                """
                INSERT INTO nodes (node_id, title, type, content) VALUES (?, ?, ?, ?)
                ON CONFLICT(node_id) DO UPDATE SET
                    title = excluded.title,
                    type = excluded.type,
                    content = excluded.content
                """,
                (node.node_id, node.title, node.type, content),
            )
        )

    async def delete(self, node_id: NodeId) -> None:
        count = await self.db.arun(
            lambda conn: conn.execute("DELETE FROM nodes WHERE node_id = ?", (node_id,)).rowcount
        )
        if count == 0:
            raise NotFound("node", node_id)

    async def all(self) -> list[Node]:
        rows = await self.db.arun(
            lambda conn: conn.execute(
                "SELECT node_id, title, type, content FROM nodes ORDER BY node_id"
            ).fetchall()
        )
        return [_row_to_node(r) for r in rows]


class SQLiteAnchorStore(AnchorStore):
    def __init__(self, db: SQLiteDatabase, idgen: IdGenerator | None = None):
        self.db = db
        self.idgen = idgen or HexId()

    async def get_by_node(self, node_id: NodeId) -> list[Anchor]:
        rows = await self.db.arun(
            lambda conn: conn.execute(
                "SELECT anchor_id, node_id, extent FROM anchors WHERE node_id = ? ORDER BY anchor_id",
                (node_id,),
            ).fetchall()
        )
        return [_row_to_anchor(r) for r in rows]

    async def get(self, anchor_id: AnchorId) -> Anchor:
        row = await self.db.arun(
            lambda conn: conn.execute(
                "SELECT anchor_id, node_id, extent FROM anchors WHERE anchor_id = ?",
                (anchor_id,),
            ).fetchone()
        )
        if row is None:
            raise NotFound("anchor", anchor_id)
        return _row_to_anchor(row)

    async def create(self, node_id: NodeId, extent: Extent | None) -> Anchor:
        anchor = Anchor(self.idgen.new_id("anchor"), node_id, extent)
        await self.put(anchor)
        return anchor

    async def put(self, anchor: Anchor) -> None:
        await self.db.arun(
            lambda conn: conn.execute(
                """
                INSERT INTO anchors (anchor_id, node_id, extent) VALUES (?, ?, ?)
                ON CONFLICT(anchor_id) DO UPDATE SET
                    node_id = excluded.node_id,
                    extent = excluded.extent
                """,
                (anchor.anchor_id, anchor.node_id, _encode_extent(anchor.extent)),
            )
        )

    async def update_extent(self, anchor_id: AnchorId, extent: Extent | None) -> None:
        count = await self.db.arun(
            lambda conn: conn.execute(
                "UPDATE anchors SET extent = ? WHERE anchor_id = ?",
                (_encode_extent(extent), anchor_id),
            ).rowcount
        )
        if count == 0:
            raise NotFound("anchor", anchor_id)

    async def delete(self, anchor_id: AnchorId) -> None:
        count = await self.db.arun(
            lambda conn: conn.execute(
                "DELETE FROM anchors WHERE anchor_id = ?", (anchor_id,)
            ).rowcount
        )
        if count == 0:
            raise NotFound("anchor", anchor_id)

    async def all(self) -> list[Anchor]:
        rows = await self.db.arun(
            lambda conn: conn.execute(
                "SELECT anchor_id, node_id, extent FROM anchors ORDER BY anchor_id"
            ).fetchall()
        )
        return [_row_to_anchor(r) for r in rows]


class SQLiteLinkStore(LinkStore):
    def __init__(self, db: SQLiteDatabase, idgen: IdGenerator | None = None):
        self.db = db
        self.idgen = idgen or HexId()

    async def get_by_anchor(self, anchor_id: AnchorId) -> list[Link]:
        rows = await self.db.arun(
            lambda conn: conn.execute(
                """
                SELECT link_id, anchor1_id, anchor2_id, anchor1_node_id, anchor2_node_id
                FROM links
                WHERE anchor1_id = ? OR anchor2_id = ?
                ORDER BY link_id
                """,
                (anchor_id, anchor_id),
            ).fetchall()
        )
        return [_row_to_link(r) for r in rows]

    async def create(self, anchor1_id: AnchorId, anchor2_id: AnchorId) -> Link:
        link_id = self.idgen.new_id("link")

        def insert(conn: sqlite3.Connection) -> Link | None:
            owners = dict(
                conn.execute(
                    "SELECT anchor_id, node_id FROM anchors WHERE anchor_id IN (?, ?)",
                    (anchor1_id, anchor2_id),
                ).fetchall()
            )
            if anchor1_id not in owners or anchor2_id not in owners:
                return None
            link = Link(link_id, anchor1_id, anchor2_id, owners[anchor1_id], owners[anchor2_id])
            conn.execute(
                """
                INSERT INTO links (link_id, anchor1_id, anchor2_id, anchor1_node_id, anchor2_node_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                (link.link_id, link.anchor1_id, link.anchor2_id, link.anchor1_node_id, link.anchor2_node_id),
            )
            return link

        link = await self.db.arun(insert)
        if link is None:
            raise ReferenceInconsistency(f"cannot link {anchor1_id} and {anchor2_id}: anchor missing")
        return link

    async def put(self, link: Link) -> None:
        await self.db.arun(
            lambda conn: conn.execute(
                """
                INSERT OR REPLACE INTO links
                    (link_id, anchor1_id, anchor2_id, anchor1_node_id, anchor2_node_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                (link.link_id, link.anchor1_id, link.anchor2_id, link.anchor1_node_id, link.anchor2_node_id),
            )
        )

    async def delete(self, link_id: LinkId) -> None:
        count = await self.db.arun(
            lambda conn: conn.execute("DELETE FROM links WHERE link_id = ?", (link_id,)).rowcount
        )
        if count == 0:
            raise NotFound("link", link_id)

    async def all(self) -> list[Link]:
        rows = await self.db.arun(
            lambda conn: conn.execute(
                """
                SELECT link_id, anchor1_id, anchor2_id, anchor1_node_id, anchor2_node_id
                FROM links ORDER BY link_id
                """
            ).fetchall()
        )
        return [_row_to_link(r) for r in rows]
