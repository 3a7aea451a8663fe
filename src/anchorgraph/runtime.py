"""Runtime wiring helper for CLI and API applications."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .adapters.idgen import HexId
from .adapters.sqlite_store import SQLiteAnchorStore, SQLiteDatabase, SQLiteLinkStore, SQLiteNodeStore
from .config import AnchorGraphConfig, load_config
from .core.layout import GridStep, LayoutBounds, generate_positions
from .core.model import Position
from .core.projector import Projector
from .core.reconciler import Reconciler


@dataclass
class Runtime:
    """Container for all wired components."""
    nodes: Any
    anchors: Any
    links: Any
    reconciler: Reconciler
    projector: Projector
    idgen: HexId
    config: AnchorGraphConfig


def wire(nodes: Any, anchors: Any, links: Any, config: AnchorGraphConfig, idgen: HexId) -> Runtime:
    """Build reconciler and projector over an existing set of stores."""
    layout = config.layout
    bounds = LayoutBounds(layout.min_coord, layout.max_x, layout.max_y)
    grid = GridStep(layout.x_multiple, layout.y_multiple)
    pool = generate_positions(layout.pool_size, bounds, grid, seed=layout.seed)

    return Runtime(
        nodes=nodes,
        anchors=anchors,
        links=links,
        reconciler=Reconciler(anchors, links),
        projector=Projector(
            nodes,
            anchors,
            links,
            pool=pool,
            center=Position(layout.center_x, layout.center_y),
            bounds=bounds,
            grid=grid,
        ),
        idgen=idgen,
        config=config,
    )


def build_runtime(
    db_path: Path | None = None,
    config_path: Path | None = None,
    content_path: Path | None = None,
) -> Runtime:
    """Build and wire all components from configuration."""
    config = load_config(config_path=config_path, content_path=content_path)

    if db_path is None:
        db_path = config.store.db
    else:
        config.store.db = db_path

    idgen = HexId(nbytes=config.id.bytes)

    db = SQLiteDatabase(db_path)
    nodes = SQLiteNodeStore(db)
    anchors = SQLiteAnchorStore(db, idgen)
    links = SQLiteLinkStore(db, idgen)

    return wire(nodes, anchors, links, config, idgen)
