"""Configuration loader for anchorgraph.toml."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

CONFIG_NAME = "anchorgraph.toml"


@dataclass
class StoreConfig:
    """Where the node/anchor/link records live."""
    db: Path = Path(".anchorgraph/graph.sqlite")


@dataclass
class ContentConfig:
    """Directory of saved text-node HTML, one <node id>.html per node."""
    root: Path = Path("./content")


@dataclass
class LayoutConfig:
    """Projection layout settings."""
    pool_size: int = 10
    min_coord: int = 10
    max_x: int = 700
    max_y: int = 600
    x_multiple: int = 50
    y_multiple: int = 30
    center_x: int = 250
    center_y: int = 25
    seed: int | None = 0


@dataclass
class IdConfig:
    """ID generation configuration."""
    bytes: int = 6


@dataclass
class LogConfig:
    level: str = "WARNING"


@dataclass
class ApiConfig:
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class AnchorGraphConfig:
    """Complete anchorgraph configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    content: ContentConfig = field(default_factory=ContentConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    id: IdConfig = field(default_factory=IdConfig)
    log: LogConfig = field(default_factory=LogConfig)
    api: ApiConfig = field(default_factory=ApiConfig)


def load_config(config_path: Path | None = None, content_path: Path | None = None) -> AnchorGraphConfig:
    """
    Load configuration from anchorgraph.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/anchorgraph.toml
    3. content_path/anchorgraph.toml

    Args:
        config_path: Explicit path to config file
        content_path: Content root for fallback search

    Returns:
        AnchorGraphConfig with resolved settings
    """
    toml_data: dict[str, Any] = {}

    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if content_path:
        search_paths.append(content_path / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            with open(path, "rb") as f:
                toml_data = tomllib.load(f)
            break

    store_data = toml_data.get("store", {})
    store_config = StoreConfig(db=Path(store_data.get("db", StoreConfig.db)))

    content_data = toml_data.get("content", {})
    content_config = ContentConfig(
        root=Path(content_data.get("root", content_path or ContentConfig.root))
    )

    layout_data = toml_data.get("layout", {})
    defaults = LayoutConfig()
    layout_config = LayoutConfig(
        pool_size=int(layout_data.get("pool_size", defaults.pool_size)),
        min_coord=int(layout_data.get("min_coord", defaults.min_coord)),
        max_x=int(layout_data.get("max_x", defaults.max_x)),
        max_y=int(layout_data.get("max_y", defaults.max_y)),
        x_multiple=int(layout_data.get("x_multiple", defaults.x_multiple)),
        y_multiple=int(layout_data.get("y_multiple", defaults.y_multiple)),
        center_x=int(layout_data.get("center_x", defaults.center_x)),
        center_y=int(layout_data.get("center_y", defaults.center_y)),
        seed=layout_data.get("seed", defaults.seed),
    )
    if layout_config.x_multiple <= 0 or layout_config.y_multiple <= 0:
        raise ValueError("layout multiples must be positive")

    id_data = toml_data.get("id", {})
    id_config = IdConfig(bytes=id_data.get("bytes", 6))

    log_data = toml_data.get("log", {})
    log_config = LogConfig(level=str(log_data.get("level", "WARNING")).upper())

    api_data = toml_data.get("api", {})
    api_config = ApiConfig(
        host=api_data.get("host", "127.0.0.1"),
        port=int(api_data.get("port", 8765)),
    )

    return AnchorGraphConfig(
        store=store_config,
        content=content_config,
        layout=layout_config,
        id=id_config,
        log=log_config,
        api=api_config,
    )
