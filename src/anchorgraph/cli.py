"""CLI for anchorgraph - keep anchors and links consistent, project link graphs."""

import argparse
import asyncio
import json
import logging
import platform
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .adapters.yaml_codec import decode_snapshot, encode_snapshot, read_snapshot, write_snapshot
from .core.errors import AnchorGraphError
from .core.extent import (
    extent_to_dict,
    make_image_extent,
    make_temporal_extent,
    make_text_extent,
)
from .core.model import NODE_TYPES, Node, anchor_to_dict, link_to_dict, node_to_dict
from .core.navigation import anchor_marks, follow_link
from .edits import save_text_content
from .lint import lint
from .runtime import build_runtime


def version_string() -> str:
    return (
        f"anchorgraph {__version__} "
        f"(python {platform.python_version()}, platform {platform.platform()})"
    )


def cmd_id(args: argparse.Namespace, rt: Any) -> int:
    """Print a new random ID."""
    print(rt.idgen.new_id(args.kind))
    return 0


def cmd_load(args: argparse.Namespace, rt: Any) -> int:
    """Load a YAML snapshot into the store."""
    snap = decode_snapshot(Path(args.file).read_text(encoding="utf-8"))
    counts = asyncio.run(write_snapshot(snap, rt.nodes, rt.anchors, rt.links))
    if args.json:
        print(json.dumps(counts))
    elif not args.quiet:
        print(f"Loaded {counts['nodes']} nodes, {counts['anchors']} anchors, {counts['links']} links")
    return 0


def cmd_dump(args: argparse.Namespace, rt: Any) -> int:
    """Write the store out as a YAML snapshot."""
    snap = asyncio.run(read_snapshot(rt.nodes, rt.anchors, rt.links))
    text = encode_snapshot(snap)
    if args.file:
        Path(args.file).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
    return 0


def cmd_node_add(args: argparse.Namespace, rt: Any) -> int:
    """Create or replace a node."""
    node_id = args.id or rt.idgen.new_id("node")
    content = None
    if args.content_file:
        content = Path(args.content_file).read_text(encoding="utf-8")
    elif args.content is not None:
        content = args.content
    node = Node(node_id=node_id, title=args.title or node_id, type=args.type, content=content)
    asyncio.run(rt.nodes.put(node))
    if not args.quiet:
        print(node_id)
    return 0


def cmd_node_show(args: argparse.Namespace, rt: Any) -> int:
    """Print a node and its anchors."""

    async def _run() -> dict[str, Any]:
        node = await rt.nodes.get(args.id)
        anchors = await rt.anchors.get_by_node(args.id)
        out = node_to_dict(node)
        out["anchors"] = [anchor_to_dict(a) for a in anchors]
        return out

    data = asyncio.run(_run())
    if args.json:
        print(json.dumps(data, indent=2))
        return 0
    print(f"{data['nodeId']}  [{data['type']}]  {data['title']}")
    for anchor in data["anchors"]:
        print(f"  {anchor['anchorId']}  {json.dumps(anchor['extent'])}")
    return 0


def cmd_anchor_add(args: argparse.Namespace, rt: Any) -> int:
    """Create an anchor on a node."""
    if args.text is not None:
        start, text = args.text
        extent: Any = make_text_extent(text, int(start))
    elif args.image is not None:
        extent = make_image_extent(*args.image)
    elif args.temporal is not None:
        extent = make_temporal_extent(args.temporal)
    else:
        extent = None

    async def _run() -> Any:
        await rt.nodes.get(args.node)
        return await rt.anchors.create(args.node, extent)

    anchor = asyncio.run(_run())
    if args.json:
        print(json.dumps(anchor_to_dict(anchor)))
    elif not args.quiet:
        print(anchor.anchor_id)
    return 0


def cmd_link_add(args: argparse.Namespace, rt: Any) -> int:
    """Link two anchors."""
    link = asyncio.run(rt.links.create(args.anchor1, args.anchor2))
    if args.json:
        print(json.dumps(link_to_dict(link)))
    elif not args.quiet:
        print(link.link_id)
    return 0


def cmd_reconcile(args: argparse.Namespace, rt: Any) -> int:
    """Reconcile a text node's anchors against edited HTML."""
    html = Path(args.file).read_text(encoding="utf-8")
    result = asyncio.run(save_text_content(rt, args.node, html))
    summary = result.summary()

    if args.json:
        summary["errors"] = [str(e) for e in result.errors]
        print(json.dumps(summary, indent=2))
    elif not args.quiet:
        print(f"Updated: {summary['updated']}")
        print(f"Unchanged: {summary['unchanged']}")
        print(f"Ignored: {summary['ignored']}")
        print(f"Orphans: {summary['orphans']}")
        print(f"Deleted links: {summary['deleted_links']}")
        print(f"Deleted anchors: {summary['deleted_anchors']}")
        if summary["failed"] > 0:
            print(f"Failed: {summary['failed']}")

    for error in result.errors:
        print(f"Warning: {error}", file=sys.stderr)
    return 0 if result.ok else 1


def cmd_graph(args: argparse.Namespace, rt: Any) -> int:
    """Project the link graph around a node."""
    projection = asyncio.run(rt.projector.project_id(args.node))
    data = projection.to_dict()

    if getattr(args, "dot", False):
        print("graph links {")
        print("  node [shape=box];")
        for node in data["nodes"]:
            pos = node["position"]
            print(f'  "{node["id"]}" [label="{node["label"]}", pos="{pos["x"]},{pos["y"]}!"];')
        for edge in data["edges"]:
            print(f'  "{edge["source"]}" -- "{edge["target"]}" [id="{edge["id"]}"];')
        print("}")
    else:
        print(json.dumps(data, indent=2))
    return 0


def cmd_follow(args: argparse.Namespace, rt: Any) -> int:
    """Print the anchor at the other end of an anchor's link."""
    anchor = asyncio.run(follow_link(rt.anchors, rt.links, args.anchor))
    if args.json:
        print(json.dumps(anchor_to_dict(anchor)))
    else:
        print(f"{anchor.anchor_id}  {anchor.node_id}  {json.dumps(extent_to_dict(anchor.extent))}")
    return 0


def cmd_marks(args: argparse.Namespace, rt: Any) -> int:
    """List linked text spans of a node."""
    highlights = asyncio.run(anchor_marks(rt.anchors, rt.links, args.node))
    for h in highlights:
        print(f"{h.start}\t{h.end}\t{h.anchor_id}\t{h.target_node_id}")
    return 0


def cmd_lint(args: argparse.Namespace, rt: Any) -> int:
    """Check anchors and links for consistency."""
    snap = asyncio.run(read_snapshot(rt.nodes, rt.anchors, rt.links))
    findings = lint(snap)

    if args.json:
        print(json.dumps([
            {"rule": rule_id, "severity": f.severity, "message": f.message, "ref": f.ref}
            for rule_id, f in findings
        ], indent=2))
    else:
        for rule_id, f in findings:
            print(f"{f.severity.upper()} [{rule_id}] {f.ref or '-'}: {f.message}")
        if not findings and not args.quiet:
            print("No findings")

    has_errors = any(f.severity == "error" for _, f in findings)
    return 1 if has_errors else 0


def cmd_watch(args: argparse.Namespace, rt: Any) -> int:
    """Watch the content directory and reconcile edited nodes."""
    from .watch import watch_content

    return watch_content(
        rt,
        content_path=rt.config.content.root,
        debounce_ms=args.debounce_ms,
        quiet=args.quiet,
        json_output=args.json,
    )


def cmd_serve(args: argparse.Namespace, rt: Any) -> int:
    """Start local JSON API server."""
    import uvicorn

    from .api.app import create_app, generate_token

    token_arg = args.token
    if token_arg == "auto":
        token: str | None = generate_token()
        print(f"Generated bearer token: {token}")
        print(f"Use in requests: Authorization: Bearer {token}")
    elif token_arg == "none":
        print("Warning: Running without authentication. Only use in trusted environments.")
        token = None
    else:
        token = token_arg

    app = create_app(rt, token=token, enable_cors=args.cors)

    host = args.host or rt.config.api.host
    port = args.port or rt.config.api.port
    print(f"Starting server on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="anchorgraph", description="anchorgraph CLI")
    parser.add_argument("--version", action="version", version=version_string())
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/anchorgraph.toml, content/anchorgraph.toml)",
    )
    parser.add_argument(
        "--content",
        type=Path,
        default=None,
        help="Directory of saved text-node HTML (overrides config)",
    )
    parser.add_argument(
        "--db", type=Path, default=None, help="Path to SQLite store (overrides config)"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimize output")
    parser.add_argument("--json", action="store_true", help="Machine-readable output")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, WARNING)",
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    parser_id = subparsers.add_parser("id", help="Print a new random ID")
    parser_id.add_argument("--kind", default="node", choices=["node", "anchor", "link"])

    parser_load = subparsers.add_parser("load", help="Load a YAML snapshot")
    parser_load.add_argument("file", help="Snapshot file")

    parser_dump = subparsers.add_parser("dump", help="Dump the store as YAML")
    parser_dump.add_argument("file", nargs="?", default=None, help="Output file (default: stdout)")

    parser_node = subparsers.add_parser("node", help="Manage nodes")
    node_sub = parser_node.add_subparsers(dest="node_cmd", required=True)
    parser_node_add = node_sub.add_parser("add", help="Create or replace a node")
    parser_node_add.add_argument("--id", default=None, help="Node ID (default: random)")
    parser_node_add.add_argument("--title", default=None, help="Node title")
    parser_node_add.add_argument("--type", default="text", choices=list(NODE_TYPES))
    parser_node_add.add_argument("--content", default=None, help="Inline content")
    parser_node_add.add_argument("--content-file", default=None, help="Read content from file")
    parser_node_show = node_sub.add_parser("show", help="Show a node and its anchors")
    parser_node_show.add_argument("id", help="Node ID")

    parser_anchor = subparsers.add_parser("anchor", help="Manage anchors")
    anchor_sub = parser_anchor.add_subparsers(dest="anchor_cmd", required=True)
    parser_anchor_add = anchor_sub.add_parser("add", help="Create an anchor")
    parser_anchor_add.add_argument("node", help="Node ID")
    extent_group = parser_anchor_add.add_mutually_exclusive_group()
    extent_group.add_argument("--text", nargs=2, metavar=("START", "TEXT"), help="Text span")
    extent_group.add_argument(
        "--image", nargs=4, type=float, metavar=("LEFT", "TOP", "WIDTH", "HEIGHT"), help="Image region"
    )
    extent_group.add_argument("--temporal", type=float, metavar="SECONDS", help="Media timestamp")

    parser_link = subparsers.add_parser("link", help="Manage links")
    link_sub = parser_link.add_subparsers(dest="link_cmd", required=True)
    parser_link_add = link_sub.add_parser("add", help="Link two anchors")
    parser_link_add.add_argument("anchor1", help="First anchor ID")
    parser_link_add.add_argument("anchor2", help="Second anchor ID")

    parser_reconcile = subparsers.add_parser(
        "reconcile", help="Reconcile anchors against edited HTML"
    )
    parser_reconcile.add_argument("node", help="Node ID")
    parser_reconcile.add_argument("file", help="HTML file with the edited content")

    parser_graph = subparsers.add_parser("graph", help="Project the link graph around a node")
    parser_graph.add_argument("node", help="Focal node ID")
    parser_graph.add_argument("--dot", action="store_true", help="Output Graphviz DOT format")

    parser_follow = subparsers.add_parser("follow", help="Follow a link from an anchor")
    parser_follow.add_argument("anchor", help="Anchor ID")

    parser_marks = subparsers.add_parser("marks", help="List linked text spans of a node")
    parser_marks.add_argument("node", help="Node ID")

    subparsers.add_parser("lint", help="Check anchor/link consistency")

    parser_watch = subparsers.add_parser("watch", help="Watch content for edits")
    parser_watch.add_argument(
        "--debounce-ms", type=int, default=150,
        help="Debounce window in milliseconds (default: 150)"
    )

    parser_serve = subparsers.add_parser("serve", help="Start local JSON API server")
    parser_serve.add_argument("--host", default=None, help="Host to bind to (default: from config)")
    parser_serve.add_argument("--port", type=int, default=None, help="Port (default: from config)")
    parser_serve.add_argument(
        "--token", default="auto",
        help="Bearer token (auto|<string>|none, default: auto)"
    )
    parser_serve.add_argument("--cors", action="store_true", help="Enable CORS (default: false)")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        rt = build_runtime(
            db_path=args.db,
            config_path=args.config,
            content_path=args.content,
        )
    except (OSError, ValueError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=args.log_level or rt.config.log.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handlers = {
        "id": cmd_id,
        "load": cmd_load,
        "dump": cmd_dump,
        "link": cmd_link_add,
        "anchor": cmd_anchor_add,
        "reconcile": cmd_reconcile,
        "graph": cmd_graph,
        "follow": cmd_follow,
        "marks": cmd_marks,
        "lint": cmd_lint,
        "watch": cmd_watch,
        "serve": cmd_serve,
    }

    if args.cmd == "node":
        node_handlers = {
            "add": cmd_node_add,
            "show": cmd_node_show,
        }
        handler = node_handlers.get(args.node_cmd)
    else:
        handler = handlers.get(args.cmd)

    if handler:
        try:
            exit_code = handler(args, rt)
        except (AnchorGraphError, OSError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            exit_code = 1
        sys.exit(exit_code)
    else:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
