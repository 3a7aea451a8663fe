"""Watch mode - reconcile text nodes whenever their saved HTML changes."""

import asyncio
import json
import signal
import sys
import time
from pathlib import Path
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core.errors import AnchorGraphError
from .edits import save_text_content

CONTENT_SUFFIX = ".html"


class DebounceHandler(FileSystemEventHandler):
    """File system event handler with debouncing."""

    def __init__(
        self,
        content_path: Path,
        on_batch: Callable[[set[str], set[str]], None] | None,
        debounce_ms: int = 150,
    ):
        super().__init__()
        self.content_path = content_path
        self.on_batch = on_batch
        self.debounce_ms = debounce_ms

        # Pending changes by node id
        self.changed: set[str] = set()
        self.deleted: set[str] = set()
        self.last_event_time = 0.0

    def _extract_id(self, path: Path) -> str | None:
        name = path.name
        if name.startswith(".") or name.endswith("~") or name.endswith(".swp"):
            return None
        if path.suffix != CONTENT_SUFFIX:
            return None
        return path.stem

    def _record(self, event: FileSystemEvent, bucket: set[str]) -> None:
        if event.is_directory:
            return
        node_id = self._extract_id(Path(str(event.src_path)))
        if node_id:
            bucket.add(node_id)
            self.last_event_time = time.time()

    def on_created(self, event: FileSystemEvent) -> None:
        self._record(event, self.changed)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._record(event, self.changed)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._record(event, self.deleted)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors often save by renaming a temp file over the original
        dest = getattr(event, "dest_path", None)
        if event.is_directory or not dest:
            return
        node_id = self._extract_id(Path(str(dest)))
        if node_id:
            self.changed.add(node_id)
            self.last_event_time = time.time()

    def check_and_flush(self) -> None:
        """Flush once the debounce window has passed since the last event."""
        if not (self.changed or self.deleted):
            return
        elapsed = (time.time() - self.last_event_time) * 1000
        if elapsed >= self.debounce_ms:
            self.flush()

    def flush(self) -> None:
        if not (self.changed or self.deleted):
            return

        deleted = set(self.deleted)
        changed = self.changed - deleted

        self.changed.clear()
        self.deleted.clear()

        if self.on_batch:
            self.on_batch(changed, deleted)


def reconcile_batch(rt: Any, content_path: Path, changed: set[str]) -> dict[str, Any]:
    """Reconcile every changed node; returns per-node summaries or error strings."""

    async def _run() -> dict[str, Any]:
        out: dict[str, Any] = {}
        for node_id in sorted(changed):
            path = content_path / f"{node_id}{CONTENT_SUFFIX}"
            if not path.exists():
                continue
            html = path.read_text(encoding="utf-8")
            try:
                result = await save_text_content(rt, node_id, html)
            except AnchorGraphError as e:
                out[node_id] = f"error: {e}"
            else:
                out[node_id] = result.summary()
        return out

    return asyncio.run(_run())


def watch_content(
    rt: Any,
    content_path: Path,
    debounce_ms: int = 150,
    quiet: bool = False,
    json_output: bool = False,
) -> int:
    """
    Watch the content directory and reconcile edited text nodes.

    Args:
        rt: Runtime instance
        content_path: Directory holding <node id>.html files
        debounce_ms: Debounce window in milliseconds
        quiet: Suppress output
        json_output: Output JSON events instead of human-readable

    Returns:
        Exit code
    """
    if not content_path.exists():
        print(f"Error: Content directory not found: {content_path}", file=sys.stderr)
        return 1

    running = True

    def handle_batch(changed: set[str], deleted: set[str]) -> None:
        start_time = time.time()
        results = reconcile_batch(rt, content_path, changed)
        duration_ms = int((time.time() - start_time) * 1000)

        if json_output:
            event = {
                "type": "batch",
                "reconciled": results,
                "deleted": sorted(deleted),
                "duration_ms": duration_ms,
            }
            print(json.dumps(event), flush=True)
            return
        if quiet:
            return
        for node_id, summary in results.items():
            if isinstance(summary, str):
                print(f"{node_id}: {summary}", file=sys.stderr, flush=True)
            else:
                print(
                    f"{node_id}: ~{summary['updated']} -{summary['deleted_anchors']} anchors "
                    f"-{summary['deleted_links']} links ({duration_ms}ms)",
                    flush=True,
                )
        for node_id in sorted(deleted):
            print(f"{node_id}: content file removed, anchors left untouched", flush=True)

    def signal_handler(signum: int, frame: Any) -> None:
        nonlocal running
        running = False
        if not quiet and not json_output:
            print("\nShutting down...", flush=True)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    handler = DebounceHandler(content_path, handle_batch, debounce_ms)
    observer = Observer()
    observer.schedule(handler, str(content_path), recursive=False)

    if not quiet and not json_output:
        print(f"Watching {content_path} (debounce: {debounce_ms}ms)", flush=True)
        print("Press Ctrl+C to stop", flush=True)

    observer.start()

    try:
        while running:
            time.sleep(0.1)
            handler.check_and_flush()
    finally:
        handler.flush()
        observer.stop()
        observer.join()

    if not quiet and not json_output:
        print("Watch stopped", flush=True)

    return 0
