"""Tests for watch mode functionality."""

import tempfile
import time
from pathlib import Path

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from anchorgraph.adapters.idgen import HexId
from anchorgraph.config import AnchorGraphConfig
from anchorgraph.core.extent import make_text_extent
from anchorgraph.runtime import wire
from anchorgraph.watch import DebounceHandler, reconcile_batch, watch_content


@pytest.fixture
def content_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def batches(content_dir):
    """Handler whose flushed batches are collected in a list."""
    seen = []
    handler = DebounceHandler(content_dir, lambda changed, deleted: seen.append((changed, deleted)), 50)
    return handler, seen


def test_html_changes_are_batched(batches, content_dir):
    handler, seen = batches
    handler.on_created(FileCreatedEvent(str(content_dir / "n1.html")))
    handler.on_modified(FileModifiedEvent(str(content_dir / "n1.html")))
    handler.on_modified(FileModifiedEvent(str(content_dir / "n2.html")))

    handler.flush()

    assert seen == [({"n1", "n2"}, set())]
    assert not handler.changed


def test_non_content_files_are_ignored(batches, content_dir):
    handler, seen = batches
    for name in ("notes.txt", ".n1.html", "n1.html~", "n1.html.swp"):
        handler.on_modified(FileModifiedEvent(str(content_dir / name)))
    handler.on_created(DirCreatedEvent(str(content_dir / "sub.html")))

    handler.flush()

    assert seen == []


def test_deleted_wins_over_changed(batches, content_dir):
    handler, seen = batches
    handler.on_modified(FileModifiedEvent(str(content_dir / "n1.html")))
    handler.on_deleted(FileDeletedEvent(str(content_dir / "n1.html")))

    handler.flush()

    assert seen == [(set(), {"n1"})]


def test_rename_over_original_counts_as_change(batches, content_dir):
    handler, seen = batches
    handler.on_moved(FileMovedEvent(str(content_dir / ".n1.html.tmp"), str(content_dir / "n1.html")))

    handler.flush()

    assert seen == [({"n1"}, set())]


def test_check_and_flush_waits_for_quiet_period(batches, content_dir):
    handler, seen = batches
    handler.on_modified(FileModifiedEvent(str(content_dir / "n1.html")))

    handler.check_and_flush()
    assert seen == []

    time.sleep(0.08)
    handler.check_and_flush()
    assert seen == [({"n1"}, set())]


def test_reconcile_batch(stores, content_dir):
    stores.add_node("n1", content="")
    stores.add_node("n2")
    stores.add_anchor("a1", "n1", make_text_extent("hi", 0))
    stores.add_anchor("a2", "n2")
    stores.add_link("l1", "a1", "a2")
    rt = wire(stores.nodes, stores.anchors, stores.links, AnchorGraphConfig(), HexId())

    html = '<p>oh <a target="a1">hi</a></p>'
    (content_dir / "n1.html").write_text(html, encoding="utf-8")

    results = reconcile_batch(rt, content_dir, {"n1", "gone"})

    # Files that vanished before the batch ran are skipped
    assert list(results) == ["n1"]
    assert results["n1"]["updated"] == 1
    assert stores.nodes._nodes["n1"].content == html
    assert stores.anchors._anchors["a1"].extent == make_text_extent("hi", 3)


def test_reconcile_batch_reports_store_errors(stores, content_dir):
    stores.add_node("n1")
    stores.anchors.fail("get_by_node", "n1")
    rt = wire(stores.nodes, stores.anchors, stores.links, AnchorGraphConfig(), HexId())
    (content_dir / "n1.html").write_text("<p></p>", encoding="utf-8")

    results = reconcile_batch(rt, content_dir, {"n1"})

    assert results["n1"].startswith("error:")


def test_watch_missing_directory(stores, content_dir, capsys):
    rt = wire(stores.nodes, stores.anchors, stores.links, AnchorGraphConfig(), HexId())

    assert watch_content(rt, content_dir / "missing") == 1
    assert "not found" in capsys.readouterr().err
