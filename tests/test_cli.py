"""End-to-end tests for the anchorgraph command line."""

import json
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

from anchorgraph import __version__


@pytest.fixture
def workdir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def run(workdir, *args):
    """Run the CLI against a store inside ``workdir``."""
    return subprocess.run(
        [sys.executable, "-m", "anchorgraph.cli", "--db", str(workdir / "graph.sqlite"), *args],
        capture_output=True,
        text=True,
        cwd=workdir,
    )


def ok(workdir, *args):
    result = run(workdir, *args)
    assert result.returncode == 0, result.stderr
    return result.stdout.strip()


@pytest.fixture
def linked(workdir):
    """Two nodes with one link between text anchors; returns the anchor ids."""
    page = workdir / "n1.html"
    page.write_text("<p>hello world</p>", encoding="utf-8")
    ok(workdir, "node", "add", "--id", "n1", "--title", "Essay", "--content-file", str(page))
    ok(workdir, "node", "add", "--id", "n2", "--title", "Notes")
    a1 = ok(workdir, "anchor", "add", "n1", "--text", "0", "hello")
    a2 = ok(workdir, "anchor", "add", "n2", "--text", "0", "notes")
    ok(workdir, "link", "add", a1, a2)
    return a1, a2


def test_version_flag(workdir):
    """--version reports package, python and platform."""
    out = ok(workdir, "--version")
    assert out.startswith(f"anchorgraph {__version__} ")
    assert "python" in out
    assert "platform" in out


def test_version_is_semver():
    parts = __version__.split(".")
    assert len(parts) >= 2
    assert all(p.isdigit() for p in parts[:2])


def test_id_command(workdir):
    assert ok(workdir, "id", "--kind", "anchor").startswith("anchor.")


def test_node_show(workdir, linked):
    a1, _ = linked
    data = json.loads(ok(workdir, "--json", "node", "show", "n1"))
    assert data["title"] == "Essay"
    assert data["content"] == "<p>hello world</p>"
    assert [a["anchorId"] for a in data["anchors"]] == [a1]


def test_graph_json_and_dot(workdir, linked):
    data = json.loads(ok(workdir, "graph", "n1"))
    assert [n["id"] for n in data["nodes"]] == ["n1", "n2"]
    assert len(data["edges"]) == 1

    dot = ok(workdir, "graph", "n1", "--dot")
    assert dot.startswith("graph links {")
    assert '"n1" -- "n2"' in dot


def test_graph_layout_repeats_between_runs(workdir, linked):
    assert ok(workdir, "graph", "n1") == ok(workdir, "graph", "n1")


def test_follow_and_marks(workdir, linked):
    a1, a2 = linked
    assert ok(workdir, "follow", a1).split()[0] == a2
    assert ok(workdir, "marks", "n1") == f"0\t5\t{a1}\tn2"


def test_reconcile_cascade(workdir, linked):
    edited = workdir / "edited.html"
    edited.write_text("<p>hello there</p>", encoding="utf-8")

    summary = json.loads(ok(workdir, "--json", "reconcile", "n1", str(edited)))

    assert summary["deleted_links"] == 1
    assert summary["deleted_anchors"] == 2
    assert summary["errors"] == []
    shown = json.loads(ok(workdir, "--json", "node", "show", "n1"))
    assert shown["content"] == "<p>hello there</p>"
    assert shown["anchors"] == []


def test_reconcile_keeps_anchor_in_content(workdir, linked):
    a1, _ = linked
    edited = workdir / "edited.html"
    edited.write_text(f'<p>so <a target="{a1}">hello</a> world</p>', encoding="utf-8")

    out = ok(workdir, "reconcile", "n1", str(edited))

    assert "Updated: 1" in out
    assert "Deleted anchors: 0" in out


def test_dump_then_load_into_fresh_store(workdir, linked):
    snapshot = workdir / "graph.yaml"
    ok(workdir, "dump", str(snapshot))

    fresh = workdir / "fresh"
    fresh.mkdir()
    counts = json.loads(ok(fresh, "--json", "load", str(snapshot)))

    assert counts == {"nodes": 2, "anchors": 2, "links": 1}
    assert json.loads(ok(fresh, "graph", "n2"))["nodes"][1]["id"] == "n1"


def test_lint(workdir, linked):
    assert ok(workdir, "lint") == "No findings"

    ok(workdir, "anchor", "add", "n2")
    result = run(workdir, "--json", "lint")
    assert result.returncode == 0
    findings = json.loads(result.stdout)
    assert [f["rule"] for f in findings] == ["linkless-anchors"]


def test_errors_exit_nonzero(workdir):
    missing = run(workdir, "node", "show", "ghost")
    assert missing.returncode == 1
    assert "Error:" in missing.stderr

    bad_link = run(workdir, "link", "add", "anchor.x", "anchor.y")
    assert bad_link.returncode == 1

    ok(workdir, "node", "add", "--id", "n1")
    bad_extent = run(workdir, "anchor", "add", "n1", "--image", "0", "0", "-1", "1")
    assert bad_extent.returncode == 1


def test_bad_config_is_reported(workdir):
    (workdir / "anchorgraph.toml").write_text("[layout]\ny_multiple = 0\n")
    result = run(workdir, "id")
    assert result.returncode == 1
    assert "configuration" in result.stderr
