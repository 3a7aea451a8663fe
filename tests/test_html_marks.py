"""Tests for extracting anchor marks from saved HTML."""

from anchorgraph.adapters.html_marks import parse_marks
from anchorgraph.core.extent import TextExtent


def test_offsets_count_flattened_text():
    html = '<p>Hello <b>big</b> <a href="#" target="anchor.1">world</a>!</p>'

    content = parse_marks(html)

    assert content.text == "Hello big world!"
    assert content.anchor_ids() == ["anchor.1"]
    assert content.marks[0].extent == TextExtent(10, 15, "world")


def test_several_marks_in_order():
    html = (
        '<a target="anchor.a">one</a> and '
        '<a target="anchor.b">two</a>'
    )
    content = parse_marks(html)

    assert [(m.anchor_id, m.extent.start_character) for m in content.marks] == [
        ("anchor.a", 0),
        ("anchor.b", 8),
    ]


def test_plain_links_and_browsing_contexts_are_ignored():
    html = (
        '<a href="https://example.org">site</a> '
        '<a href="https://example.org" target="_blank">new tab</a> '
        '<a target="  ">blank</a>'
    )
    assert parse_marks(html).marks == []


def test_character_references_count_once():
    content = parse_marks('a &amp; b <a target="anchor.x">&lt;c&gt;</a>')

    assert content.text == "a & b <c>"
    assert content.marks[0].extent == TextExtent(6, 9, "<c>")


def test_marked_text_spanning_tags():
    content = parse_marks('<a target="anchor.x">one <i>two</i></a> three')
    assert content.marks[0].extent == TextExtent(0, 7, "one two")


def test_unclosed_link_runs_to_end():
    content = parse_marks('start <a target="anchor.x">tail')
    assert content.marks[0].extent == TextExtent(6, 10, "tail")


def test_empty_content():
    content = parse_marks("")
    assert content.text == ""
    assert content.marks == []
    assert parse_marks(None).marks == []


def test_marks_are_valid_text_extents():
    content = parse_marks('<div><a target="anchor.q">quoted</a></div>')
    extent = content.marks[0].extent
    assert extent.end_character - extent.start_character == len(extent.text)


def test_many_marks_in_long_document():
    """Each mark's text is taken from its own span only."""
    parts = []
    for i in range(2000):
        parts.append(f'<p>para {i:04d} <a target="anchor.{i}">w{i:04d}</a></p>')
    content = parse_marks("".join(parts))

    assert len(content.marks) == 2000
    for i in (0, 1, 999, 1999):
        mark = content.marks[i]
        assert mark.anchor_id == f"anchor.{i}"
        assert mark.extent.text == f"w{i:04d}"
        assert content.text[mark.extent.start_character:mark.extent.end_character] == f"w{i:04d}"
