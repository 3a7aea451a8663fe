"""
Extract anchor marks from the HTML a text node is saved as.

The editor marks an anchored span as ``<a href=... target="anchor.xyz">``.
Offsets are counted on the flattened text: all tags dropped, character
references decoded.
"""

from dataclasses import dataclass, field
from html.parser import HTMLParser

from ..core.extent import TextExtent
from ..core.model import AnchorMark

# Browsing-context keywords are ordinary targets, not anchor references
BROWSING_CONTEXTS = {"_blank", "_self", "_parent", "_top"}


@dataclass
class MarkedContent:
    text: str
    marks: list[AnchorMark] = field(default_factory=list)

    def anchor_ids(self) -> list[str]:
        return [m.anchor_id for m in self.marks]


class _MarkCollector(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.chunks: list[str] = []
        self.length = 0
        self.open_links: list[tuple[str | None, int, int]] = []  # target, offset, chunk index
        self.marks: list[AnchorMark] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag != "a":
            return
        target = dict(attrs).get("target")
        if target is not None:
            target = target.strip()
            if not target or target in BROWSING_CONTEXTS:
                target = None
        self.open_links.append((target, self.length, len(self.chunks)))

    def handle_endtag(self, tag: str) -> None:
        if tag != "a" or not self.open_links:
            return
        target, start, first_chunk = self.open_links.pop()
        if target is None:
            return
        text = "".join(self.chunks[first_chunk:])
        self.marks.append(AnchorMark(target, TextExtent(start, start + len(text), text)))

    def handle_data(self, data: str) -> None:
        self.chunks.append(data)
        self.length += len(data)


def parse_marks(html: str) -> MarkedContent:
    """Flatten ``html`` and collect one AnchorMark per anchored link, in order."""
    collector = _MarkCollector()
    collector.feed(html or "")
    collector.close()
    # Unclosed links run to the end of the content
    while collector.open_links:
        collector.handle_endtag("a")
    return MarkedContent(text="".join(collector.chunks), marks=collector.marks)
