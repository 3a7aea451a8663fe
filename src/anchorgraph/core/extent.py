"""
Extents: where an anchor attaches inside a node's content.

One variant per content kind. ``None`` stands for an anchor on the whole
node. Values are frozen so equality is structural.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .errors import InvalidExtent


@dataclass(frozen=True)
class TextExtent:
    start_character: int  # offsets into the flattened text
    end_character: int
    text: str

    type = "text"


@dataclass(frozen=True)
class ImageExtent:
    left: float  # content-local pixels
    top: float
    width: float
    height: float

    type = "image"


@dataclass(frozen=True)
class TemporalExtent:
    start_timestamp: float  # playback seconds

    type = "temporal"


Extent = Union[TextExtent, ImageExtent, TemporalExtent]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def make_text_extent(text: str, start_character: int, end_character: int | None = None) -> TextExtent:
    """Build a text extent, deriving the end from the text length if omitted."""
    if end_character is None:
        end_character = start_character + len(text)
    extent = TextExtent(start_character, end_character, text)
    if not is_valid(extent):
        raise InvalidExtent(
            f"text extent [{start_character}, {end_character}) does not span {len(text)} characters"
        )
    return extent


def make_image_extent(
    left: float | None = None,
    top: float | None = None,
    width: float | None = None,
    height: float | None = None,
) -> ImageExtent:
    """Build an image extent; omitted fields give a unit rectangle at the origin."""
    extent = ImageExtent(
        left=0 if left is None else left,
        top=0 if top is None else top,
        width=1 if width is None else width,
        height=1 if height is None else height,
    )
    if not is_valid(extent):
        raise InvalidExtent(f"image extent has negative size {extent.width}x{extent.height}")
    return extent


def make_temporal_extent(start_timestamp: float) -> TemporalExtent:
    extent = TemporalExtent(start_timestamp)
    if not is_valid(extent):
        raise InvalidExtent(f"temporal extent starts before zero: {start_timestamp}")
    return extent


def is_valid(obj: Any) -> bool:
    """
    Structural check for an extent or its dict form.

    ``None`` is a valid extent. Text extents must satisfy
    ``start <= end`` and ``end - start == len(text)``.
    """
    if obj is None:
        return True
    if isinstance(obj, dict):
        try:
            obj = extent_from_dict(obj, validate=False)
        except InvalidExtent:
            return False
    if isinstance(obj, TextExtent):
        if not (
            isinstance(obj.text, str)
            and isinstance(obj.start_character, int)
            and isinstance(obj.end_character, int)
        ):
            return False
        if obj.start_character > obj.end_character:
            return False
        return obj.end_character - obj.start_character == len(obj.text)
    if isinstance(obj, ImageExtent):
        fields = (obj.left, obj.top, obj.width, obj.height)
        if not all(_is_number(v) for v in fields):
            return False
        return obj.width >= 0 and obj.height >= 0
    if isinstance(obj, TemporalExtent):
        return _is_number(obj.start_timestamp) and obj.start_timestamp >= 0
    return False


def equals(a: Extent | None, b: Extent | None) -> bool:
    """Structural equality; two ``None`` extents are equal."""
    if a is None or b is None:
        return a is None and b is None
    return type(a) is type(b) and a == b


def extent_to_dict(extent: Extent | None) -> dict[str, Any] | None:
    """Serialize using the client's field names."""
    if extent is None:
        return None
    if isinstance(extent, TextExtent):
        return {
            "type": "text",
            "startCharacter": extent.start_character,
            "endCharacter": extent.end_character,
            "text": extent.text,
        }
    if isinstance(extent, ImageExtent):
        return {
            "type": "image",
            "left": extent.left,
            "top": extent.top,
            "width": extent.width,
            "height": extent.height,
        }
    if isinstance(extent, TemporalExtent):
        return {"type": "temporal", "startTimestamp": extent.start_timestamp}
    raise InvalidExtent(f"not an extent: {extent!r}")


def extent_from_dict(data: dict[str, Any] | None, validate: bool = True) -> Extent | None:
    """Inverse of :func:`extent_to_dict`. Raises InvalidExtent on bad input."""
    if data is None:
        return None
    if not isinstance(data, dict):
        raise InvalidExtent(f"extent must be a mapping, got {type(data).__name__}")

    kind = data.get("type")
    try:
        if kind == "text":
            extent: Extent = TextExtent(
                start_character=data["startCharacter"],
                end_character=data["endCharacter"],
                text=data["text"],
            )
        elif kind == "image":
            extent = ImageExtent(
                left=data["left"],
                top=data["top"],
                width=data["width"],
                height=data["height"],
            )
        elif kind == "temporal":
            extent = TemporalExtent(start_timestamp=data["startTimestamp"])
        else:
            raise InvalidExtent(f"unknown extent type {kind!r}")
    except KeyError as e:
        raise InvalidExtent(f"{kind} extent missing field {e.args[0]}") from e

    if validate and not is_valid(extent):
        raise InvalidExtent(f"invalid {kind} extent: {data}")
    return extent


def text_extent_from_selection(flat_text: str, from_: int, to: int) -> TextExtent | None:
    """Extent for a text selection; an empty selection selects nothing."""
    if from_ == to:
        return None
    start, end = min(from_, to), max(from_, to)
    return make_text_extent(flat_text[start:end], start, end)


def image_extent_from_drag(x1: float, y1: float, x2: float, y2: float) -> ImageExtent:
    """Rectangle spanned by a drag, whichever corner it started from."""
    return make_image_extent(
        left=min(x1, x2),
        top=min(y1, y2),
        width=abs(x2 - x1),
        height=abs(y2 - y1),
    )
