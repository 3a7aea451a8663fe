"""Error kinds raised by the stores and the core."""


class AnchorGraphError(Exception):
    """Base class for every anchorgraph error."""


class StoreUnavailable(AnchorGraphError):
    """Transport or backend failure while talking to a store."""


class NotFound(AnchorGraphError):
    """A referenced node, anchor or link is absent."""

    def __init__(self, kind: str, id: str):
        super().__init__(f"{kind} {id} not found")
        self.kind = kind
        self.id = id


class InvalidExtent(AnchorGraphError):
    """A constructed or decoded extent breaks its invariant."""


class ReferenceInconsistency(AnchorGraphError):
    """A link points at a missing anchor, or an anchor at a missing node."""
