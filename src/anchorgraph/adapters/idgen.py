import secrets

from ..core.ports import IdGenerator


class HexId(IdGenerator):
    """Random ids carrying their kind as a prefix, e.g. ``anchor.3f9a01c2b7e4``."""

    def __init__(self, nbytes: int = 6):
        self.nbytes = nbytes

    def new_id(self, kind: str) -> str:
        return f"{kind}.{secrets.token_hex(self.nbytes)}"
