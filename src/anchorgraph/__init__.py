"""anchorgraph - anchor/link consistency and link-graph projection."""

__version__ = "0.1.0"
