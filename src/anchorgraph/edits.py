"""Saving an edited text node: reconcile its anchors, then store the content."""

import logging
from dataclasses import replace
from typing import Any

from .adapters.html_marks import parse_marks
from .core.errors import NotFound
from .core.model import NodeId
from .core.reconciler import ReconcileResult

logger = logging.getLogger(__name__)


async def save_text_content(rt: Any, node_id: NodeId, html: str) -> ReconcileResult:
    """
    Reconcile ``node_id``'s anchors against ``html`` and persist the html.

    Raises StoreUnavailable when the node's anchors cannot be read; the
    content is not saved in that case.
    """
    marked = parse_marks(html)
    result = await rt.reconciler.reconcile(node_id, marked.marks)

    try:
        node = await rt.nodes.get(node_id)
    except NotFound:
        logger.info("Node %s not in store, content not saved", node_id)
        return result
    if node.content != html:
        await rt.nodes.put(replace(node, content=html))
    return result
