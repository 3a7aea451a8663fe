"""FastAPI application for the anchorgraph local JSON API."""

import secrets
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from .. import __version__
from ..adapters.yaml_codec import read_snapshot
from ..core.errors import InvalidExtent, NotFound, ReferenceInconsistency, StoreUnavailable
from ..core.model import anchor_to_dict, node_to_dict
from ..core.navigation import anchor_marks, follow_link
from ..edits import save_text_content
from ..lint import lint


class ContentUpdate(BaseModel):
    content: str


def create_app(runtime: Any, token: str | None = None, enable_cors: bool = False) -> FastAPI:
    """
    Create FastAPI application with runtime injected.

    Args:
        runtime: Runtime instance with stores, reconciler and projector
        token: Bearer token for authentication (None to disable auth)
        enable_cors: Enable CORS middleware

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="anchorgraph API",
        description="Anchor/link consistency and link-graph projection",
        version=__version__,
        docs_url="/docs" if token is None else None,
        redoc_url="/redoc" if token is None else None,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(InvalidExtent)
    async def invalid_extent(request: Request, exc: InvalidExtent) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(ReferenceInconsistency)
    async def inconsistent(request: Request, exc: ReferenceInconsistency) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    if token:
        security_scheme = HTTPBearer(auto_error=False)

        async def verify_token(
            credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),  # noqa: B008
        ) -> None:
            """Verify bearer token."""
            if credentials is None or credentials.credentials != token:
                raise HTTPException(status_code=401, detail="Invalid or missing token")
    else:

        async def verify_token() -> None:
            """No-op when auth is disabled."""
            return None

    @app.get("/health")
    async def health(auth: None = Depends(verify_token)) -> dict[str, Any]:
        return {"status": "ok", "version": __version__}

    @app.get("/nodes/{node_id}")
    async def get_node(node_id: str, auth: None = Depends(verify_token)) -> dict[str, Any]:
        node = await runtime.nodes.get(node_id)
        anchors = await runtime.anchors.get_by_node(node_id)
        out = node_to_dict(node)
        out["anchors"] = [anchor_to_dict(a) for a in anchors]
        return out

    @app.post("/nodes/{node_id}/reconcile")
    async def reconcile(
        node_id: str, body: ContentUpdate, auth: None = Depends(verify_token)
    ) -> dict[str, Any]:
        """Save edited HTML and reconcile the node's anchors against it."""
        result = await save_text_content(runtime, node_id, body.content)
        out = result.summary()
        out["ok"] = result.ok
        out["errors"] = [str(e) for e in result.errors]
        return out

    @app.get("/nodes/{node_id}/graph")
    async def graph(node_id: str, auth: None = Depends(verify_token)) -> dict[str, Any]:
        projection = await runtime.projector.project_id(node_id)
        return projection.to_dict()

    @app.get("/nodes/{node_id}/marks")
    async def marks(node_id: str, auth: None = Depends(verify_token)) -> list[dict[str, Any]]:
        highlights = await anchor_marks(runtime.anchors, runtime.links, node_id)
        return [
            {
                "anchorId": h.anchor_id,
                "start": h.start,
                "end": h.end,
                "targetNodeId": h.target_node_id,
            }
            for h in highlights
        ]

    @app.get("/anchors/{anchor_id}/follow")
    async def follow(anchor_id: str, auth: None = Depends(verify_token)) -> dict[str, Any]:
        return anchor_to_dict(await follow_link(runtime.anchors, runtime.links, anchor_id))

    @app.get("/lint")
    async def lint_all(auth: None = Depends(verify_token)) -> list[dict[str, Any]]:
        snap = await read_snapshot(runtime.nodes, runtime.anchors, runtime.links)
        return [
            {"rule": rule_id, "severity": f.severity, "message": f.message, "ref": f.ref}
            for rule_id, f in lint(snap)
        ]

    return app


def generate_token() -> str:
    """Generate a random bearer token."""
    return secrets.token_urlsafe(32)
