from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse

from linkpreview.models.metadata.schemas import ErrorResponse
from linkpreview.services.preview.resolver import PreviewResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/preview", tags=["preview"])


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_resolver(request: Request) -> PreviewResolver:
    """FastAPI dependency returning the resolver built in the app lifespan."""
    return request.app.state.resolver


# ---------------------------------------------------------------------------
# GET /preview
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_class=HTMLResponse,
    summary="Render the link preview fragment for a URL",
)
async def get_preview(
    url: str,
    resolver: PreviewResolver = Depends(_get_resolver),
) -> HTMLResponse:
    """Return the HTML preview fragment for *url*.

    Served from the metadata cache when possible; otherwise the page is
    fetched and the result cached.  A page that cannot be fetched still
    yields **200** with an inline error fragment, exactly what a template
    would embed.

    - **200** - preview (or error) fragment
    - **422** - ``url`` query parameter missing
    """
    return HTMLResponse(await resolver.resolve(url))


# ---------------------------------------------------------------------------
# GET /preview/metadata
# ---------------------------------------------------------------------------


@router.get(
    "/metadata",
    responses={404: {"model": ErrorResponse}},
    summary="Return the cached metadata for a URL",
)
async def get_cached_metadata(
    url: str,
    resolver: PreviewResolver = Depends(_get_resolver),
) -> JSONResponse:
    """Return the cached metadata document for *url* without fetching it.

    - **200** - cached document, using the on-disk key names
    - **404** - nothing cached for this URL yet
    - **422** - ``url`` query parameter missing
    """
    doc = await resolver.lookup(url)
    if doc is None:
        raise HTTPException(status_code=404, detail=f"No metadata cached for {url}")
    return JSONResponse(content=doc.model_dump(mode="json", by_alias=True))
