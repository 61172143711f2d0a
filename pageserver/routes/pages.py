"""Index redirect, HTML page shell and health check."""

import html
from urllib.parse import quote

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

router = APIRouter()


@router.get("/")
async def index(request: Request):
    """Redirect to the configured index page."""
    name = request.app.state.settings.index_page
    return RedirectResponse(url=f"/page/{quote(name)}", status_code=308)


@router.get("/page/{name}", response_class=HTMLResponse)
async def render_page(name: str, request: Request):
    """amis shell that fetches the page schema from /config/get/{name}."""
    config_url = f"/config/get/{quote(name, safe='')}"
    body = request.app.state.page_template.substitute(
        page_title=html.escape(name),
        schema_api=f"GET:{config_url}",
        config_url=config_url,
    )
    return HTMLResponse(body)


@router.get("/health")
async def health():
    return {"status": "ok"}
