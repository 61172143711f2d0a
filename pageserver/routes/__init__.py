"""HTTP endpoints.

  GET  /                    → 308 redirect to /page/<index page>
  GET  /page/{name}         → HTML shell rendering the named page
  GET  /config/list         → all page configs
  GET  /config/get/{name}   → raw page schema (404 page schema on miss)
  GET  /config/delete/{name}
  POST /config/save         → {"name": ..., "config": "<json text>"}
  GET  /health
"""

from fastapi import APIRouter

from .config import router as config_router
from .pages import router as pages_router

router = APIRouter()
router.include_router(pages_router)
router.include_router(config_router)
