"""Page config CRUD endpoints.

Every JSON answer uses the BasicResponse envelope with HTTP 200: status 0 on
success, -1 with a message on failure. /config/get returns the raw document.
"""

import logging

from fastapi import APIRouter, Depends, Response

from pageserver.storage import PageConfigRepository, StorageUnavailable

from .deps import get_repository
from .models import BasicResponse, SavePage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/config")


@router.get("/list")
def list_config(repo: PageConfigRepository = Depends(get_repository)):
    """List every stored page config in name order."""
    try:
        listing = repo.list()
    except StorageUnavailable as e:
        logger.warning("List page configs failed: %s", e)
        return BasicResponse(status=-1, msg=str(e), data={"items": [], "total": 0})
    items = [
        {"name": entry.name, "config": entry.document.decode("utf-8", errors="replace")}
        for entry in listing.entries
    ]
    return BasicResponse(status=0, data={"items": items, "total": listing.total})


@router.get("/get/{name}")
def get_config(name: str, repo: PageConfigRepository = Depends(get_repository)):
    """Raw page schema; the 404 page schema when the name is unknown."""
    return Response(content=repo.get(name), media_type="application/json")


@router.get("/delete/{name}")
def delete_config(name: str, repo: PageConfigRepository = Depends(get_repository)):
    repo.delete(name)
    logger.info("Deleted page config: %s", name)
    return BasicResponse(status=0, msg="delete page config successfully")


@router.post("/save")
def save_config(body: SavePage, repo: PageConfigRepository = Depends(get_repository)):
    repo.save(body.name, body.config)
    logger.info("Saved page config: %s", body.name)
    return BasicResponse(status=0, msg="save page config successfully")
