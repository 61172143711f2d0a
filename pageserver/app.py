"""Application factory: opens the store, seeds it, wires the routes."""

import logging
from pathlib import Path
from string import Template

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pageserver.routes import router
from pageserver.routes.models import BasicResponse
from pageserver.settings import STATIC_DIR, Settings, get_settings
from pageserver.storage import (
    KeyValueStore,
    PageConfigRepository,
    StorageUnavailable,
    StoreError,
    seed_from_directory,
)

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = "page.html"


def _load_page_template(static_dir: Path) -> Template:
    path = static_dir / PAGE_TEMPLATE
    if not path.is_file():
        path = STATIC_DIR / PAGE_TEMPLATE
    return Template(path.read_text(encoding="utf-8"))


def _error_response(msg: str) -> JSONResponse:
    return JSONResponse(BasicResponse(status=-1, msg=msg).model_dump())


def create_app(settings: Settings | None = None, store: KeyValueStore | None = None) -> FastAPI:
    """Build the app around ``store`` (opened from settings.db_path if not given).

    Raises StorageUnavailable when the store cannot be opened or seeded.
    """
    settings = settings or get_settings()
    if store is None:
        store = KeyValueStore.open(settings.db_path)

    report = seed_from_directory(store, settings.static_dir)
    logger.info("Seeded %d page config(s) from %s", len(report.loaded), settings.static_dir)
    for failure in report.failures:
        logger.warning("Seed skipped %s: %s", failure.filename, failure.error)

    app = FastAPI(title="Page Server")
    app.state.settings = settings
    app.state.store = store
    app.state.seed_report = report
    app.state.repository = PageConfigRepository(store)
    app.state.page_template = _load_page_template(settings.static_dir)
    app.include_router(router)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        if isinstance(exc, StorageUnavailable):
            logger.error("Storage error on %s: %s", request.url.path, exc)
        return _error_response(str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        msg = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return _error_response(msg)

    return app
