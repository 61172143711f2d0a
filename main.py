"""Page Server — production launcher. Opens the store, seeds it, serves HTTP."""

import argparse
import logging
from dataclasses import replace
from pathlib import Path

import uvicorn

from pageserver.app import create_app
from pageserver.settings import get_settings
from pageserver.storage import KeyValueStore


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Page Server")
    parser.add_argument("--host", default=settings.host,
                        help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port,
                        help=f"Listen port (default: {settings.port})")
    parser.add_argument("--db", type=Path, default=settings.db_path,
                        help=f"Store file (default: {settings.db_path})")
    args = parser.parse_args()
    settings = replace(settings, host=args.host, port=args.port, db_path=args.db)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # StorageUnavailable here is fatal: let it end the process.
    store = KeyValueStore.open(settings.db_path)
    try:
        app = create_app(settings, store=store)
        print(f"Starting page server on http://{settings.host}:{settings.port} ...")
        uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    finally:
        store.close()


if __name__ == "__main__":
    main()
