"""Environment-driven settings (reads ``.env`` via python-dotenv)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

STATIC_DIR = Path(__file__).parent / "static"


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    db_path: Path
    static_dir: Path
    index_page: str
    log_level: str


def get_settings() -> Settings:
    load_dotenv(Path.cwd() / ".env")
    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "80")),
        db_path=Path(os.getenv("DB_PATH", "pages.db")),
        static_dir=Path(os.getenv("STATIC_DIR", str(STATIC_DIR))),
        index_page=os.getenv("INDEX_PAGE", "index"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
