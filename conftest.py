from pathlib import Path

import pytest

from pageserver.settings import Settings
from pageserver.storage import KeyValueStore, PageConfigRepository


def _write_files(directory: Path, files: dict[str, str]) -> Path:
    for rel, text in files.items():
        path = directory / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    return directory


@pytest.fixture
def make_seed_dir(tmp_path):
    """Factory: write {relative path: text} under a fresh seed directory."""
    def make(files: dict[str, str], name: str = "seed") -> Path:
        return _write_files(tmp_path / name, files)
    return make


@pytest.fixture
def store(tmp_path):
    """Fresh store in a temp dir; closed after the test."""
    kv = KeyValueStore.open(tmp_path / "pages.db")
    yield kv
    kv.close()


@pytest.fixture
def repo(store):
    return PageConfigRepository(store)


@pytest.fixture
def seed_dir(make_seed_dir):
    return make_seed_dir({
        "home.json": '{"type":"page","title":"Home"}',
        "about.json": '{"type":"page","title":"About"}',
        "page.html": "<title>$page_title</title>$schema_api $config_url",
    }, name="static")


@pytest.fixture
def settings(tmp_path, seed_dir):
    return Settings(
        host="127.0.0.1",
        port=8080,
        db_path=tmp_path / "pages.db",
        static_dir=seed_dir,
        index_page="home",
        log_level="INFO",
    )
