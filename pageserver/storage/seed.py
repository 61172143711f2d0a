"""Bundled seed documents and the loader that merges them into the store.

Seed files live in a directory (``pageserver/static`` by default). Every file
whose name ends with ``.json`` is a page document named after the file with
the suffix stripped; anything else (the HTML shell, assets) is ignored.

Seeding always overwrites: a stored page that shares its name with a seed file
is reset to the bundled version on every start. Pages with other names are
never touched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from .errors import StoreError
from .kv import KeyValueStore

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".json"


@dataclass(frozen=True)
class SeedDocument:
    filename: str
    name: str
    read: Callable[[], bytes]


@dataclass(frozen=True)
class SeedFailure:
    filename: str
    error: Exception


@dataclass
class SeedReport:
    loaded: list[str] = field(default_factory=list)
    failures: list[SeedFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def document_name(filename: str, suffix: str = DOCUMENT_SUFFIX) -> str | None:
    """Page name for a seed filename, or None if it is not a document.

    "index.json" → "index", ".json" → "", "page.html" → None
    """
    if not filename.endswith(suffix):
        return None
    return filename[: len(filename) - len(suffix)]


class DirectorySeedSource:
    """Enumerates seed documents under ``root``, depth-first in lexical order."""

    def __init__(self, root: Path, suffix: str = DOCUMENT_SUFFIX) -> None:
        self.root = Path(root)
        self.suffix = suffix

    def __iter__(self) -> Iterator[SeedDocument]:
        if not self.root.is_dir():
            logger.warning("Seed directory not found: %s", self.root)
            return
        paths = sorted(
            (p for p in self.root.rglob("*") if p.is_file()),
            key=lambda p: p.relative_to(self.root).parts,
        )
        for path in paths:
            name = document_name(path.name, self.suffix)
            if name is None:
                continue
            yield SeedDocument(
                filename=path.relative_to(self.root).as_posix(),
                name=name,
                read=path.read_bytes,
            )


class SeedLoader:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load(self, source: Iterable[SeedDocument]) -> SeedReport:
        """Write every seed document in one transaction.

        A document that cannot be read or written is logged, recorded in the
        report and skipped. Only a failure of the transaction itself raises.
        """
        report = SeedReport()
        with self._store.update() as tx:
            for doc in source:
                try:
                    data = doc.read()
                except OSError as e:
                    logger.warning("Read page data failed, filename: %s, err: %s", doc.filename, e)
                    report.failures.append(SeedFailure(doc.filename, e))
                    continue
                try:
                    tx.put(doc.name, data)
                except StoreError as e:
                    logger.warning("Failed to write page data, filename: %s, err: %s", doc.filename, e)
                    report.failures.append(SeedFailure(doc.filename, e))
                    continue
                logger.info("Loaded page data, file: %s", doc.filename)
                report.loaded.append(doc.name)
        return report


def seed_from_directory(store: KeyValueStore, root: Path) -> SeedReport:
    return SeedLoader(store).load(DirectorySeedSource(root))
