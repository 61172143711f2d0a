"""Page config CRUD on top of the key-value store."""

from __future__ import annotations

import json
from dataclasses import dataclass

from .errors import NameEmpty, ValidationError
from .kv import KeyValueStore

# Served for any name that has no stored page; a valid amis page itself.
FALLBACK_PAGE = json.dumps(
    {
        "type": "page",
        "title": "404",
        "body": [
            {
                "type": "markdown",
                "value": "# 🚫 Oops, no page config found\n[👉 Back to the page list](/)",
            }
        ],
        "regions": ["body"],
    },
    ensure_ascii=False,
    separators=(",", ":"),
).encode("utf-8")


@dataclass(frozen=True)
class Entry:
    name: str
    document: bytes


@dataclass(frozen=True)
class PageListing:
    entries: list[Entry]
    total: int


class PageConfigRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def list(self) -> PageListing:
        """All stored pages in name order.

        Raises StorageUnavailable if the namespace cannot be read; callers
        that only display the list can treat that as empty.
        """
        entries: list[Entry] = []
        self._store.for_each(lambda name, doc: entries.append(Entry(name, doc)))
        return PageListing(entries=entries, total=len(entries))

    def get(self, name: str) -> bytes:
        """Stored document for ``name``, or FALLBACK_PAGE when there is none."""
        if not name:
            return FALLBACK_PAGE
        doc = self._store.get(name)
        if not doc:
            return FALLBACK_PAGE
        return doc

    def save(self, name: str, document: bytes | str) -> None:
        if not name:
            raise NameEmpty()
        data = document.encode("utf-8") if isinstance(document, str) else bytes(document)
        if not data.strip():
            raise ValidationError("config is empty")
        try:
            json.loads(data)
        except ValueError as e:
            raise ValidationError(f"config is not valid JSON: {e}") from e
        self._store.put(name, data)

    def delete(self, name: str) -> None:
        if not name:
            raise NameEmpty()
        self._store.delete(name)
