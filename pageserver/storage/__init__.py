"""Embedded page config storage.

Data layout: a single SQLite file (``pages.db`` by default) holding one
namespace, ``page``, that maps page names to raw JSON documents.

Startup: KeyValueStore.open() creates the file (mode 0600) and namespace,
then SeedLoader writes every bundled ``*.json`` document from the static
directory in one transaction, overwriting same-named pages.

Requests: PageConfigRepository wraps the store with the page conventions:
a missing page reads as FALLBACK_PAGE, saves must be non-empty valid JSON,
deletes are idempotent.
"""

from .errors import (  # noqa: F401
    NameEmpty,
    NestedWriteTransaction,
    ReadOnlyTransaction,
    StorageUnavailable,
    StoreError,
    ValidationError,
)

from .kv import (  # noqa: F401
    DEFAULT_NAMESPACE,
    KeyValueStore,
    Transaction,
)

from .seed import (  # noqa: F401
    DOCUMENT_SUFFIX,
    DirectorySeedSource,
    SeedDocument,
    SeedFailure,
    SeedLoader,
    SeedReport,
    document_name,
    seed_from_directory,
)

from .pages import (  # noqa: F401
    FALLBACK_PAGE,
    Entry,
    PageConfigRepository,
    PageListing,
)
