"""Content domain: blog entry models, identity codec and store.

``ContentStore`` maintains the index of headers and hands the raw
persistence step to a backend (in-memory or file based).
"""

from inkwell.content.connection import ConnectionString
from inkwell.content.factory import StoreRegistry, create_store
from inkwell.content.ids import IdCodec
from inkwell.content.models import (
    Attachment,
    DateRange,
    Header,
    HeaderState,
    Index,
    Item,
    SearchRequest,
    SortOrder,
)
from inkwell.content.providers import (
    FileBackend,
    MemoryBackend,
    PersistenceBackend,
    create_backend,
)
from inkwell.content.store import ContentStore

__all__ = [
    "Attachment",
    "ConnectionString",
    "ContentStore",
    "DateRange",
    "FileBackend",
    "Header",
    "HeaderState",
    "IdCodec",
    "Index",
    "Item",
    "MemoryBackend",
    "PersistenceBackend",
    "SearchRequest",
    "SortOrder",
    "StoreRegistry",
    "create_backend",
    "create_store",
]
