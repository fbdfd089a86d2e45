"""
Persistence collaborators.

- base: ContentStore read/write contract
- memory: dict-backed store for tests and local runs
- supabase_store: Supabase table store (import directly; needs credentials)
"""

from nugget_engine.storage.base import ContentStore, parse_document
from nugget_engine.storage.memory import InMemoryContentStore

__all__ = [
    "ContentStore",
    "InMemoryContentStore",
    "parse_document",
]
