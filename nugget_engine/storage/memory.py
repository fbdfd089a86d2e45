"""In-memory content store for tests, the CLI and local runs."""

import copy
from typing import Any, Optional
from uuid import uuid4

import structlog

from nugget_engine.core.exceptions import ContentStoreError
from nugget_engine.models.schemas import NormalizedContent, PersistedDocument, UpdatePayload
from nugget_engine.storage.base import ContentStore, parse_document

logger = structlog.get_logger(__name__)


class InMemoryContentStore(ContentStore):
    """Dict-backed store holding raw JSON rows.

    Rows are stored as plain dicts, so seed() can hold first-generation or
    malformed documents exactly as a real table would.
    """

    def __init__(self) -> None:
        self._rows: dict[str, dict[str, Any]] = {}

    def seed(self, content_id: str, row: dict[str, Any]) -> None:
        """Insert a raw row without validation."""
        self._rows[content_id] = {**copy.deepcopy(row), "id": content_id}

    def raw(self, content_id: str) -> Optional[dict[str, Any]]:
        row = self._rows.get(content_id)
        return copy.deepcopy(row) if row is not None else None

    async def load_existing_content(self, content_id: str) -> Optional[PersistedDocument]:
        row = self._rows.get(content_id)
        if row is None:
            return None
        return parse_document(content_id, copy.deepcopy(row))

    async def create(self, content: NormalizedContent) -> PersistedDocument:
        content_id = uuid4().hex
        self._rows[content_id] = {**content.model_dump(mode="json"), "id": content_id}
        logger.info("content_created", content_id=content_id, store="memory")
        return parse_document(content_id, copy.deepcopy(self._rows[content_id]))

    async def apply_update(self, content_id: str, payload: UpdatePayload) -> PersistedDocument:
        row = self._rows.get(content_id)
        if row is None:
            raise ContentStoreError(
                f"Cannot update missing content {content_id}",
                {"content_id": content_id},
            )

        changes = payload.to_update_dict()
        row.update(changes)
        logger.info(
            "content_updated",
            content_id=content_id,
            store="memory",
            fields=sorted(changes),
            cleared=sorted(payload.cleared_fields),
        )
        return parse_document(content_id, copy.deepcopy(row))

    def __len__(self) -> int:
        return len(self._rows)
