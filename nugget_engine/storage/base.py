"""Persistence collaborator interface.

The engine never writes on its own. Callers hand the NormalizedContent or
UpdatePayload it returns to a ContentStore. Edit mode also reads the stored
document through the same interface.

Update semantics: a field absent from the payload is left as stored; a
field present with None is cleared.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from nugget_engine.core.exceptions import StaleReadError
from nugget_engine.models.schemas import NormalizedContent, PersistedDocument, UpdatePayload


def parse_document(content_id: str, row: dict[str, Any]) -> PersistedDocument:
    """Validate a raw stored row.

    Raises:
        StaleReadError: If the row cannot be read as a document.
    """
    data = {**row, "id": str(row.get("id") or content_id)}
    try:
        return PersistedDocument.model_validate(data)
    except PydanticValidationError as e:
        raise StaleReadError(
            content_id,
            "stored document is malformed",
            {"errors": e.error_count(), "first_error": e.errors()[0]["msg"]},
        ) from e


class ContentStore(ABC):
    """Abstract read/write contract for content documents."""

    @abstractmethod
    async def load_existing_content(self, content_id: str) -> Optional[PersistedDocument]:
        """Load a stored document.

        Returns:
            The document, or None if no document has this id.

        Raises:
            StaleReadError: If the stored row is malformed.
            ContentStoreError: If the backend fails.
        """
        ...

    @abstractmethod
    async def create(self, content: NormalizedContent) -> PersistedDocument:
        """Persist a newly normalized document and return it with its id."""
        ...

    @abstractmethod
    async def apply_update(self, content_id: str, payload: UpdatePayload) -> PersistedDocument:
        """Apply a partial update and return the document as now stored.

        Raises:
            ContentStoreError: If the document does not exist or the backend fails.
        """
        ...
