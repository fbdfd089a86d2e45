"""Supabase-backed content store.

Documents live one per row in `settings.content_table` (default "articles"),
with columns named after the document fields.
"""

from typing import Any, Optional

import structlog
from supabase import Client, create_client

from nugget_engine.config.settings import Settings, get_settings
from nugget_engine.core.exceptions import ConfigurationError, ContentStoreError
from nugget_engine.models.schemas import NormalizedContent, PersistedDocument, UpdatePayload
from nugget_engine.storage.base import ContentStore, parse_document

logger = structlog.get_logger(__name__)


def create_supabase_client(settings: Optional[Settings] = None) -> Client:
    """Build a Supabase client from settings.

    Raises:
        ConfigurationError: If the URL or key is not configured.
    """
    settings = settings or get_settings()
    if not settings.supabase_url:
        raise ConfigurationError("Supabase URL not configured", "supabase_url")
    if not settings.supabase_key:
        raise ConfigurationError("Supabase key not configured", "supabase_key")
    return create_client(settings.supabase_url, settings.supabase_key.get_secret_value())


class SupabaseContentStore(ContentStore):
    """Content store over a Supabase table."""

    def __init__(
        self,
        client: Optional[Client] = None,
        settings: Optional[Settings] = None,
    ):
        self._settings = settings or get_settings()
        self._client = client or create_supabase_client(self._settings)
        self._table = self._settings.content_table

    def _first_row(self, data: Any) -> Optional[dict[str, Any]]:
        if isinstance(data, list):
            return data[0] if data else None
        return data or None

    async def load_existing_content(self, content_id: str) -> Optional[PersistedDocument]:
        try:
            result = (
                self._client.table(self._table)
                .select("*")
                .eq("id", content_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("content_load_failed", content_id=content_id, error=str(e))
            raise ContentStoreError(
                f"Failed to load content {content_id}",
                {"content_id": content_id, "original_error": str(e)},
            ) from e

        row = self._first_row(result.data)
        if row is None:
            return None
        return parse_document(content_id, row)

    async def create(self, content: NormalizedContent) -> PersistedDocument:
        try:
            result = self._client.table(self._table).insert(content.model_dump(mode="json")).execute()
        except Exception as e:
            logger.error("content_create_failed", error=str(e))
            raise ContentStoreError(
                "Failed to create content", {"original_error": str(e)}
            ) from e

        row = self._first_row(result.data)
        if row is None or not row.get("id"):
            raise ContentStoreError("Insert returned no row")
        logger.info("content_created", content_id=str(row["id"]), store="supabase")
        return parse_document(str(row["id"]), row)

    async def apply_update(self, content_id: str, payload: UpdatePayload) -> PersistedDocument:
        changes = payload.to_update_dict()
        if not changes:
            existing = await self.load_existing_content(content_id)
            if existing is None:
                raise ContentStoreError(
                    f"Cannot update missing content {content_id}",
                    {"content_id": content_id},
                )
            return existing

        try:
            result = (
                self._client.table(self._table)
                .update(changes)
                .eq("id", content_id)
                .execute()
            )
        except Exception as e:
            logger.error("content_update_failed", content_id=content_id, error=str(e))
            raise ContentStoreError(
                f"Failed to update content {content_id}",
                {"content_id": content_id, "original_error": str(e)},
            ) from e

        row = self._first_row(result.data)
        if row is None:
            raise ContentStoreError(
                f"Cannot update missing content {content_id}",
                {"content_id": content_id},
            )
        logger.info(
            "content_updated",
            content_id=content_id,
            store="supabase",
            fields=sorted(changes),
            cleared=sorted(payload.cleared_fields),
        )
        return parse_document(content_id, row)
