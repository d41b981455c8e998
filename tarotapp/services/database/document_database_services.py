# tarotapp/services/database/document_database_services.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tarotapp.models.database_models.user_document import UserDocument

logger = logging.getLogger(__name__)


class RemoteStoreError(Exception):
    pass


class DocumentStore(Protocol):
    async def fetch_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        ...

    async def set_document(self, collection: str, key: str, fields: Dict[str, Any]) -> None:
        ...

    async def update_fields(self, collection: str, key: str, fields: Dict[str, Any]) -> None:
        ...


def to_storable(value: Any) -> Any:
    """Datetimes become epoch seconds so the field map fits a JSON column."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, dict):
        return {k: to_storable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_storable(v) for v in value]
    return value


class SqlDocumentStore:
    """
    Document store on top of a single `user_documents` table.

    `session_factory` is an async_sessionmaker / sessionmaker bound to an
    AsyncEngine; every call opens its own session.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _get(self, db: AsyncSession, collection: str, key: str) -> Optional[UserDocument]:
        result = await db.execute(
            select(UserDocument).where(UserDocument.collection == collection, UserDocument.key == key)
        )
        return result.scalars().first()

    async def fetch_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.session_factory() as db:
                document = await self._get(db, collection, key)
                if document is None:
                    return None
                return dict(document.fields or {})
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch {collection}/{key}: {e}")
            raise RemoteStoreError(f"Could not fetch {collection}/{key}") from e

    async def set_document(self, collection: str, key: str, fields: Dict[str, Any]) -> None:
        try:
            async with self.session_factory() as db:
                document = await self._get(db, collection, key)
                if document is None:
                    db.add(UserDocument(collection=collection, key=key, fields=to_storable(fields)))
                else:
                    document.fields = to_storable(fields)
                    document.updated_at = datetime.now(timezone.utc)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to set {collection}/{key}: {e}")
            raise RemoteStoreError(f"Could not write {collection}/{key}") from e

    async def update_fields(self, collection: str, key: str, fields: Dict[str, Any]) -> None:
        try:
            async with self.session_factory() as db:
                document = await self._get(db, collection, key)
                if document is None:
                    raise RemoteStoreError(f"No document to update at {collection}/{key}")
                merged = dict(document.fields or {})
                merged.update(to_storable(fields))
                # Reassign so the JSON column is flagged dirty.
                document.fields = merged
                document.updated_at = datetime.now(timezone.utc)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update {collection}/{key}: {e}")
            raise RemoteStoreError(f"Could not update {collection}/{key}") from e
