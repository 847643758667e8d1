from __future__ import annotations

import logging

from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError

from linkpreview.core.database import DatabaseManager
from linkpreview.models.metadata.document import MetadataDocument
from linkpreview.repositories.base import (
    CorruptDataError,
    MetadataStore,
    NotFoundError,
    StoreError,
    WriteError,
)

logger = logging.getLogger(__name__)


class MongoMetadataStore(MetadataStore):
    """MongoDB-backed store: one ``{key, document}`` record per fingerprint."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._col = collection

    @classmethod
    def from_db(cls, db: DatabaseManager, collection_name: str) -> MongoMetadataStore:
        """Instantiate the store on a connected ``DatabaseManager``.

        Usage::

            store = MongoMetadataStore.from_db(db, settings.mongo_collection)
        """
        return cls(db.get_collection(collection_name))

    async def ensure_indexes(self) -> None:
        await self._col.create_index("key", unique=True)

    async def exists(self, key: str) -> bool:
        try:
            record = await self._col.find_one({"key": key}, {"_id": 1})
        except PyMongoError as exc:
            raise StoreError("Database read error") from exc
        return record is not None

    async def read(self, key: str) -> MetadataDocument:
        try:
            record = await self._col.find_one({"key": key})
        except PyMongoError as exc:
            raise StoreError("Database read error") from exc
        if record is None:
            raise NotFoundError(key)

        try:
            return MetadataDocument.model_validate(record.get("document"))
        except ValidationError as exc:
            raise CorruptDataError(f"Invalid metadata stored for key={key}: {exc}") from exc

    async def write(self, key: str, document: MetadataDocument) -> None:
        """Insert or replace the record keyed by *key*.

        A ``DuplicateKeyError`` means another writer inserted the same key
        between our lookup and insert; retrying as a plain replace keeps
        last-write-wins semantics.
        """
        record = {"key": key, "document": document.model_dump(mode="json", by_alias=True)}
        try:
            await self._col.replace_one({"key": key}, record, upsert=True)
        except DuplicateKeyError:
            try:
                await self._col.replace_one({"key": key}, record)
            except PyMongoError as exc:
                raise WriteError(f"Upsert race unresolved for key={key}") from exc
        except PyMongoError as exc:
            logger.exception("MongoDB write failed for key=%s", key)
            raise WriteError("Database write error") from exc
        except (BSONError, ValueError) as exc:
            raise WriteError(f"Metadata for key={key} cannot be encoded: {exc}") from exc
