"""
MongoDB Stores

Document-store family: embedded content, pages and ingest metadata kept in
MongoDB collections. Vector search uses Atlas `$vectorSearch`.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pymongo import MongoClient, ReplaceOne
from pymongo.errors import PyMongoError

from ..core.backend_selection import BackendFamily
from ..core.models import EmbeddedContent, Page, utc_now

logger = logging.getLogger(__name__)

EMBEDDED_CONTENT_COLLECTION = "embedded_content"
PAGES_COLLECTION = "pages"
INGEST_META_COLLECTION = "ingest_meta"


class MongoDbStore:
    """
    Shared connection handling for the MongoDB stores.

    The MongoClient is created on first use; nothing touches the network
    while the store is being constructed.
    """

    backend_family = BackendFamily.DOCUMENT

    def __init__(self, connection_uri: Optional[str], database_name: Optional[str]):
        if not connection_uri or not database_name:
            raise ValueError(
                "MONGODB_CONNECTION_URI and MONGODB_DATABASE_NAME must be set in .env file "
                "(or set PG_CONNECTION_URI, PG_DATABASE_NAME and PG_VECTOR_TABLE_NAME)"
            )

        self.connection_uri = connection_uri
        self.database_name = database_name
        self._client: Optional[MongoClient] = None

        logger.info(f"🍃 {type(self).__name__} configured for database '{database_name}'")

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            try:
                self._client = MongoClient(self.connection_uri, tz_aware=True)
            except PyMongoError as e:
                logger.error(f"❌ Failed to create MongoDB client: {e}")
                raise RuntimeError(f"MongoDB connection failed: {e}") from e
        return self._client

    @property
    def db(self):
        return self.client[self.database_name]

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info(f"✅ {type(self).__name__} closed")


class MongoDbEmbeddedContentStore(MongoDbStore):
    """Chunk vectors stored one document per chunk."""

    def __init__(
        self,
        connection_uri: Optional[str],
        database_name: Optional[str],
        search_index_name: str = "vector_index",
    ):
        super().__init__(connection_uri, database_name)
        self.search_index_name = search_index_name

    @property
    def collection(self):
        return self.db[EMBEDDED_CONTENT_COLLECTION]

    @staticmethod
    def _page_filter(page: Page) -> Dict[str, Any]:
        return {"url": page.url, "source_name": page.source_name}

    def load_embedded_content(self, page: Page) -> List[EmbeddedContent]:
        cursor = self.collection.find(self._page_filter(page), {"_id": 0}).sort("chunk_index", 1)
        return [EmbeddedContent.from_dict(doc) for doc in cursor]

    def delete_embedded_content(self, page: Page) -> None:
        result = self.collection.delete_many(self._page_filter(page))
        logger.debug(f"🗑️ Deleted {result.deleted_count} chunks for {page.url}")

    def update_embedded_content(self, page: Page, embedded_content: Sequence[EmbeddedContent]) -> None:
        """
        Replace every chunk stored for the page in one transaction.

        Transactions need a replica set or Atlas cluster, which $vectorSearch
        requires anyway.
        """
        documents = [content.to_dict() for content in embedded_content]

        def replace(session):
            self.collection.delete_many(self._page_filter(page), session=session)
            if documents:
                self.collection.insert_many(documents, session=session)

        with self.client.start_session() as session:
            session.with_transaction(replace)
        logger.debug(f"💾 Stored {len(embedded_content)} chunks for {page.url}")

    def find_nearest_neighbors(self, vector: List[float], k: int = 5) -> List[Dict[str, Any]]:
        pipeline = [
            {
                "$vectorSearch": {
                    "index": self.search_index_name,
                    "path": "embedding",
                    "queryVector": list(vector),
                    "numCandidates": k * 10,
                    "limit": k,
                }
            },
            {"$addFields": {"score": {"$meta": "vectorSearchScore"}}},
            {"$project": {"_id": 0, "embedding": 0}},
        ]
        return list(self.collection.aggregate(pipeline))


class MongoDbPageStore(MongoDbStore):
    """Raw pages keyed by (url, source_name)."""

    @property
    def collection(self):
        return self.db[PAGES_COLLECTION]

    def load_pages(
        self,
        sources: Optional[Sequence[str]] = None,
        updated_since: Optional[datetime] = None,
    ) -> List[Page]:
        query: Dict[str, Any] = {}
        if sources is not None:
            query["source_name"] = {"$in": list(sources)}
        if updated_since is not None:
            query["updated"] = {"$gte": updated_since}

        return [Page.from_dict(doc) for doc in self.collection.find(query, {"_id": 0})]

    def update_pages(self, pages: Sequence[Page]) -> None:
        if not pages:
            return

        operations = [
            ReplaceOne({"url": page.url, "source_name": page.source_name}, page.to_dict(), upsert=True)
            for page in pages
        ]
        result = self.collection.bulk_write(operations, ordered=False)
        logger.info(
            f"💾 Pages updated: {result.upserted_count} inserted, {result.modified_count} modified"
        )


class MongoDbIngestMetaStore(MongoDbStore):
    """Last successful run date for one logical entry."""

    def __init__(self, connection_uri: Optional[str], database_name: Optional[str], entry_id: str):
        super().__init__(connection_uri, database_name)
        self.entry_id = entry_id

    @property
    def collection(self):
        return self.db[INGEST_META_COLLECTION]

    def load_last_successful_run_date(self) -> Optional[datetime]:
        doc = self.collection.find_one({"_id": self.entry_id})
        return doc.get("lastIngestDate") if doc else None

    def update_last_successful_run_date(self) -> None:
        self.collection.update_one(
            {"_id": self.entry_id},
            {"$set": {"lastIngestDate": utc_now()}},
            upsert=True,
        )
        logger.info(f"✅ Ingest meta '{self.entry_id}' updated")


def make_mongodb_embedded_content_store(connection_uri: Optional[str], database_name: Optional[str]) -> MongoDbEmbeddedContentStore:
    return MongoDbEmbeddedContentStore(connection_uri=connection_uri, database_name=database_name)


def make_mongodb_page_store(connection_uri: Optional[str], database_name: Optional[str]) -> MongoDbPageStore:
    return MongoDbPageStore(connection_uri=connection_uri, database_name=database_name)


def make_mongodb_ingest_meta_store(
    connection_uri: Optional[str],
    database_name: Optional[str],
    entry_id: str,
) -> MongoDbIngestMetaStore:
    return MongoDbIngestMetaStore(
        connection_uri=connection_uri,
        database_name=database_name,
        entry_id=entry_id,
    )
