"""
pgvector Stores

Relational family: embedded content, pages and ingest metadata kept in
Postgres tables, with chunk vectors in a pgvector `vector` column.

Tables derived from PG_VECTOR_TABLE_NAME:
- <table>              embedded content
- <table>_pages        raw pages
- <table>_ingest_meta  ingest run metadata
"""

import re
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from pgvector.psycopg import register_vector

from ..core.backend_selection import BackendFamily
from ..core.models import EmbeddedContent, Page, PageAction, utc_now

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

PAGES_SUFFIX = "_pages"
INGEST_META_SUFFIX = "_ingest_meta"


def _validate_table_name(table_name: str) -> str:
    if not _IDENTIFIER_RE.match(table_name):
        raise ValueError(
            f"Invalid PG_VECTOR_TABLE_NAME '{table_name}': "
            f"use letters, digits and underscores, starting with a letter or underscore"
        )
    return table_name


class PgVectorStore(ABC):
    """
    Shared connection handling for the pgvector stores.

    Connects on first use, enables the vector extension and creates the
    store's table if it does not exist yet.
    """

    backend_family = BackendFamily.RELATIONAL
    table_suffix = ""

    def __init__(
        self,
        connection_uri: Optional[str],
        database_name: Optional[str],
        table_name: Optional[str],
    ):
        if not connection_uri or not database_name or not table_name:
            raise ValueError(
                "PG_CONNECTION_URI, PG_DATABASE_NAME and PG_VECTOR_TABLE_NAME must be set in .env file"
            )

        self.connection_uri = connection_uri
        self.database_name = database_name
        self.table_name = _validate_table_name(table_name)
        self._conn = None

        logger.info(
            f"🐘 {type(self).__name__} configured for database '{database_name}', "
            f"table '{self.physical_table_name}'"
        )

    @property
    def physical_table_name(self) -> str:
        return f"{self.table_name}{self.table_suffix}"

    @property
    def table(self) -> sql.Identifier:
        return sql.Identifier(self.physical_table_name)

    @property
    def connection(self):
        if self._conn is None:
            try:
                conn = psycopg.connect(
                    self.connection_uri,
                    dbname=self.database_name,
                    autocommit=True,
                    row_factory=dict_row,
                )
            except psycopg.Error as e:
                logger.error(f"❌ Failed to connect to Postgres: {e}")
                raise RuntimeError(f"Postgres connection failed: {e}") from e

            try:
                conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
                register_vector(conn)
                conn.execute(self._create_table_statement())
            except psycopg.Error as e:
                conn.close()
                logger.error(f"❌ Failed to prepare table '{self.physical_table_name}': {e}")
                raise RuntimeError(f"Postgres setup failed: {e}") from e

            self._conn = conn
            logger.info(f"✅ Connected to Postgres database '{self.database_name}'")
        return self._conn

    @abstractmethod
    def _create_table_statement(self) -> sql.Composed:
        """CREATE TABLE IF NOT EXISTS statement for this store's table."""

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info(f"✅ {type(self).__name__} closed")


class PgVectorEmbeddedContentStore(PgVectorStore):
    """Chunk vectors, one row per chunk, searched by cosine distance."""

    _COLUMNS = "url, source_name, text, embedding, chunk_index, token_count, metadata, updated"

    def _create_table_statement(self) -> sql.Composed:
        return sql.SQL(
            """
            CREATE TABLE IF NOT EXISTS {} (
                id BIGSERIAL PRIMARY KEY,
                url TEXT NOT NULL,
                source_name TEXT NOT NULL,
                text TEXT NOT NULL,
                embedding vector NOT NULL,
                chunk_index INTEGER NOT NULL DEFAULT 0,
                token_count INTEGER NOT NULL DEFAULT 0,
                metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                updated TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        ).format(self.table)

    @staticmethod
    def _row_to_content(row: Dict[str, Any]) -> EmbeddedContent:
        return EmbeddedContent(
            url=row["url"],
            source_name=row["source_name"],
            text=row["text"],
            embedding=[float(v) for v in row["embedding"]],
            chunk_index=row["chunk_index"],
            token_count=row["token_count"],
            metadata=dict(row["metadata"] or {}),
            updated=row["updated"],
        )

    def load_embedded_content(self, page: Page) -> List[EmbeddedContent]:
        query = sql.SQL(
            "SELECT " + self._COLUMNS + " FROM {} WHERE url = %s AND source_name = %s ORDER BY chunk_index"
        ).format(self.table)
        rows = self.connection.execute(query, (page.url, page.source_name)).fetchall()
        return [self._row_to_content(row) for row in rows]

    def delete_embedded_content(self, page: Page) -> None:
        query = sql.SQL("DELETE FROM {} WHERE url = %s AND source_name = %s").format(self.table)
        self.connection.execute(query, (page.url, page.source_name))

    def update_embedded_content(self, page: Page, embedded_content: Sequence[EmbeddedContent]) -> None:
        """Replace every chunk stored for the page in one transaction."""
        conn = self.connection
        insert = sql.SQL(
            "INSERT INTO {} (" + self._COLUMNS + ") VALUES (%s, %s, %s, %s, %s, %s, %s, %s)"
        ).format(self.table)

        with conn.transaction():
            self.delete_embedded_content(page)
            if embedded_content:
                with conn.cursor() as cur:
                    cur.executemany(insert, [
                        (
                            content.url,
                            content.source_name,
                            content.text,
                            np.array(content.embedding, dtype=np.float32),
                            content.chunk_index,
                            content.token_count,
                            Jsonb(content.metadata),
                            content.updated,
                        )
                        for content in embedded_content
                    ])

        logger.debug(f"💾 Stored {len(embedded_content)} chunks for {page.url}")

    def find_nearest_neighbors(self, vector: List[float], k: int = 5) -> List[Dict[str, Any]]:
        query_vector = np.array(vector, dtype=np.float32)
        query = sql.SQL(
            """
            SELECT url, source_name, text, chunk_index, token_count, metadata, updated,
                   1 - (embedding <=> %s) AS score
            FROM {}
            ORDER BY embedding <=> %s
            LIMIT %s
            """
        ).format(self.table)
        rows = self.connection.execute(query, (query_vector, query_vector, k)).fetchall()
        return [dict(row) for row in rows]


class PgVectorPageStore(PgVectorStore):
    """Raw pages keyed by (url, source_name)."""

    table_suffix = PAGES_SUFFIX

    def _create_table_statement(self) -> sql.Composed:
        return sql.SQL(
            """
            CREATE TABLE IF NOT EXISTS {} (
                url TEXT NOT NULL,
                source_name TEXT NOT NULL,
                title TEXT,
                body TEXT NOT NULL,
                format TEXT NOT NULL DEFAULT 'md',
                metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                action TEXT NOT NULL,
                updated TIMESTAMPTZ NOT NULL DEFAULT now(),
                PRIMARY KEY (url, source_name)
            )
            """
        ).format(self.table)

    def load_pages(
        self,
        sources: Optional[Sequence[str]] = None,
        updated_since: Optional[datetime] = None,
    ) -> List[Page]:
        conditions = []
        params: List[Any] = []
        if sources is not None:
            conditions.append(sql.SQL("source_name = ANY(%s)"))
            params.append(list(sources))
        if updated_since is not None:
            conditions.append(sql.SQL("updated >= %s"))
            params.append(updated_since)

        query = sql.SQL("SELECT url, source_name, title, body, format, metadata, action, updated FROM {}").format(self.table)
        if conditions:
            query = query + sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions)

        rows = self.connection.execute(query, params).fetchall()
        return [
            Page(
                url=row["url"],
                title=row["title"],
                body=row["body"],
                source_name=row["source_name"],
                format=row["format"],
                metadata=dict(row["metadata"] or {}),
                action=PageAction(row["action"]),
                updated=row["updated"],
            )
            for row in rows
        ]

    def update_pages(self, pages: Sequence[Page]) -> None:
        if not pages:
            return

        upsert = sql.SQL(
            """
            INSERT INTO {} (url, source_name, title, body, format, metadata, action, updated)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (url, source_name) DO UPDATE SET
                title = EXCLUDED.title,
                body = EXCLUDED.body,
                format = EXCLUDED.format,
                metadata = EXCLUDED.metadata,
                action = EXCLUDED.action,
                updated = EXCLUDED.updated
            """
        ).format(self.table)

        conn = self.connection
        with conn.transaction():
            with conn.cursor() as cur:
                cur.executemany(upsert, [
                    (
                        page.url,
                        page.source_name,
                        page.title,
                        page.body,
                        page.format,
                        Jsonb(page.metadata),
                        page.action.value,
                        page.updated,
                    )
                    for page in pages
                ])

        logger.info(f"💾 Pages updated: {len(pages)}")


class PgVectorIngestMetaStore(PgVectorStore):
    """Last successful run date for one logical entry."""

    table_suffix = INGEST_META_SUFFIX

    def __init__(
        self,
        connection_uri: Optional[str],
        database_name: Optional[str],
        table_name: Optional[str],
        entry_id: str,
    ):
        super().__init__(connection_uri, database_name, table_name)
        self.entry_id = entry_id

    def _create_table_statement(self) -> sql.Composed:
        return sql.SQL(
            """
            CREATE TABLE IF NOT EXISTS {} (
                id TEXT PRIMARY KEY,
                last_ingest_date TIMESTAMPTZ NOT NULL
            )
            """
        ).format(self.table)

    def load_last_successful_run_date(self) -> Optional[datetime]:
        query = sql.SQL("SELECT last_ingest_date FROM {} WHERE id = %s").format(self.table)
        row = self.connection.execute(query, (self.entry_id,)).fetchone()
        return row["last_ingest_date"] if row else None

    def update_last_successful_run_date(self) -> None:
        query = sql.SQL(
            """
            INSERT INTO {} (id, last_ingest_date) VALUES (%s, %s)
            ON CONFLICT (id) DO UPDATE SET last_ingest_date = EXCLUDED.last_ingest_date
            """
        ).format(self.table)
        self.connection.execute(query, (self.entry_id, utc_now()))
        logger.info(f"✅ Ingest meta '{self.entry_id}' updated")


def make_pgvector_embedded_content_store(
    connection_uri: Optional[str],
    database_name: Optional[str],
    table_name: Optional[str],
) -> PgVectorEmbeddedContentStore:
    return PgVectorEmbeddedContentStore(
        connection_uri=connection_uri,
        database_name=database_name,
        table_name=table_name,
    )


def make_pgvector_page_store(
    connection_uri: Optional[str],
    database_name: Optional[str],
    table_name: Optional[str],
) -> PgVectorPageStore:
    return PgVectorPageStore(
        connection_uri=connection_uri,
        database_name=database_name,
        table_name=table_name,
    )


def make_pgvector_ingest_meta_store(
    connection_uri: Optional[str],
    database_name: Optional[str],
    table_name: Optional[str],
    entry_id: str,
) -> PgVectorIngestMetaStore:
    return PgVectorIngestMetaStore(
        connection_uri=connection_uri,
        database_name=database_name,
        table_name=table_name,
        entry_id=entry_id,
    )
