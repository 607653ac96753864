"""
Unit tests for the pgvector stores.

psycopg.connect and register_vector are patched, so these run without a
Postgres server.

Run: pytest tests/unit/test_pgvector_stores.py -v
"""
import logging
from datetime import datetime, timezone
from unittest import TestCase
from unittest.mock import patch

import numpy as np
from psycopg import errors, sql
from psycopg.rows import dict_row

from chatbot_ingest.core.backend_selection import BackendFamily
from chatbot_ingest.core.models import EmbeddedContent, Page
from chatbot_ingest.services.pgvector_stores import (
    PgVectorEmbeddedContentStore,
    PgVectorIngestMetaStore,
    PgVectorPageStore,
    PgVectorStore,
)

_CONNECT = "chatbot_ingest.services.pgvector_stores.psycopg.connect"
_REGISTER = "chatbot_ingest.services.pgvector_stores.register_vector"


class TestPgVectorStoreConstruction(TestCase):

    def test_missing_values_raise(self):
        with self.assertRaises(ValueError):
            PgVectorPageStore("postgresql://p", "d", None)
        with self.assertRaises(ValueError):
            PgVectorPageStore("", "d", "t")

    def test_invalid_table_name_raises(self):
        with self.assertRaises(ValueError):
            PgVectorEmbeddedContentStore("postgresql://p", "d", "chunks; DROP TABLE x")

    def test_table_names_derive_from_vector_table(self):
        self.assertEqual(PgVectorEmbeddedContentStore("postgresql://p", "d", "t").physical_table_name, "t")
        self.assertEqual(PgVectorPageStore("postgresql://p", "d", "t").physical_table_name, "t_pages")
        self.assertEqual(
            PgVectorIngestMetaStore("postgresql://p", "d", "t", entry_id="all").physical_table_name,
            "t_ingest_meta",
        )

    def test_connects_lazily_with_database_name(self):
        with patch(_CONNECT) as mock_connect, patch(_REGISTER) as mock_register:
            store = PgVectorIngestMetaStore("postgresql://p", "d", "t", entry_id="all")
            mock_connect.assert_not_called()
            self.assertIs(store.backend_family, BackendFamily.RELATIONAL)

            mock_connect.return_value.execute.return_value.fetchone.return_value = None
            store.load_last_successful_run_date()

            mock_connect.assert_called_once_with(
                "postgresql://p", dbname="d", autocommit=True, row_factory=dict_row
            )
            mock_register.assert_called_once_with(mock_connect.return_value)

            store.close()
            mock_connect.return_value.close.assert_called_once()

    def test_base_store_cannot_be_instantiated(self):
        with self.assertRaises(TypeError):
            PgVectorStore("postgresql://p", "d", "t")

    def test_setup_failure_closes_connection_and_raises_runtime_error(self):
        log = logging.getLogger("chatbot_ingest.services.pgvector_stores")
        old_level = log.level
        log.setLevel(logging.CRITICAL)
        try:
            with patch(_CONNECT) as mock_connect, patch(_REGISTER):
                conn = mock_connect.return_value
                conn.execute.side_effect = errors.InsufficientPrivilege("permission denied to create extension")

                store = PgVectorPageStore("postgresql://p", "d", "t")
                with self.assertRaises(RuntimeError) as ctx:
                    store.load_pages()
        finally:
            log.setLevel(old_level)

        self.assertIsInstance(ctx.exception.__cause__, errors.InsufficientPrivilege)
        conn.close.assert_called_once()
        self.assertIsNone(store._conn)


class TestPgVectorIngestMetaStore(TestCase):

    def test_load_returns_date_for_entry(self):
        last_run = datetime(2026, 1, 2, tzinfo=timezone.utc)
        with patch(_CONNECT) as mock_connect, patch(_REGISTER):
            conn = mock_connect.return_value
            conn.execute.return_value.fetchone.return_value = {"last_ingest_date": last_run}

            store = PgVectorIngestMetaStore("postgresql://p", "d", "t", entry_id="all")
            self.assertEqual(store.load_last_successful_run_date(), last_run)

        self.assertEqual(conn.execute.call_args[0][1], ("all",))

    def test_update_writes_entry(self):
        with patch(_CONNECT) as mock_connect, patch(_REGISTER):
            store = PgVectorIngestMetaStore("postgresql://p", "d", "t", entry_id="all")
            store.update_last_successful_run_date()

        params = mock_connect.return_value.execute.call_args[0][1]
        self.assertEqual(params[0], "all")
        self.assertIsInstance(params[1], datetime)


class TestPgVectorPageStore(TestCase):

    def test_load_pages_maps_rows(self):
        row = {
            "url": "https://docs.example.com/a",
            "source_name": "persisted-query",
            "title": "A",
            "body": "body",
            "format": "md",
            "metadata": {"tags": ["x"]},
            "action": "updated",
            "updated": datetime(2026, 1, 2, tzinfo=timezone.utc),
        }
        with patch(_CONNECT) as mock_connect, patch(_REGISTER):
            mock_connect.return_value.execute.return_value.fetchall.return_value = [row]

            pages = PgVectorPageStore("postgresql://p", "d", "t").load_pages(sources=["persisted-query"])

        self.assertEqual(len(pages), 1)
        self.assertIsInstance(pages[0], Page)
        self.assertEqual(pages[0].tags, ["x"])
        self.assertEqual(mock_connect.return_value.execute.call_args[0][1], [["persisted-query"]])


class TestPgVectorEmbeddedContentStore(TestCase):

    def test_update_replaces_chunks_in_transaction(self):
        page = Page(url="https://docs.example.com/a", title="A", body="body", source_name="persisted-query")
        contents = [
            EmbeddedContent(url=page.url, source_name=page.source_name, text="a", embedding=[0.1, 0.2], chunk_index=0),
            EmbeddedContent(url=page.url, source_name=page.source_name, text="b", embedding=[0.3, 0.4], chunk_index=1),
        ]
        with patch(_CONNECT) as mock_connect, patch(_REGISTER):
            conn = mock_connect.return_value
            store = PgVectorEmbeddedContentStore("postgresql://p", "d", "t")
            store.update_embedded_content(page, contents)

        conn.transaction.assert_called_once()
        conn.transaction.return_value.__enter__.assert_called_once()
        self.assertEqual(conn.execute.call_args[0][1], (page.url, "persisted-query"))

        cur = conn.cursor.return_value.__enter__.return_value
        rows = cur.executemany.call_args[0][1]
        self.assertEqual([row[2] for row in rows], ["a", "b"])
        self.assertIsInstance(rows[0][3], np.ndarray)
        np.testing.assert_allclose(rows[1][3], [0.3, 0.4], rtol=1e-6)

    def test_update_with_no_chunks_skips_insert(self):
        page = Page(url="https://docs.example.com/a", title="A", body="body", source_name="persisted-query")
        with patch(_CONNECT) as mock_connect, patch(_REGISTER):
            PgVectorEmbeddedContentStore("postgresql://p", "d", "t").update_embedded_content(page, [])

        mock_connect.return_value.cursor.assert_not_called()

    def test_nearest_neighbors_orders_by_cosine_distance(self):
        with patch(_CONNECT) as mock_connect, patch(_REGISTER):
            conn = mock_connect.return_value
            conn.execute.return_value.fetchall.return_value = [{"text": "a", "score": 0.9}]

            results = PgVectorEmbeddedContentStore("postgresql://p", "d", "t").find_nearest_neighbors([0.1, 0.2], k=3)

        query, params = conn.execute.call_args[0]
        rendered = "".join(part.as_string(None) for part in query.seq if isinstance(part, sql.SQL))
        self.assertIn("<=>", rendered)
        self.assertIn("LIMIT", rendered)
        self.assertIsInstance(params[0], np.ndarray)
        np.testing.assert_allclose(params[1], [0.1, 0.2], rtol=1e-6)
        self.assertEqual(params[2], 3)
        self.assertEqual(results, [{"text": "a", "score": 0.9}])
