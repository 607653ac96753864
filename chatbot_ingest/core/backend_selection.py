"""
Storage Backend Selection

Decides once per configuration which storage family the ingest run uses
(pgvector tables or MongoDB) and builds the three stores from that single
decision, so the stores can never end up on different backends.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .env import EnvVars

logger = logging.getLogger(__name__)


class BackendFamily(Enum):
    """Storage technology used for content, pages and ingest metadata"""
    RELATIONAL = "relational"  # Postgres + pgvector
    DOCUMENT = "document"      # MongoDB


@dataclass(frozen=True)
class BackendSelection:
    """Resolved backend family together with the connection values it needs."""
    family: BackendFamily
    connection_uri: Optional[str]
    database_name: Optional[str]
    table_name: Optional[str] = None

    def describe(self) -> str:
        if self.family is BackendFamily.RELATIONAL:
            return f"{self.family.value} (database={self.database_name}, table={self.table_name})"
        return f"{self.family.value} (database={self.database_name})"


def is_relational_configured(env: EnvVars) -> bool:
    """True when all three Postgres variables are set and non-empty."""
    return bool(env.PG_CONNECTION_URI and env.PG_DATABASE_NAME and env.PG_VECTOR_TABLE_NAME)


def select_backend(env: EnvVars) -> BackendSelection:
    """
    Select the storage backend family from environment values.

    Postgres wins only if PG_CONNECTION_URI, PG_DATABASE_NAME and
    PG_VECTOR_TABLE_NAME are all present; otherwise MongoDB is used with
    MONGODB_CONNECTION_URI and MONGODB_DATABASE_NAME.

    Args:
        env: Loaded environment values

    Returns:
        BackendSelection shared by every store factory
    """
    if is_relational_configured(env):
        selection = BackendSelection(
            family=BackendFamily.RELATIONAL,
            connection_uri=env.PG_CONNECTION_URI,
            database_name=env.PG_DATABASE_NAME,
            table_name=env.PG_VECTOR_TABLE_NAME,
        )
    else:
        selection = BackendSelection(
            family=BackendFamily.DOCUMENT,
            connection_uri=env.MONGODB_CONNECTION_URI,
            database_name=env.MONGODB_DATABASE_NAME,
        )

    logger.info(f"🔧 Storage backend selected: {selection.describe()}")
    return selection


# ============================================================================
# Store Factories
# ============================================================================

def _unknown_family(selection: BackendSelection) -> ValueError:
    return ValueError(
        f"Unknown storage backend family: '{selection.family}'. "
        f"Must be one of: {', '.join(f.value for f in BackendFamily)}"
    )


def create_embedded_content_store(selection: BackendSelection):
    """
    Create the embedded content (vector) store for the selected backend.

    Raises:
        ValueError: If the family is unknown or its connection values are missing
    """
    if selection.family is BackendFamily.RELATIONAL:
        from ..services.pgvector_stores import make_pgvector_embedded_content_store
        return make_pgvector_embedded_content_store(
            connection_uri=selection.connection_uri,
            database_name=selection.database_name,
            table_name=selection.table_name,
        )

    elif selection.family is BackendFamily.DOCUMENT:
        from ..services.mongodb_stores import make_mongodb_embedded_content_store
        return make_mongodb_embedded_content_store(
            connection_uri=selection.connection_uri,
            database_name=selection.database_name,
        )

    raise _unknown_family(selection)


def create_page_store(selection: BackendSelection):
    """Create the page store for the selected backend."""
    if selection.family is BackendFamily.RELATIONAL:
        from ..services.pgvector_stores import make_pgvector_page_store
        return make_pgvector_page_store(
            connection_uri=selection.connection_uri,
            database_name=selection.database_name,
            table_name=selection.table_name,
        )

    elif selection.family is BackendFamily.DOCUMENT:
        from ..services.mongodb_stores import make_mongodb_page_store
        return make_mongodb_page_store(
            connection_uri=selection.connection_uri,
            database_name=selection.database_name,
        )

    raise _unknown_family(selection)


def create_ingest_meta_store(selection: BackendSelection, entry_id: str):
    """
    Create the ingest metadata store for the selected backend.

    Args:
        selection: Backend selection
        entry_id: Logical entry the run metadata is tracked under
    """
    if selection.family is BackendFamily.RELATIONAL:
        from ..services.pgvector_stores import make_pgvector_ingest_meta_store
        return make_pgvector_ingest_meta_store(
            connection_uri=selection.connection_uri,
            database_name=selection.database_name,
            table_name=selection.table_name,
            entry_id=entry_id,
        )

    elif selection.family is BackendFamily.DOCUMENT:
        from ..services.mongodb_stores import make_mongodb_ingest_meta_store
        return make_mongodb_ingest_meta_store(
            connection_uri=selection.connection_uri,
            database_name=selection.database_name,
            entry_id=entry_id,
        )

    raise _unknown_family(selection)
