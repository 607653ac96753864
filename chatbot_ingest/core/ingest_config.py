"""
Ingest Configuration Assembly

Builds the configuration object the ingestion runner consumes: six
zero-argument factories that construct the embedder, the three stores, the
chunk options and the data sources on demand. Assembly only creates closures;
all I/O and validation happen when the runner calls a factory.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

from .backend_selection import (
    create_embedded_content_store,
    create_ingest_meta_store,
    create_page_store,
    select_backend,
)
from .chunk_transform import ChunkOptions, standard_chunk_front_matter_updater
from .embedder import BackoffOptions, make_openai_embedder
from .env import EnvVars
from .stores import (
    DataSource,
    EmbeddedContentStore,
    Embedder,
    IngestMetaStore,
    PageStore,
)
from ..services.persisted_query_source import make_persisted_query_data_source

logger = logging.getLogger(__name__)


# This pipeline tracks a single ingest-run record, not one per source
INGEST_META_ENTRY_ID = "all"

EMBEDDER_BACKOFF = BackoffOptions(num_of_attempts=25, starting_delay=1000)

DataSourceFactory = Callable[[], Awaitable[DataSource]]

# Add data sources here
DEFAULT_DATA_SOURCE_FACTORIES: Sequence[DataSourceFactory] = (
    make_persisted_query_data_source,
)


@dataclass(frozen=True)
class IngestConfig:
    """Deferred constructors for every collaborator of an ingest run."""
    embedder: Callable[[], Awaitable[Embedder]]
    embedded_content_store: Callable[[], EmbeddedContentStore]
    page_store: Callable[[], PageStore]
    ingest_meta_store: Callable[[], IngestMetaStore]
    chunk_options: Callable[[], ChunkOptions]
    data_sources: Callable[[], Awaitable[List[DataSource]]]


def make_ingest_config(
    env: EnvVars,
    data_source_factories: Optional[Sequence[DataSourceFactory]] = None,
) -> IngestConfig:
    """
    Assemble the ingest configuration from environment values.

    The backend family is decided once here and shared by the three store
    factories.

    Args:
        env: Loaded environment values
        data_source_factories: Extra data source constructors, appended after
            the default ones

    Returns:
        IngestConfig whose factories build a fresh collaborator on every call
    """
    selection = select_backend(env)
    source_factories = tuple(DEFAULT_DATA_SOURCE_FACTORIES) + tuple(data_source_factories or ())

    async def embedder() -> Embedder:
        if not env.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY environment variable required")

        # Constructed only when the runner asks for an embedder
        from openai import AsyncOpenAI

        return make_openai_embedder(
            openai_client=AsyncOpenAI(api_key=env.OPENAI_API_KEY, max_retries=0),
            deployment=env.OPENAI_EMBEDDING_MODEL,
            backoff_options=EMBEDDER_BACKOFF,
        )

    def embedded_content_store() -> EmbeddedContentStore:
        return create_embedded_content_store(selection)

    def page_store() -> PageStore:
        return create_page_store(selection)

    def ingest_meta_store() -> IngestMetaStore:
        return create_ingest_meta_store(selection, entry_id=INGEST_META_ENTRY_ID)

    def chunk_options() -> ChunkOptions:
        return ChunkOptions(transform=standard_chunk_front_matter_updater)

    async def data_sources() -> List[DataSource]:
        sources = []
        for factory in source_factories:
            sources.append(await factory())
        logger.info(f"📚 {len(sources)} data source(s) configured: {[s.name for s in sources]}")
        return sources

    return IngestConfig(
        embedder=embedder,
        embedded_content_store=embedded_content_store,
        page_store=page_store,
        ingest_meta_store=ingest_meta_store,
        chunk_options=chunk_options,
        data_sources=data_sources,
    )
