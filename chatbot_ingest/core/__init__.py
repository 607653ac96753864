"""
Core Ingest Configuration Components

Environment loading, backend selection and configuration assembly.
"""

from .env import EnvVars, ENV_VAR_NAMES, DEFAULT_DOTENV_PATH, load_env_vars
from .backend_selection import (
    BackendFamily,
    BackendSelection,
    select_backend,
    is_relational_configured,
    create_embedded_content_store,
    create_page_store,
    create_ingest_meta_store,
)
from .models import Page, PageAction, Chunk, EmbeddedContent
from .embedder import BackoffOptions, OpenAiEmbedder, make_openai_embedder
from .chunk_transform import ChunkOptions, standard_chunk_front_matter_updater
from .ingest_config import IngestConfig, INGEST_META_ENTRY_ID, make_ingest_config

__all__ = [
    'EnvVars',
    'ENV_VAR_NAMES',
    'DEFAULT_DOTENV_PATH',
    'load_env_vars',
    'BackendFamily',
    'BackendSelection',
    'select_backend',
    'is_relational_configured',
    'create_embedded_content_store',
    'create_page_store',
    'create_ingest_meta_store',
    'Page',
    'PageAction',
    'Chunk',
    'EmbeddedContent',
    'BackoffOptions',
    'OpenAiEmbedder',
    'make_openai_embedder',
    'ChunkOptions',
    'standard_chunk_front_matter_updater',
    'IngestConfig',
    'INGEST_META_ENTRY_ID',
    'make_ingest_config',
]
