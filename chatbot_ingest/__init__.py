"""
Chatbot Ingest Configuration

Selects the storage backends (pgvector or MongoDB), the embedder and the data
sources for the chatbot ingestion pipeline.

The configuration object the ingestion runner consumes lives in
`chatbot_ingest.ingest_config.config`; importing it reads the project .env.
"""

from .core.ingest_config import IngestConfig, make_ingest_config
from .core.env import EnvVars, load_env_vars
from .core.backend_selection import BackendFamily, select_backend

__all__ = [
    'IngestConfig',
    'make_ingest_config',
    'EnvVars',
    'load_env_vars',
    'BackendFamily',
    'select_backend',
]
