"""
Pytest fixtures for ingest configuration tests.

Use these to test backend selection and store construction without Docker,
databases or live APIs.
"""
import sys
from pathlib import Path

import pytest

# Ensure chatbot_ingest is importable from repo root
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from chatbot_ingest.core.env import EnvVars


PG_VARS = {
    "PG_CONNECTION_URI": "postgresql://localhost:5432",
    "PG_DATABASE_NAME": "d",
    "PG_VECTOR_TABLE_NAME": "t",
}

MONGO_VARS = {
    "MONGODB_CONNECTION_URI": "mongodb://localhost:27017",
    "MONGODB_DATABASE_NAME": "n",
}

OPENAI_VARS = {
    "OPENAI_API_KEY": "sk-test",
    "OPENAI_EMBEDDING_MODEL": "text-embedding-3-small",
}


def make_env(**values) -> EnvVars:
    """EnvVars from keyword values (unset names stay None)."""
    return EnvVars.from_mapping(values)


@pytest.fixture
def pg_env() -> EnvVars:
    """Only the Postgres variables set."""
    return make_env(**PG_VARS, **OPENAI_VARS)


@pytest.fixture
def mongo_env() -> EnvVars:
    """Only the MongoDB variables set."""
    return make_env(**MONGO_VARS, **OPENAI_VARS)


@pytest.fixture
def full_env() -> EnvVars:
    """Both families configured; Postgres must win."""
    return make_env(**PG_VARS, **MONGO_VARS, **OPENAI_VARS)
