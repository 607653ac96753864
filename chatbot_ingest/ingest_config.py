"""
Ingest configuration for the chatbot ingestion runner.

Environment is read from the project-root .env once, at import.
"""

from .core.env import DEFAULT_DOTENV_PATH, load_env_vars
from .core.ingest_config import make_ingest_config

env = load_env_vars(DEFAULT_DOTENV_PATH)

config = make_ingest_config(env)
