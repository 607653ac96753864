"""
Environment Parameters

Loads the project-level .env file and exposes the variables the ingest
configuration reads. Presence only: validation belongs to the stores and the
embedder that consume these values.
"""

import os
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


# Single .env at the project root, shared by every sub-package
DEFAULT_DOTENV_PATH = Path(__file__).resolve().parent.parent.parent / ".env"

ENV_VAR_NAMES = (
    "MONGODB_CONNECTION_URI",
    "MONGODB_DATABASE_NAME",
    "OPENAI_API_KEY",
    "OPENAI_EMBEDDING_MODEL",
    "PG_CONNECTION_URI",
    "PG_DATABASE_NAME",
    "PG_VECTOR_TABLE_NAME",
)


@dataclass(frozen=True)
class EnvVars:
    """Environment values for one ingest run (immutable once loaded)."""
    MONGODB_CONNECTION_URI: Optional[str] = None
    MONGODB_DATABASE_NAME: Optional[str] = None
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_EMBEDDING_MODEL: Optional[str] = None
    PG_CONNECTION_URI: Optional[str] = None
    PG_DATABASE_NAME: Optional[str] = None
    PG_VECTOR_TABLE_NAME: Optional[str] = None

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "EnvVars":
        """Build from any mapping, ignoring keys that are not ingest variables."""
        return cls(**{f.name: mapping.get(f.name) for f in fields(cls)})

    def missing(self) -> list:
        """Names whose value is unset or empty."""
        return [name for name in ENV_VAR_NAMES if not getattr(self, name)]


def load_env_vars(
    dotenv_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EnvVars:
    """
    Load ingest environment variables.

    Args:
        dotenv_path: .env file to load into the process environment first.
            Values already present in the process environment win.
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        EnvVars with None for every variable that is not set
    """
    if dotenv_path is not None:
        dotenv_path = Path(dotenv_path)
        if dotenv_path.exists():
            load_dotenv(dotenv_path, override=False)
            logger.info(f"🔧 Loaded environment from {dotenv_path}")
        else:
            logger.debug(f"No .env file at {dotenv_path}, using process environment only")

    env = EnvVars.from_mapping(os.environ if environ is None else environ)

    for name in env.missing():
        logger.debug(f"Environment variable {name} is not set")

    return env
