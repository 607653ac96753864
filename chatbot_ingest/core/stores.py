"""
Ingest Collaborator Protocols

Interfaces the ingestion runner relies on. Both backend families (pgvector
and MongoDB) implement the store protocols so they can be used
interchangeably.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .models import Chunk, EmbeddedContent, Page


class Embedder(Protocol):
    """Converts text into an embedding vector."""

    async def embed(self, text: str) -> List[float]:
        ...


class EmbeddedContentStore(Protocol):
    """
    Persistent store for chunk vectors.

    Implementations expose `backend_family` and `database_name` so callers
    can report which backend they ended up with.
    """

    def load_embedded_content(self, page: Page) -> List[EmbeddedContent]:
        """Load all embedded content previously stored for a page."""
        ...

    def delete_embedded_content(self, page: Page) -> None:
        """Delete all embedded content for a page."""
        ...

    def update_embedded_content(self, page: Page, embedded_content: Sequence[EmbeddedContent]) -> None:
        """Replace the embedded content of a page."""
        ...

    def find_nearest_neighbors(self, vector: List[float], k: int = 5) -> List[Dict[str, Any]]:
        """
        Similarity search.

        Returns:
            List of dicts with the stored content fields plus 'score'
        """
        ...

    def close(self) -> None:
        ...


class PageStore(Protocol):
    """Persistent store for raw pages prior to chunking."""

    def load_pages(
        self,
        sources: Optional[Sequence[str]] = None,
        updated_since: Optional[datetime] = None,
    ) -> List[Page]:
        ...

    def update_pages(self, pages: Sequence[Page]) -> None:
        ...

    def close(self) -> None:
        ...


class IngestMetaStore(Protocol):
    """Tracks ingest-run metadata under a single logical entry id."""

    entry_id: str

    def load_last_successful_run_date(self) -> Optional[datetime]:
        ...

    def update_last_successful_run_date(self) -> None:
        ...

    def close(self) -> None:
        ...


class DataSource(Protocol):
    """External provider of raw pages."""

    name: str

    async def fetch_pages(self) -> List[Page]:
        ...


class ChunkTransformer(Protocol):
    async def __call__(self, chunk: Chunk, page: Page) -> Chunk:
        ...
