"""
Persisted Query Data Source

Fetches pages by executing a persisted (server-side stored) query against an
HTTP endpoint. The endpoint returns page records as JSON, either as a
top-level list or under a "results" key.
"""

import os
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..core.models import Page

logger = logging.getLogger(__name__)

PERSISTED_QUERY_SOURCE_NAME = "persisted-query"


class PersistedQueryDataSource:
    """Data source backed by a persisted query endpoint."""

    def __init__(
        self,
        name: str,
        endpoint: str,
        query_id: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = name
        self.endpoint = endpoint
        self.query_id = query_id
        self.headers = dict(headers or {})
        self.timeout = timeout
        self._transport = transport

    def _record_to_page(self, record: Dict[str, Any]) -> Page:
        metadata = dict(record.get("metadata") or {})
        if record.get("tags"):
            metadata["tags"] = list(record["tags"])

        return Page(
            url=record["url"],
            title=record.get("title"),
            body=record.get("body") or "",
            source_name=self.name,
            format=record.get("format") or "md",
            metadata=metadata,
        )

    async def fetch_pages(self) -> List[Page]:
        """
        Execute the persisted query and map its results to pages.

        Raises:
            httpx.HTTPStatusError: Endpoint answered with an error status
            ValueError: Response body is not a list of page records
        """
        logger.info(f"🔄 Fetching pages from '{self.name}' (query: {self.query_id})")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.endpoint,
                json={"id": self.query_id},
                headers=self.headers,
            )
            response.raise_for_status()
            payload = response.json()

        records = payload.get("results") if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            raise ValueError(
                f"Unexpected persisted query response from {self.endpoint}: "
                f"expected a list of records"
            )

        if not all(isinstance(record, dict) for record in records):
            raise ValueError(
                f"Unexpected persisted query response from {self.endpoint}: "
                f"every record must be an object"
            )

        pages = [self._record_to_page(record) for record in records if record.get("url")]
        skipped = len(records) - len(pages)
        if skipped:
            logger.warning(f"⚠️ Skipped {skipped} records without a url")

        logger.info(f"✅ Fetched {len(pages)} pages from '{self.name}'")
        return pages


async def make_persisted_query_data_source(
    environ: Optional[Mapping[str, str]] = None,
) -> PersistedQueryDataSource:
    """
    Build the persisted query data source from environment variables.

    Reads PERSISTED_QUERY_ENDPOINT, PERSISTED_QUERY_ID and the optional
    PERSISTED_QUERY_API_KEY (sent as a bearer token).

    Raises:
        ValueError: If the endpoint or query id is missing
    """
    environ = os.environ if environ is None else environ
    endpoint = environ.get("PERSISTED_QUERY_ENDPOINT")
    query_id = environ.get("PERSISTED_QUERY_ID")

    if not endpoint or not query_id:
        raise ValueError("PERSISTED_QUERY_ENDPOINT and PERSISTED_QUERY_ID must be set in .env file")

    headers = {}
    api_key = environ.get("PERSISTED_QUERY_API_KEY")
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    return PersistedQueryDataSource(
        name=PERSISTED_QUERY_SOURCE_NAME,
        endpoint=endpoint,
        query_id=query_id,
        headers=headers,
    )
