"""
OpenAI Embedder

Generates embeddings through the OpenAI embeddings API. Transient failures are
retried with exponential backoff (tenacity); once the attempt budget is spent
the last error propagates to the ingestion runner.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackoffOptions:
    """Retry budget for embedding requests. Delays are in milliseconds."""
    num_of_attempts: int = 25
    starting_delay: int = 1000
    max_delay: int = 60_000


class OpenAiEmbedder:
    """
    Embedder backed by an (async) OpenAI client.

    The client should be created with max_retries=0 so tenacity owns the
    retry policy.
    """

    def __init__(
        self,
        openai_client: Any,
        deployment: str,
        backoff_options: Optional[BackoffOptions] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            openai_client: openai.AsyncOpenAI (or compatible) client
            deployment: Embedding model / deployment name
            backoff_options: Retry budget (defaults to 25 attempts from 1s)
            sleep: Coroutine used between attempts
        """
        if not deployment:
            raise ValueError("OPENAI_EMBEDDING_MODEL environment variable required")

        self.client = openai_client
        self.deployment = deployment
        self.backoff_options = backoff_options or BackoffOptions()
        self._sleep = sleep

        logger.info(
            f"🔗 OpenAI embedder initialized (model: {deployment}, "
            f"attempts: {self.backoff_options.num_of_attempts}, "
            f"starting delay: {self.backoff_options.starting_delay}ms)"
        )

    def _retrying(self) -> AsyncRetrying:
        options = self.backoff_options
        return AsyncRetrying(
            stop=stop_after_attempt(options.num_of_attempts),
            wait=wait_exponential(
                multiplier=options.starting_delay / 1000,
                max=options.max_delay / 1000,
            ),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            The last API error once all attempts are exhausted
        """
        async for attempt in self._retrying():
            with attempt:
                response = await self.client.embeddings.create(
                    model=self.deployment,
                    input=text,
                )

        return list(response.data[0].embedding)


def make_openai_embedder(
    openai_client: Any,
    deployment: str,
    backoff_options: Optional[BackoffOptions] = None,
) -> OpenAiEmbedder:
    return OpenAiEmbedder(
        openai_client=openai_client,
        deployment=deployment,
        backoff_options=backoff_options,
    )
