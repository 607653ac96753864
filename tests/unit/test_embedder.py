"""
Unit tests for OpenAiEmbedder retry behaviour.

Uses a mocked async OpenAI client and a recording sleep, so no API calls and
no real waiting.

Run: pytest tests/unit/test_embedder.py -v
"""
import logging
from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase, TestCase
from unittest.mock import AsyncMock, MagicMock

from chatbot_ingest.core.embedder import BackoffOptions, OpenAiEmbedder, make_openai_embedder

_EMBEDDER_LOGGER = "chatbot_ingest.core.embedder"


def embedding_response(vector):
    return SimpleNamespace(data=[SimpleNamespace(embedding=vector)])


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class TestOpenAiEmbedder(IsolatedAsyncioTestCase):

    def setUp(self):
        self.client = MagicMock()
        self.sleep = RecordingSleep()
        # Retry warnings are expected in these tests
        self.log = logging.getLogger(_EMBEDDER_LOGGER)
        self.old_level = self.log.level
        self.log.setLevel(logging.CRITICAL)

    def tearDown(self):
        self.log.setLevel(self.old_level)

    async def test_embed_returns_vector(self):
        self.client.embeddings.create = AsyncMock(return_value=embedding_response([0.1, 0.2, 0.3]))
        embedder = OpenAiEmbedder(self.client, "text-embedding-3-small", sleep=self.sleep)

        vector = await embedder.embed("hello")

        self.assertEqual(vector, [0.1, 0.2, 0.3])
        self.client.embeddings.create.assert_awaited_once_with(model="text-embedding-3-small", input="hello")
        self.assertEqual(self.sleep.delays, [])

    async def test_transient_failures_are_retried_with_growing_delay(self):
        self.client.embeddings.create = AsyncMock(side_effect=[
            RuntimeError("rate limited"),
            RuntimeError("rate limited"),
            embedding_response([1.0]),
        ])
        embedder = OpenAiEmbedder(self.client, "m", BackoffOptions(num_of_attempts=5, starting_delay=1000), sleep=self.sleep)

        vector = await embedder.embed("hello")

        self.assertEqual(vector, [1.0])
        self.assertEqual(self.client.embeddings.create.await_count, 3)
        self.assertEqual(self.sleep.delays, [1.0, 2.0])

    async def test_exhausted_attempts_raise_last_error(self):
        self.client.embeddings.create = AsyncMock(side_effect=RuntimeError("down"))
        embedder = OpenAiEmbedder(self.client, "m", BackoffOptions(num_of_attempts=3, starting_delay=500), sleep=self.sleep)

        with self.assertRaises(RuntimeError):
            await embedder.embed("hello")

        self.assertEqual(self.client.embeddings.create.await_count, 3)
        self.assertEqual(self.sleep.delays, [0.5, 1.0])

    async def test_delay_is_capped(self):
        self.client.embeddings.create = AsyncMock(side_effect=RuntimeError("down"))
        options = BackoffOptions(num_of_attempts=4, starting_delay=1000, max_delay=2500)
        embedder = OpenAiEmbedder(self.client, "m", options, sleep=self.sleep)

        with self.assertRaises(RuntimeError):
            await embedder.embed("hello")

        self.assertEqual(self.sleep.delays, [1.0, 2.0, 2.5])


class TestEmbedderConstruction(TestCase):

    def test_default_backoff_is_25_attempts_from_one_second(self):
        embedder = make_openai_embedder(MagicMock(), "m")
        self.assertEqual(embedder.backoff_options, BackoffOptions(num_of_attempts=25, starting_delay=1000))

    def test_missing_model_raises(self):
        with self.assertRaises(ValueError):
            OpenAiEmbedder(MagicMock(), "")
