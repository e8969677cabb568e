"""Embedding provider integration over HTTP."""
import asyncio
import time
import logging
from typing import List, Optional
import httpx
from config import EMBEDDING_API_KEY, EMBEDDING_API_URL, EMBEDDING_MODEL, EMBEDDING_TIMEOUT
from errors import EmbeddingProviderError

logger = logging.getLogger(__name__)


class EmbeddingModel:
    """Wrapper for an embeddings endpoint speaking ``{input, model} -> {embedding}``."""

    def __init__(
        self,
        api_key: Optional[str] = EMBEDDING_API_KEY,
        api_url: str = EMBEDDING_API_URL,
        default_model: str = EMBEDDING_MODEL,
        timeout: float = EMBEDDING_TIMEOUT
    ):
        """
        Initialize the embedding client.

        Args:
            api_key: Bearer token for the embedding endpoint
            api_url: Embeddings endpoint URL
            default_model: Model used when a call does not name one
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("EMBEDDING_API_KEY environment variable is required")

        self.api_key = api_key
        self.api_url = api_url
        self.default_model = default_model
        self.timeout = timeout

        logger.info(f"Initialized EmbeddingModel for {api_url} (default model: {default_model})")

    async def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        """
        Generate the embedding for a single text.

        Args:
            text: Text to embed
            model: Embedding model name (defaults to the configured model)

        Returns:
            Embedding vector as list of floats

        Raises:
            ValueError: If text is empty
            EmbeddingProviderError: If the provider call fails; never retried here
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        model = model or self.default_model
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {"input": text, "model": model}

        start_time = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"Embedding request timed out after {self.timeout}s")
            raise EmbeddingProviderError(
                code="TIMEOUT_ERROR",
                message=f"Embedding request timed out after {self.timeout}s",
                details={"model": model, "original_error": str(e)}
            )
        except httpx.RequestError as e:
            logger.error(f"Network error calling embedding provider: {e}")
            raise EmbeddingProviderError(
                code="NETWORK_ERROR",
                message=f"Network error: {e}",
                details={"model": model, "original_error": str(e)}
            )

        elapsed = time.time() - start_time

        # Handle rate limiting
        if response.status_code == 429:
            logger.error("Rate limit exceeded for embedding provider")
            raise EmbeddingProviderError(
                code="RATE_LIMIT_ERROR",
                message="Embedding rate limit exceeded. Please try again later.",
                details={"model": model, "status_code": 429}
            )

        # Handle authentication errors
        if response.status_code == 401:
            logger.error("Authentication failed for embedding provider")
            raise EmbeddingProviderError(
                code="AUTHENTICATION_ERROR",
                message="Invalid embedding API key",
                details={"model": model, "status_code": 401}
            )

        # Handle other errors
        if response.status_code != 200:
            error_msg = f"Embedding request failed with status {response.status_code}: {response.text}"
            logger.error(error_msg)
            raise EmbeddingProviderError(
                code="API_ERROR",
                message=error_msg,
                details={"model": model, "status_code": response.status_code}
            )

        embedding = self._parse_embedding(response.json())
        logger.debug(f"Embedded {len(text)} chars with {model} in {elapsed:.2f}s")
        return embedding

    async def embed_batch(self, texts: List[str], model: Optional[str] = None) -> List[List[float]]:
        """
        Embed several texts concurrently, one request per text.

        The returned vectors are in the same order as ``texts`` regardless of
        the order in which requests complete. The first failure propagates.
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")

        return list(await asyncio.gather(*(self.embed(text, model) for text in texts)))

    async def warmup(self) -> bool:
        """
        Send a dummy request so a cold provider is ready before indexing.

        Returns:
            True if warmup successful, False otherwise
        """
        try:
            logger.info("Warming up embedding provider...")
            start_time = time.time()

            await self.embed("warmup query")

            elapsed = time.time() - start_time
            logger.info(f"Embedding warmup completed in {elapsed:.1f}s")
            return True

        except EmbeddingProviderError as e:
            logger.error(f"Embedding warmup failed: {e.message}")
            return False

    @staticmethod
    def _parse_embedding(body) -> List[float]:
        # Accept both the plain {embedding} shape and the OpenAI {data: [{embedding}]} shape
        if isinstance(body, dict) and "embedding" in body:
            vector = body["embedding"]
        elif isinstance(body, dict) and body.get("data"):
            vector = body["data"][0]["embedding"]
        else:
            raise EmbeddingProviderError(
                code="INVALID_RESPONSE",
                message="Embedding response did not contain an embedding",
                details={"body_type": type(body).__name__}
            )
        return [float(value) for value in vector]
