"""
Embedding Service - turn text units into vectors for boundary detection.

Two providers share one shape:
- LocalEmbeddingService: sentence-transformers (all-MiniLM-L6-v2, 384-dim), runs offline
- GeminiEmbeddingService: Google text-embedding-004 via google-generativeai

Both return one EmbeddingResult per input text carrying the input position, so
callers can re-sort a batch by ``index`` whatever order the provider answered in.

References:
- https://www.sbert.net/docs/pretrained_models.html
- https://ai.google.dev/gemini-api/docs/embeddings
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np
from loguru import logger

from learnfeed.config import get_settings
from learnfeed.errors import ErrorCode, SemanticBoundaryError

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer


@dataclass
class EmbeddingResult:
    """Embedding for a single text, tagged with its position in the request."""

    index: int
    text: str
    embedding: np.ndarray
    model_name: str

    def to_list(self) -> list[float]:
        """Convert embedding to a plain list (JSON output)."""
        return self.embedding.tolist()

    @property
    def dimension(self) -> int:
        """Get embedding dimension."""
        return len(self.embedding)


class EmbeddingService(Protocol):
    """Anything that can embed a batch of texts."""

    model_name: str

    def generate_embeddings_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        ...


class LocalEmbeddingService:
    """
    Generate embeddings locally with sentence-transformers.

    The model is lazy-loaded on first use to avoid startup delays.

    Example:
        >>> service = LocalEmbeddingService()
        >>> results = service.generate_embeddings_batch(["What is TCP?"])
        >>> print(results[0].embedding.shape)  # (384,)
    """

    def __init__(self, model_name: str | None = None):
        """
        Initialize the embedding service.

        Args:
            model_name: Sentence transformer model to use.
                        Defaults to config value (all-MiniLM-L6-v2).
        """
        settings = get_settings()
        self.model_name = model_name or settings.embedding_model
        self._model: SentenceTransformer | None = None

    @property
    def model(self) -> SentenceTransformer:
        """
        Lazy load the model on first use.

        The model is downloaded from HuggingFace Hub on first run (~90MB).
        Subsequent runs use the cached version.
        """
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
            logger.info(f"Embedding model loaded: {self.model_name}")
        return self._model

    def generate_embeddings_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """
        Generate embeddings for one batch of texts.

        Args:
            texts: Texts to embed (caller controls batch size).

        Returns:
            List of EmbeddingResult objects in input order.
        """
        if not texts:
            return []

        embeddings = self.model.encode(
            texts,
            batch_size=len(texts),
            show_progress_bar=False,
            convert_to_numpy=True,
        )

        return [
            EmbeddingResult(
                index=i,
                text=text,
                embedding=emb,
                model_name=self.model_name,
            )
            for i, (text, emb) in enumerate(zip(texts, embeddings))
        ]


class GeminiEmbeddingService:
    """
    Generate embeddings with the Gemini embedding API.

    Requires GEMINI_API_KEY; a missing key fails at construction, not per call.
    """

    def __init__(self, api_key: str | None = None, model_name: str | None = None):
        settings = get_settings()
        self.api_key = api_key or settings.gemini_api_key
        self.model_name = model_name or settings.gemini_embedding_model
        self._client = None

        if not self.api_key:
            raise SemanticBoundaryError(
                "Gemini API key required for embeddings. Set GEMINI_API_KEY.",
                ErrorCode.API_KEY_MISSING,
            )

    @property
    def client(self):
        """Lazy-load the configured google.generativeai module."""
        if self._client is None:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._client = genai
        return self._client

    def generate_embeddings_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """
        Generate embeddings for one batch of texts in a single request.

        Args:
            texts: Texts to embed (caller controls batch size).

        Returns:
            List of EmbeddingResult objects in input order.
        """
        if not texts:
            return []

        response = self.client.embed_content(
            model=self.model_name,
            content=texts,
            task_type="semantic_similarity",
        )
        vectors = response["embedding"]

        if len(vectors) != len(texts):
            raise ValueError(
                f"Embedding count mismatch: sent {len(texts)} texts, got {len(vectors)} vectors"
            )

        return [
            EmbeddingResult(
                index=i,
                text=text,
                embedding=np.asarray(vector, dtype=np.float32),
                model_name=self.model_name,
            )
            for i, (text, vector) in enumerate(zip(texts, vectors))
        ]


def create_embedding_service(
    provider: str | None = None,
    model_name: str | None = None,
    api_key: str | None = None,
) -> EmbeddingService:
    """
    Build the embedding provider named in settings (or the override).

    Args:
        provider: "sentence-transformers" or "gemini"
        model_name: Model override for the chosen provider
        api_key: Gemini API key override

    Returns:
        Configured embedding service
    """
    settings = get_settings()
    provider = provider or settings.embedding_provider

    if provider == "gemini":
        return GeminiEmbeddingService(api_key=api_key, model_name=model_name)
    if provider == "sentence-transformers":
        return LocalEmbeddingService(model_name=model_name)

    raise SemanticBoundaryError(
        f"Unknown embedding provider: {provider}",
        ErrorCode.VALIDATION_ERROR,
        {"provider": provider},
    )
