"""
Proposition Chunking Service - rewrite prose into atomic, self-contained statements.

Uses Gemini to turn paragraphs into independent propositions that each make sense
without surrounding context and together preserve every fact in the source.

Large inputs are split before the LLM call, preferring a paragraph break and then a
sentence end, as long as the split point lies past half of the window. Sub-chunks are
decomposed sequentially and their propositions concatenated in order.
"""

from __future__ import annotations

import json
import re
import time
from typing import Any, Protocol

from loguru import logger

from learnfeed.config import get_settings
from learnfeed.errors import ErrorCode, PropositionChunkingError


PROPOSITION_SYSTEM_PROMPT = """Rewrite this text as a series of independent, self-contained propositions.
Each proposition should make sense on its own without context.
Preserve all factual information. Output as JSON array of strings.

Guidelines:
- Each proposition should be a complete, atomic statement
- Include necessary context within each proposition (e.g., "Neural networks, which are part of machine learning, use..." rather than "They use...")
- Resolve pronouns and references to their full names
- Split compound sentences into separate propositions when they contain multiple facts
- Maintain the original meaning and accuracy
- Do not add information that isn't in the source text
- Keep propositions concise but complete

Example input:
"Machine learning is a subset of AI that enables computers to learn. It uses algorithms and neural networks."

Example output:
["Machine learning is a subset of artificial intelligence.", "Machine learning enables computers to learn from data.", "Machine learning uses algorithms to identify patterns.", "Neural networks are used in machine learning systems."]"""


class PropositionDecomposer(Protocol):
    """Anything that turns raw prose into an ordered list of propositions."""

    def decompose_into_propositions(self, text: str) -> list[str]:
        ...


def chunk_content(text: str, max_length: int) -> list[str]:
    """
    Split text into pieces of at most ``max_length`` characters.

    A piece ends at the last paragraph break (``\\n\\n``) in the window if it lies past
    the window's midpoint, else at the last period past the midpoint, else at the
    hard limit. Pieces are stripped; blank pieces are dropped.
    """
    if len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    start = 0
    half = max_length / 2

    while start < len(text):
        end = start + max_length

        if end < len(text):
            last_paragraph = text.rfind("\n\n", start, end)
            if last_paragraph > start + half:
                end = last_paragraph + 2
            else:
                last_period = text.rfind(".", start, end)
                if last_period > start + half:
                    end = last_period + 1

        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)
        start = end

    return chunks


def validate_propositions(propositions: Any) -> list[str]:
    """
    Keep the non-blank string entries of an LLM response, stripped.

    Raises:
        PropositionChunkingError: VALIDATION_ERROR when the response is not a list
    """
    if not isinstance(propositions, list):
        raise PropositionChunkingError(
            "Expected array of propositions from AI response",
            ErrorCode.VALIDATION_ERROR,
            {"received_type": type(propositions).__name__},
        )

    return [p.strip() for p in propositions if isinstance(p, str) and p.strip()]


def parse_json_response(response: str) -> Any:
    """Extract the JSON payload from an LLM reply (bare, fenced, or embedded)."""
    cleaned = response.strip()
    fenced = re.match(r"^```(?:json)?\s*([\s\S]*?)\s*```$", cleaned)
    if fenced:
        cleaned = fenced.group(1)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    match = re.search(r"\[[\s\S]*\]", cleaned)
    if not match:
        raise ValueError("No JSON array found in response")
    return json.loads(match.group(0))


class PropositionChunkingService:
    """
    Decompose text into propositions with Gemini.

    Example:
        >>> service = PropositionChunkingService()
        >>> service.decompose_into_propositions(
        ...     "Machine learning is a subset of AI. It uses algorithms to learn from data."
        ... )
        ['Machine learning is a subset of artificial intelligence.',
         'Machine learning uses algorithms to learn from data.']
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        max_content_length: int | None = None,
        temperature: float | None = None,
    ):
        """
        Initialize the decomposer.

        Args:
            api_key: Gemini API key (defaults to GEMINI_API_KEY)
            model_name: Gemini model (defaults to AI_MODEL)
            max_content_length: Characters per LLM request before sub-chunking
            temperature: Sampling temperature

        Raises:
            PropositionChunkingError: API_KEY_MISSING when no key is configured
        """
        settings = get_settings()
        self.api_key = api_key or settings.gemini_api_key
        self.model_name = model_name or settings.ai_model
        self.max_content_length = max_content_length or settings.proposition_max_content_length
        self.temperature = (
            temperature if temperature is not None else settings.proposition_temperature
        )
        self._client = None

        if not self.api_key:
            raise PropositionChunkingError(
                "Gemini API key required. Set GEMINI_API_KEY environment variable.",
                ErrorCode.API_KEY_MISSING,
            )

    @property
    def client(self):
        """Lazy-load Gemini client."""
        if self._client is None:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._client = genai.GenerativeModel(
                model_name=self.model_name,
                system_instruction=PROPOSITION_SYSTEM_PROMPT,
            )
        return self._client

    def decompose_into_propositions(self, text: str) -> list[str]:
        """
        Decompose text into independent, self-contained propositions.

        Args:
            text: Raw prose (article, PDF extract, transcript)

        Returns:
            Propositions in source order; empty for blank input

        Raises:
            PropositionChunkingError: VALIDATION_ERROR for a non-array response,
                DECOMPOSITION_FAILED for any other provider failure
        """
        if not text or not text.strip():
            return []

        start = time.perf_counter()
        chunks = chunk_content(text, self.max_content_length)
        logger.info(
            f"Decomposing {len(text)} chars into propositions ({len(chunks)} request(s))"
        )

        propositions: list[str] = []
        for i, chunk in enumerate(chunks):
            try:
                response = self._call_llm(chunk)
                chunk_props = validate_propositions(parse_json_response(response))
            except PropositionChunkingError:
                raise
            except Exception as e:
                logger.error(f"Proposition decomposition failed on chunk {i + 1}/{len(chunks)}: {e}")
                raise PropositionChunkingError.wrap(
                    e, ErrorCode.DECOMPOSITION_FAILED, "Failed to decompose text"
                ) from e

            logger.debug(f"Chunk {i + 1}/{len(chunks)}: {len(chunk_props)} propositions")
            propositions.extend(chunk_props)

        elapsed = time.perf_counter() - start
        logger.info(f"Decomposed into {len(propositions)} propositions ({elapsed:.2f}s)")
        return propositions

    def _call_llm(self, text: str) -> str:
        """Send one sub-chunk to Gemini and return the raw reply text."""
        response = self.client.generate_content(
            text,
            generation_config={
                "temperature": self.temperature,
                "response_mime_type": "application/json",
            },
        )

        if response.text:
            return response.text

        raise ValueError("Empty response from Gemini")
