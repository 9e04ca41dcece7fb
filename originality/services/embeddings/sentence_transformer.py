"""Sentence embedding and cross-encoder providers backed by sentence-transformers."""

import asyncio
from typing import Optional

import numpy as np
from sentence_transformers import CrossEncoder, SentenceTransformer

from originality.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SentenceTransformerEmbeddingProvider:
    """Embeds text with a SentenceTransformer model.

    The model loads on first use and encoding runs in a worker thread so the
    event loop keeps serving other scans.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model: Optional[SentenceTransformer] = None

    @property
    def model(self) -> SentenceTransformer:
        """Lazy loader for the SentenceTransformer model."""
        if self._model is None:
            LOGGER.info(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def _encode(self, text: str) -> list[float]:
        vector = self.model.encode(text, convert_to_numpy=True, show_progress_bar=False)
        return np.asarray(vector, dtype=float).tolist()

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._encode, text)


class CrossEncoderRerankProvider:
    """Scores sentence pairs with a cross-encoder, squashed to [0, 1]."""

    def __init__(self, model_name: str = "cross-encoder/ms-marco-MiniLM-L-6-v2"):
        self.model_name = model_name
        self._model: Optional[CrossEncoder] = None

    @property
    def model(self) -> CrossEncoder:
        """Lazy loader for the CrossEncoder model."""
        if self._model is None:
            LOGGER.info(f"Loading rerank model: {self.model_name}")
            self._model = CrossEncoder(self.model_name)
        return self._model

    def _predict(self, first: str, second: str) -> float:
        logits = np.asarray(self.model.predict([(first, second)], show_progress_bar=False), dtype=float)
        return float(1.0 / (1.0 + np.exp(-logits.ravel()[0])))

    async def score(self, first: str, second: str) -> float:
        return await asyncio.to_thread(self._predict, first, second)
