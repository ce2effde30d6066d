# docsift Embeddings Module
# Turns page text into fixed-length vectors using sentence transformers

import asyncio
import logging
import threading
from functools import partial
from typing import List, Optional

import numpy as np
from sentence_transformers import SentenceTransformer

from pipelines.models import EmbeddingResult

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "all-MiniLM-L6-v2"


class EncoderError(Exception):
    """Raised when the encoder cannot produce embeddings."""
    pass


class Encoder:
    """Sentence embedding extractor with batched inference"""

    def __init__(self, batch_size: int = 32, normalize: bool = True):
        """
        Args:
            batch_size: Sentences per model forward pass
            normalize: L2-normalize output vectors
        """
        self.batch_size = batch_size
        self.normalize = normalize
        self.model_name: Optional[str] = None
        self.model: Optional[SentenceTransformer] = None
        # one forward pass at a time on the shared model
        self._model_lock = threading.Lock()

    def initialize(self, model_name: str = DEFAULT_MODEL):
        """Load the sentence transformer model. No-op if already loaded."""
        if self.is_initialized():
            return
        try:
            logger.info(f"Loading embedding model: {model_name}")
            self.model = SentenceTransformer(model_name)
            self.model_name = model_name
            logger.info(f"Model loaded successfully. Embedding dimension: {self.dimensions}")
        except Exception as e:
            logger.error(f"Failed to load embedding model: {e}")
            raise EncoderError(f"Failed to initialize embedding model {model_name}: {e}") from e

    def is_initialized(self) -> bool:
        return self.model is not None

    @property
    def dimensions(self) -> int:
        if not self.model:
            return 0
        return self.model.get_sentence_embedding_dimension()

    def _encode(self, texts: List[str]) -> np.ndarray:
        with self._model_lock:
            return self.model.encode(
                texts,
                batch_size=self.batch_size,
                convert_to_numpy=True,
                normalize_embeddings=self.normalize,
                show_progress_bar=False,
            )

    async def extract(self, texts: List[str]) -> EmbeddingResult:
        """Compute one embedding per input text.

        Inference runs in the default executor so the event loop keeps
        servicing fetches while the model works.

        Raises:
            EncoderError: If the encoder is not initialized, the input is
                          empty, or the model fails
        """
        if not self.is_initialized():
            raise EncoderError("Encoder not initialized. Call initialize() first.")
        if not texts:
            raise EncoderError("Input texts cannot be empty")

        loop = asyncio.get_running_loop()
        try:
            embeddings = await loop.run_in_executor(None, partial(self._encode, list(texts)))
        except Exception as e:
            raise EncoderError(f"Failed to extract embeddings: {e}") from e

        vectors = [row.astype(np.float32).tolist() for row in np.atleast_2d(embeddings)]
        return EmbeddingResult(
            vectors=vectors,
            dimensions=len(vectors[0]) if vectors else 0,
            count=len(vectors),
        )

    def dispose(self):
        """Release the model."""
        self.model = None
        self.model_name = None
