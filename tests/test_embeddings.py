"""Unit tests for the docsift encoder.

Tests cover:
- Model initialization and failure handling
- The extract contract (initialized, non-empty input)
- Vector shape and float conversion
"""

import asyncio
import threading
import time

import numpy as np
import pytest
from unittest.mock import Mock, patch

from indexer.embeddings import DEFAULT_MODEL, Encoder, EncoderError


class TestEncoder:
    """Test suite for Encoder class."""

    @pytest.fixture
    def mock_sentence_transformer(self):
        """Mock SentenceTransformer for testing."""
        mock_model = Mock()
        mock_model.encode.return_value = np.array([[0.1, 0.2, 0.3], [0.4, 0.5, 0.6]])
        mock_model.get_sentence_embedding_dimension.return_value = 3
        return mock_model

    @pytest.fixture
    def encoder(self, mock_sentence_transformer):
        """Initialized encoder with a mocked model."""
        with patch('indexer.embeddings.SentenceTransformer',
                   return_value=mock_sentence_transformer) as mock_st:
            encoder = Encoder()
            encoder.initialize()
            mock_st.assert_called_once_with(DEFAULT_MODEL)
        return encoder

    def test_initialize_is_idempotent(self, mock_sentence_transformer):
        with patch('indexer.embeddings.SentenceTransformer',
                   return_value=mock_sentence_transformer) as mock_st:
            encoder = Encoder()
            encoder.initialize('custom-model')
            encoder.initialize('custom-model')

        mock_st.assert_called_once_with('custom-model')
        assert encoder.is_initialized()
        assert encoder.model_name == 'custom-model'
        assert encoder.dimensions == 3

    def test_initialize_failure_raises_encoder_error(self):
        with patch('indexer.embeddings.SentenceTransformer', side_effect=OSError("no such model")):
            encoder = Encoder()
            with pytest.raises(EncoderError, match="no such model"):
                encoder.initialize('missing-model')
        assert not encoder.is_initialized()

    @pytest.mark.asyncio
    async def test_extract_requires_initialization(self):
        with pytest.raises(EncoderError, match="not initialized"):
            await Encoder().extract(["text"])

    @pytest.mark.asyncio
    async def test_extract_rejects_empty_input(self, encoder):
        with pytest.raises(EncoderError, match="empty"):
            await encoder.extract([])

    @pytest.mark.asyncio
    async def test_extract_returns_vectors(self, encoder):
        result = await encoder.extract(["first", "second"])

        assert result.count == 2
        assert result.dimensions == 3
        assert result.vectors[0] == pytest.approx([0.1, 0.2, 0.3])
        assert all(isinstance(v, float) for v in result.vectors[1])

        args, kwargs = encoder.model.encode.call_args
        assert args[0] == ["first", "second"]
        assert kwargs['normalize_embeddings'] is True
        assert kwargs['batch_size'] == 32

    @pytest.mark.asyncio
    async def test_extract_wraps_model_errors(self, encoder):
        encoder.model.encode.side_effect = RuntimeError("CUDA out of memory")
        with pytest.raises(EncoderError, match="CUDA out of memory"):
            await encoder.extract(["text"])

    @pytest.mark.asyncio
    async def test_dispose(self, encoder):
        encoder.dispose()
        assert not encoder.is_initialized()
        assert encoder.dimensions == 0
        with pytest.raises(EncoderError):
            await encoder.extract(["text"])

    @pytest.mark.asyncio
    async def test_concurrent_extracts_share_model_serially(self, encoder):
        in_flight = []
        peak = []
        guard = threading.Lock()

        def slow_encode(texts, **kwargs):
            with guard:
                in_flight.append(1)
                peak.append(len(in_flight))
            time.sleep(0.01)
            with guard:
                in_flight.pop()
            return np.array([[0.1, 0.2, 0.3]] * len(texts))

        encoder.model.encode.side_effect = slow_encode
        results = await asyncio.gather(*(encoder.extract([f"page {i}"]) for i in range(6)))

        assert [r.count for r in results] == [1] * 6
        assert max(peak) == 1
