"""Embedding provider implementations.

Embeddings convert chunk text into numeric vectors that are written to the
vector index.  OpenAIEmbeddingProvider talks to OpenAI or any
OpenAI-compatible embeddings endpoint.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
