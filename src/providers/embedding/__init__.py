"""Embedding provider implementations.

OpenAIEmbeddingProvider talks to OpenAI or any OpenAI-compatible
``/embeddings`` endpoint (vLLM, Ollama, TEI gateways), configured per
registry model through ``base_url`` and ``api_key``.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
