"""Rerank providers.

HTTPRerankProvider speaks the ``POST {base_url}/rerank`` protocol shared by
Jina, Cohere-compatible gateways and self-hosted BGE rerankers.
"""

from src.providers.rerank.http_rerank_provider import HTTPRerankProvider

__all__ = ["HTTPRerankProvider"]
